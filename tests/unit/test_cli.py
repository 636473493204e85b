"""Unit tests for the mockgen CLI."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from mockgen.cli import app, parse_selection, resolve_url, select_exchanges
from mockgen.generators.ai import AiGenerationResult
from mockgen.models import AppError, CaptureResult, RawExchange
from tests.helpers import make_exchange

runner = CliRunner()

COLLECTION = {
    "info": {
        "name": "Example API",
        "schema": "https://schema.getpostman.com/json/collection/v2.1.0/collection.json",
    },
    "item": [{"name": "GET /v1/items", "response": [{"code": 200}]}],
    "variable": [],
}


@pytest.fixture(autouse=True)
def quiet_logging(clean_env: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep commands from installing stream handlers during tests."""
    with patch("mockgen.cli.setup_logging"):
        yield


def captured_exchanges() -> list[RawExchange]:
    """Exchanges as returned by a capture session."""
    return [
        make_exchange("https://api.example.com/v1/items?page=1", '{"items":[1]}'),
        make_exchange("https://api.example.com/v1/items?page=2", '{"items":[1,2]}'),
        make_exchange("https://api.example.com/blocks?keys=hero", '{"hero":{}}'),
    ]


def patch_session(result: CaptureResult) -> Any:
    """Patch create_capture_session to return a session producing result."""
    session = MagicMock()
    session.capture_network_logs = AsyncMock(return_value=result)
    return patch("mockgen.cli.create_capture_session", return_value=session)


class TestParseSelection:
    """Tests for parse_selection."""

    @pytest.mark.parametrize("text", ["", "all", " ALL "])
    def test_everything(self, text: str) -> None:
        """Test that empty and 'all' select everything."""
        assert parse_selection(text, 3) is None

    def test_numbers(self) -> None:
        """Test that numbers are 1-based, deduplicated and ordered as typed."""
        assert parse_selection("3, 1,3,", 3) == [2, 0]

    @pytest.mark.parametrize("text", ["0", "4", "x", "1,-2"])
    def test_invalid(self, text: str) -> None:
        """Test that malformed or out-of-range entries are rejected."""
        with pytest.raises(AppError) as exc_info:
            parse_selection(text, 3)
        assert exc_info.value.code == "INVALID_SELECTION"


class TestSelectExchanges:
    """Tests for select_exchanges."""

    def test_select_all_skips_prompt(self) -> None:
        """Test that --all keeps every exchange without asking."""
        ask = MagicMock()
        exchanges = captured_exchanges()

        assert select_exchanges(exchanges, select_all=True, ask=ask) == exchanges
        ask.assert_not_called()

    def test_selection_keeps_capture_order(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that selected URLs keep their exchanges in capture order."""
        exchanges = captured_exchanges()

        selected = select_exchanges(exchanges, ask=lambda _: "3,1")

        # Sorted URL list: blocks, items?page=1, items?page=2
        assert [e.url for e in selected] == [
            "https://api.example.com/v1/items?page=2",
            "https://api.example.com/blocks?keys=hero",
        ]
        output = capsys.readouterr().out
        assert "Found 3 unique URLs" in output
        assert "1. /blocks?keys=hero (api.example.com)" in output

    def test_answer_all(self) -> None:
        """Test that answering 'all' keeps everything."""
        exchanges = captured_exchanges()
        assert select_exchanges(exchanges, ask=lambda _: "all") == exchanges


class TestResolveUrl:
    """Tests for resolve_url."""

    def test_argument(self) -> None:
        """Test that the argument wins."""
        assert resolve_url(" https://www.example.com/ ") == "https://www.example.com/"

    def test_default_url(self, clean_env: pytest.MonkeyPatch) -> None:
        """Test the MOCKGEN_DEFAULT_URL fallback."""
        clean_env.setenv("MOCKGEN_DEFAULT_URL", "https://default.example.com/")
        assert resolve_url(None) == "https://default.example.com/"

    def test_prompt(self) -> None:
        """Test the interactive fallback."""
        with patch("mockgen.cli.typer.prompt", return_value="https://typed.example.com/"):
            assert resolve_url(None) == "https://typed.example.com/"

    def test_empty(self) -> None:
        """Test that an empty answer is rejected."""
        with patch("mockgen.cli.typer.prompt", return_value="  "):
            with pytest.raises(AppError) as exc_info:
                resolve_url(None)
        assert exc_info.value.code == "EMPTY_URL"

    def test_invalid(self) -> None:
        """Test that a non-http URL is rejected."""
        with pytest.raises(AppError) as exc_info:
            resolve_url("file:///etc/passwd")
        assert exc_info.value.code == "INVALID_URL"


class TestConfigCommands:
    """Tests for init-config and show-config."""

    def test_init_config(self, tmp_path: Path) -> None:
        """Test writing the sample configuration."""
        path = tmp_path / "config.yaml"

        result = runner.invoke(app, ["init-config", str(path)])

        assert result.exit_code == 0
        assert "Sample configuration written" in result.output
        assert path.exists()

    def test_init_config_refuses_overwrite(self, tmp_path: Path) -> None:
        """Test that an existing file is kept without --force."""
        path = tmp_path / "config.yaml"
        path.write_text("ai: {}\n", encoding="utf-8")

        result = runner.invoke(app, ["init-config", str(path)])

        assert result.exit_code == 1
        assert "CONFIG_EXISTS" in result.output
        assert path.read_text(encoding="utf-8") == "ai: {}\n"

    def test_init_config_force(self, tmp_path: Path) -> None:
        """Test that --force overwrites."""
        path = tmp_path / "config.yaml"
        path.write_text("ai: {}\n", encoding="utf-8")

        result = runner.invoke(app, ["init-config", str(path), "--force"])

        assert result.exit_code == 0
        assert "YOUR_GEMINI_API_KEY" in path.read_text(encoding="utf-8")

    def test_show_config_masks_key(self, tmp_path: Path) -> None:
        """Test that show-config masks the API key."""
        path = tmp_path / "config.yaml"
        path.write_text("ai:\n  api_key: abcdefghijklmnop\n", encoding="utf-8")

        result = runner.invoke(app, ["show-config", "--config", str(path)])

        assert result.exit_code == 0
        assert "abcdefgh..." in result.output
        assert "ijklmnop" not in result.output

    def test_show_config_invalid_file(self, tmp_path: Path) -> None:
        """Test that configuration errors exit with status 1."""
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        result = runner.invoke(app, ["show-config", "-c", str(path)])

        assert result.exit_code == 1
        assert "EMPTY_FILE" in result.output


class TestCaptureCommand:
    """Tests for the capture command."""

    def test_writes_documentation(self, tmp_path: Path) -> None:
        """Test capture, normalization and document output."""
        output = tmp_path / "docs.json"
        capture = CaptureResult(
            success=True, exchanges=captured_exchanges(), total_count=3, block_api_count=1
        )

        with patch_session(capture):
            result = runner.invoke(
                app,
                [
                    "capture",
                    "https://www.example.com/",
                    "--all",
                    "-c",
                    str(tmp_path / "missing.yaml"),
                    "-f",
                    "json",
                    "-o",
                    str(output),
                ],
            )

        assert result.exit_code == 0, result.output
        assert "Documentation saved to" in result.output
        document = json.loads(output.read_text(encoding="utf-8"))
        assert document["metadata"]["totalEndpoints"] == 2
        assert document["apis"][0]["isBlockApi"] is True
        assert document["apis"][1]["responseBody"] == '{"items":[1,2]}'

    def test_invalid_format(self) -> None:
        """Test that unknown formats are rejected before capturing."""
        with patch_session(CaptureResult(success=True)) as factory:
            result = runner.invoke(app, ["capture", "https://www.example.com/", "-f", "pdf"])

        assert result.exit_code == 1
        assert "INVALID_FORMAT" in result.output
        factory.assert_not_called()

    def test_capture_failure(self, tmp_path: Path) -> None:
        """Test that a failed capture exits with status 1."""
        failed = CaptureResult(success=False, error="Failed to navigate to https://www.example.com/")

        with patch_session(failed):
            result = runner.invoke(
                app,
                ["capture", "https://www.example.com/", "-c", str(tmp_path / "missing.yaml")],
            )

        assert result.exit_code == 1
        assert "CAPTURE_FAILED" in result.output
        assert "Failed to navigate" in result.output

    def test_nothing_captured(self, tmp_path: Path) -> None:
        """Test that an empty capture writes nothing."""
        with patch_session(CaptureResult(success=True)):
            result = runner.invoke(
                app,
                ["capture", "https://www.example.com/", "-c", str(tmp_path / "missing.yaml")],
            )

        assert result.exit_code == 0
        assert "Nothing to document" in result.output


class TestMockCommand:
    """Tests for the mock command."""

    def test_requires_api_key(self, tmp_path: Path) -> None:
        """Test that the command stops before capturing without an API key."""
        with patch_session(CaptureResult(success=True)) as factory:
            result = runner.invoke(
                app, ["mock", "https://www.example.com/", "-c", str(tmp_path / "missing.yaml")]
            )

        assert result.exit_code == 1
        assert "MISSING_API_KEY" in result.output
        factory.assert_not_called()

    def test_writes_collection(self, tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
        """Test capture, normalization and collection output."""
        clean_env.setenv("AI_API_KEY", "test-key")
        output = tmp_path / "collection.json"
        capture = CaptureResult(
            success=True, exchanges=captured_exchanges(), total_count=3, block_api_count=1
        )
        generated = AiGenerationResult(
            success=True, collection_json=json.dumps(COLLECTION, indent=2), retry_count=1
        )

        with patch_session(capture), patch("mockgen.cli.AiGenerator") as generator_cls:
            generator_cls.return_value.generate_postman_collection = AsyncMock(
                return_value=generated
            )
            result = runner.invoke(
                app,
                [
                    "mock",
                    "https://www.example.com/",
                    "--all",
                    "-c",
                    str(tmp_path / "missing.yaml"),
                    "-o",
                    str(output),
                ],
            )

        assert result.exit_code == 0, result.output
        assert json.loads(output.read_text(encoding="utf-8")) == COLLECTION
        assert "1 items, 1 responses (1 retries used)" in result.output
        endpoints = generator_cls.return_value.generate_postman_collection.call_args.args[0]
        assert [e.url for e in endpoints] == [
            "https://api.example.com/blocks?keys=hero",
            "https://api.example.com/v1/items?page=2",
        ]

    def test_generation_failure(self, tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
        """Test that a failed generation exits with status 1."""
        clean_env.setenv("AI_API_KEY", "test-key")
        capture = CaptureResult(
            success=True, exchanges=captured_exchanges(), total_count=3, block_api_count=1
        )
        failed = AiGenerationResult(success=False, error="Gemini API call failed after 4 attempts")

        with patch_session(capture), patch("mockgen.cli.AiGenerator") as generator_cls:
            generator_cls.return_value.generate_postman_collection = AsyncMock(return_value=failed)
            result = runner.invoke(
                app,
                [
                    "mock",
                    "https://www.example.com/",
                    "--all",
                    "-c",
                    str(tmp_path / "missing.yaml"),
                    "-o",
                    str(tmp_path / "collection.json"),
                ],
            )

        assert result.exit_code == 1
        assert "AI_GENERATION_FAILED" in result.output
        assert not (tmp_path / "collection.json").exists()
