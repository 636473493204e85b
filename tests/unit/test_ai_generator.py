"""Unit tests for the Gemini-backed Postman collection generator."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from mockgen.config import AppConfig
from mockgen.generators.ai import AiGenerationOptions, AiGenerator, GeminiClient
from mockgen.models import AiGenerationError
from mockgen.processing.serializer import serialize
from tests.helpers import make_endpoint

COLLECTION: dict[str, Any] = {
    "info": {
        "name": "Example API",
        "schema": "https://schema.getpostman.com/json/collection/v2.1.0/collection.json",
    },
    "item": [{"name": "GET /v1/items", "response": [{"code": 200}]}],
    "variable": [{"key": "baseUrl", "value": "https://api.example.com"}],
}


def gemini_answer(text: str) -> dict[str, Any]:
    """Build a generateContent response body carrying text."""
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def make_config(tmp_path: Path, api_key: str = "test-key", template: str | None = None) -> AppConfig:
    """Create a configuration, optionally with a custom prompt template."""
    ai: dict[str, Any] = {"api_key": api_key, "model_name": "gemini-test"}
    if template is not None:
        path = tmp_path / "prompt.txt"
        path.write_text(template, encoding="utf-8")
        ai["prompt_template_path"] = str(path)
    return AppConfig.model_validate({"ai": ai})


class Recorder:
    """httpx handler replaying scripted responses and recording requests."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


FAST = AiGenerationOptions(retry_delay=0)


class TestGeminiClient:
    """Tests for GeminiClient."""

    @pytest.mark.asyncio
    async def test_generate_content_request(self) -> None:
        """Test the request path, headers and payload."""
        recorder = Recorder(httpx.Response(200, json=gemini_answer("hello")))

        async with GeminiClient("key-123", "gemini-test", transport=recorder.transport) as client:
            text = await client.generate_content("prompt text")

        assert text == "hello"
        request = recorder.requests[0]
        assert request.url.path == "/v1beta/models/gemini-test:generateContent"
        assert request.headers["x-goog-api-key"] == "key-123"
        payload = json.loads(request.content)
        assert payload["contents"][0]["parts"][0]["text"] == "prompt text"
        assert payload["generationConfig"]["temperature"] == 0.1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "code"),
        [
            (401, "GEMINI_AUTH_ERROR"),
            (403, "GEMINI_AUTH_ERROR"),
            (429, "GEMINI_RATE_LIMITED"),
            (503, "GEMINI_SERVER_ERROR"),
            (400, "GEMINI_API_ERROR"),
        ],
    )
    async def test_error_status_mapping(self, status: int, code: str) -> None:
        """Test that error statuses map to error codes."""
        recorder = Recorder(httpx.Response(status, text="nope"))

        async with GeminiClient("key", "gemini-test", transport=recorder.transport) as client:
            with pytest.raises(AiGenerationError) as exc_info:
                await client.generate_content("prompt")

        assert exc_info.value.code == code

    @pytest.mark.asyncio
    async def test_empty_answer(self) -> None:
        """Test that an answer without text is rejected."""
        recorder = Recorder(httpx.Response(200, json={"candidates": []}))

        async with GeminiClient("key", "gemini-test", transport=recorder.transport) as client:
            with pytest.raises(AiGenerationError) as exc_info:
                await client.generate_content("prompt")

        assert exc_info.value.code == "EMPTY_AI_RESPONSE"

    @pytest.mark.asyncio
    async def test_requires_context_manager(self) -> None:
        """Test that calls outside the context manager fail."""
        with pytest.raises(RuntimeError, match="not initialized"):
            await GeminiClient("key", "gemini-test").generate_content("prompt")


class TestRenderPrompt:
    """Tests for prompt rendering."""

    def test_placeholders_replaced(self, tmp_path: Path) -> None:
        """Test that every known placeholder is filled in."""
        generator = AiGenerator(make_config(tmp_path))
        endpoints = [make_endpoint("https://api.example.com/v1/items?page=1", '{"a":1}')]

        prompt, template_vars = generator.render_prompt(
            "{{MODEL_NAME}}|{{API_COUNT}}|{{DATA}}|{{TIMESTAMP}}", endpoints
        )

        model, count, data, timestamp = prompt.split("|")
        assert model == "gemini-test"
        assert count == "1"
        assert json.loads(data)[0]["url"] == "https://api.example.com/v1/items?page=1"
        assert timestamp == template_vars["TIMESTAMP"]

    def test_captured_braces_left_alone(self, tmp_path: Path) -> None:
        """Test that braces inside captured data are not treated as placeholders."""
        generator = AiGenerator(make_config(tmp_path))
        endpoints = [make_endpoint("https://api.example.com/t", '{"tpl":"{{NAME}}"}')]

        prompt, _ = generator.render_prompt("{{DATA}}", endpoints)

        assert "{{NAME}}" in prompt

    def test_captured_template_names_kept_verbatim(self, tmp_path: Path) -> None:
        """Test that template variable names inside captured data are not substituted."""
        generator = AiGenerator(make_config(tmp_path))
        endpoints = [
            make_endpoint(
                "https://api.example.com/t", '{"tpl":"{{TIMESTAMP}} {{MODEL_NAME}} {{DATA}}"}'
            )
        ]

        prompt, _ = generator.render_prompt("{{DATA}}", endpoints)

        assert prompt == serialize(endpoints)
        assert "gemini-test" not in prompt

    def test_bundled_template(self, tmp_path: Path) -> None:
        """Test that the bundled template renders without leftover variables."""
        generator = AiGenerator(make_config(tmp_path))
        data = generator.create_prompt_data([make_endpoint("https://api.example.com/v1/items")])

        assert "https://api.example.com/v1/items" in data.prompt
        assert "{{DATA}}" not in data.prompt
        assert data.template_vars["API_COUNT"] == "1"

    def test_prompt_data_reports_template_errors(self, tmp_path: Path) -> None:
        """Test that prompt data carries the template error message."""
        generator = AiGenerator(make_config(tmp_path, template="   "))

        data = generator.create_prompt_data([make_endpoint("https://api.example.com/a")])

        assert data.prompt.startswith("Error loading template:")
        assert data.template_vars == {}


class TestValidateResponse:
    """Tests for AI response validation."""

    def test_fenced_json(self, tmp_path: Path) -> None:
        """Test that Markdown code fences are stripped."""
        generator = AiGenerator(make_config(tmp_path))

        validation = generator.validate_response(f"```json\n{json.dumps(COLLECTION)}\n```")

        assert validation.is_valid
        assert validation.data["info"]["name"] == "Example API"

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test that non-JSON answers are rejected."""
        validation = AiGenerator(make_config(tmp_path)).validate_response("Sure! Here it is")

        assert not validation.is_valid
        assert validation.error is not None
        assert validation.error.startswith("Invalid JSON response")

    def test_strict_shape(self, tmp_path: Path) -> None:
        """Test that strict validation requires the collection shape."""
        generator = AiGenerator(make_config(tmp_path))
        assert not generator.validate_response('{"info": {}}').is_valid

    def test_lenient_shape(self, tmp_path: Path) -> None:
        """Test that any JSON passes without strict validation."""
        generator = AiGenerator(
            make_config(tmp_path), AiGenerationOptions(strict_validation=False)
        )
        assert generator.validate_response('{"info": {}}').is_valid


class TestGeneratePostmanCollection:
    """Tests for AiGenerator.generate_postman_collection."""

    @pytest.mark.asyncio
    async def test_success(self, tmp_path: Path) -> None:
        """Test a successful generation on the first attempt."""
        recorder = Recorder(httpx.Response(200, json=gemini_answer(json.dumps(COLLECTION))))
        generator = AiGenerator(make_config(tmp_path), FAST, transport=recorder.transport)

        result = await generator.generate_postman_collection(
            [make_endpoint("https://api.example.com/v1/items")]
        )

        assert result.success
        assert result.retry_count == 0
        assert result.collection_json == json.dumps(COLLECTION, indent=2, ensure_ascii=False)
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_retry_then_success(self, tmp_path: Path) -> None:
        """Test that a failed attempt is retried."""
        recorder = Recorder(
            httpx.Response(503, text="unavailable"),
            httpx.Response(200, json=gemini_answer(json.dumps(COLLECTION))),
        )
        generator = AiGenerator(make_config(tmp_path), FAST, transport=recorder.transport)

        result = await generator.generate_postman_collection(
            [make_endpoint("https://api.example.com/v1/items")]
        )

        assert result.success
        assert result.retry_count == 1
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, tmp_path: Path) -> None:
        """Test that every attempt is made before failing."""
        recorder = Recorder(*(httpx.Response(401, text="bad key") for _ in range(3)))
        options = AiGenerationOptions(max_retries=2, retry_delay=0)
        generator = AiGenerator(make_config(tmp_path), options, transport=recorder.transport)

        result = await generator.generate_postman_collection(
            [make_endpoint("https://api.example.com/v1/items")]
        )

        assert not result.success
        assert result.error == "Gemini API call failed after 3 attempts"
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_invalid_collection(self, tmp_path: Path) -> None:
        """Test that a non-collection answer fails validation."""
        recorder = Recorder(httpx.Response(200, json=gemini_answer('{"hello": "world"}')))
        generator = AiGenerator(make_config(tmp_path), FAST, transport=recorder.transport)

        result = await generator.generate_postman_collection(
            [make_endpoint("https://api.example.com/v1/items")]
        )

        assert not result.success
        assert result.error is not None
        assert result.error.startswith("AI response validation failed")

    @pytest.mark.asyncio
    async def test_empty_input_skips_api(self, tmp_path: Path) -> None:
        """Test that no endpoints means no API call."""
        recorder = Recorder()
        generator = AiGenerator(make_config(tmp_path), FAST, transport=recorder.transport)

        result = await generator.generate_postman_collection([])

        assert not result.success
        assert result.error == "No API data provided for collection generation"
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_missing_api_key(self, tmp_path: Path) -> None:
        """Test that a missing key fails without calling the API."""
        recorder = Recorder()
        generator = AiGenerator(make_config(tmp_path, api_key=""), FAST, transport=recorder.transport)

        result = await generator.generate_postman_collection(
            [make_endpoint("https://api.example.com/v1/items")]
        )

        assert not result.success
        assert result.error == "Gemini API key is required"
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_empty_template(self, tmp_path: Path) -> None:
        """Test that an empty template fails before calling the API."""
        recorder = Recorder()
        generator = AiGenerator(
            make_config(tmp_path, template="\n"), FAST, transport=recorder.transport
        )

        result = await generator.generate_postman_collection(
            [make_endpoint("https://api.example.com/v1/items")]
        )

        assert not result.success
        assert result.error is not None
        assert result.error.startswith("Prompt template file is empty")
        assert recorder.requests == []


class TestGetStatus:
    """Tests for AiGenerator.get_status."""

    def test_status(self, tmp_path: Path) -> None:
        """Test that the status reports key presence, never the key."""
        status = AiGenerator(make_config(tmp_path)).get_status()

        assert status["has_api_key"] is True
        assert status["model_name"] == "gemini-test"
        assert status["max_retries"] == 3
        assert "test-key" not in json.dumps(status)
