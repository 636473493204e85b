"""CLI interface for mockgen.

Captures browser API traffic from a URL and turns it into a Postman
collection (``mock``) or into API documentation (``capture``).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Annotated

import typer

from mockgen.capture.session import create_capture_session, extract_unique_urls
from mockgen.capture.signals import EnterKeySignal
from mockgen.config import (
    DEFAULT_CONFIG_PATH,
    AppConfig,
    create_sample_config,
    format_config_for_display,
    get_default_url,
    load_config,
)
from mockgen.decorators import handle_app_error
from mockgen.generators.ai import AiGenerationOptions, AiGenerator
from mockgen.generators.documents import DocumentFormat, DocumentGenerator, DocumentOptions
from mockgen.generators.postman import collection_stats
from mockgen.models import AppError, CanonicalEndpoint, ErrorCategory, RawExchange
from mockgen.processing.normalizer import normalize, processing_stats
from mockgen.processing.serializer import serialize
from mockgen.utils.logging import setup_logging
from mockgen.utils.urls import display_path, get_hostname, is_valid_url

app = typer.Typer(
    name="mockgen",
    help="Capture browser API traffic and generate Postman collections or API docs",
)

ConfigOption = Annotated[
    Path,
    typer.Option("--config", "-c", help="Path to the YAML configuration file"),
]
AllOption = Annotated[
    bool,
    typer.Option("--all", "-a", help="Process every captured URL without prompting"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]


def _cli_error(code: str, message: str, details: str | None = None) -> AppError:
    return AppError(code, message, details, category=ErrorCategory.USER_INPUT)


def resolve_url(url: str | None) -> str:
    """Return the capture URL from the argument, MOCKGEN_DEFAULT_URL or a prompt.

    Raises:
        AppError: If the URL is empty or invalid
    """
    if not url:
        url = get_default_url()
        if url:
            typer.echo(f"🔗 Using default URL: {url}")
    if not url:
        url = typer.prompt("🌐 Enter the URL to capture", default="", show_default=False)

    url = url.strip()
    if not url:
        raise _cli_error("EMPTY_URL", "No URL provided")
    if not is_valid_url(url):
        raise _cli_error(
            "INVALID_URL", f"Invalid URL format: {url}", "Please provide a valid HTTP or HTTPS URL"
        )
    return url


def parse_selection(text: str, count: int) -> list[int] | None:
    """Parse a URL selection answer.

    Args:
        text: ``all``, empty, or comma-separated 1-based numbers
        count: Number of selectable URLs

    Returns:
        Zero-based indexes in answer order, or None for "everything"

    Raises:
        AppError: If a number is malformed or out of range
    """
    answer = text.strip().lower()
    if answer in ("", "all"):
        return None

    indexes: list[int] = []
    for part in answer.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or not 1 <= int(part) <= count:
            raise _cli_error(
                "INVALID_SELECTION",
                f"Invalid selection: {part}",
                f"Enter numbers between 1 and {count}, separated by commas, or 'all'",
            )
        index = int(part) - 1
        if index not in indexes:
            indexes.append(index)
    return indexes or None


def select_exchanges(
    exchanges: Sequence[RawExchange],
    select_all: bool = False,
    ask: Callable[[str], str] | None = None,
) -> list[RawExchange]:
    """Let the user choose which captured URLs to process.

    Args:
        exchanges: Captured exchanges
        select_all: Skip the prompt and keep everything
        ask: Prompt function (defaults to typer.prompt)

    Returns:
        Exchanges whose URL was selected, in capture order
    """
    if not exchanges or select_all:
        return list(exchanges)

    urls = extract_unique_urls(exchanges)
    typer.echo(f"📋 Found {len(urls)} unique URLs:")
    for number, url in enumerate(urls, start=1):
        host = get_hostname(url)
        suffix = f" ({host})" if host else ""
        typer.echo(f"   {number}. {display_path(url)}{suffix}")

    ask = ask or (lambda text: typer.prompt(text, default="all"))
    indexes = parse_selection(ask("Select URLs (comma-separated numbers or 'all')"), len(urls))
    if indexes is None:
        typer.echo("✅ Processing all captured URLs")
        return list(exchanges)

    selected_urls = {urls[index] for index in indexes}
    selected = [exchange for exchange in exchanges if exchange.url in selected_urls]
    typer.echo(
        f"✅ Selected {len(selected_urls)} URLs for processing ({len(selected)} total requests)"
    )
    return selected


def _load_configuration(config_path: Path) -> AppConfig:
    typer.echo("⚙️  Loading configuration...")
    config = load_config(config_path)
    hosts = config.filter.allowed_hosts
    typer.echo(f"   AI Model: {config.ai.model_name}")
    typer.echo(f"   Allowed Hosts: {', '.join(hosts) if hosts else 'All hosts'}")
    return config


def _capture(url: str, config: AppConfig) -> list[RawExchange]:
    typer.echo()
    typer.echo("🌐 Starting browser and network capture...")
    typer.echo("📋 Instructions:")
    typer.echo("   1. Interact with the page in the browser window")
    typer.echo("   2. Trigger the API calls you want to capture")
    typer.echo("   3. Press Enter here when done")
    typer.echo()

    session = create_capture_session(config, EnterKeySignal())
    result = asyncio.run(session.capture_network_logs(url))
    if not result.success:
        raise AppError(
            "CAPTURE_FAILED",
            "Network capture failed",
            result.error,
            category=ErrorCategory.NETWORK,
        )

    typer.echo(
        f"✅ Network capture completed: {result.total_count} requests captured, "
        f"{result.block_api_count} block APIs identified"
    )
    return result.exchanges


def _normalize(exchanges: Sequence[RawExchange], config: AppConfig) -> list[CanonicalEndpoint]:
    typer.echo("🔄 Processing network data...")
    result = normalize(exchanges, config.processing)
    if not result.success:
        raise AppError("PROCESSING_FAILED", "Data processing failed", result.error)

    stats = processing_stats(result)
    typer.echo(
        f"✅ Data processing completed: {result.unique_endpoints} unique endpoints, "
        f"{result.block_api_count} block APIs ({stats.compression_ratio}x compression)"
    )
    return result.endpoints


def _write_output(path: Path, content: str) -> Path:
    path = path.resolve()
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise AppError(
            "FILE_SAVE_FAILED",
            f"Failed to save output to {path}",
            str(e),
            category=ErrorCategory.FILE_SYSTEM,
        ) from e
    return path


@app.command()
@handle_app_error
def mock(
    url: Annotated[
        str | None,
        typer.Argument(help="URL to capture (defaults to MOCKGEN_DEFAULT_URL or a prompt)"),
    ] = None,
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output file for the Postman collection"),
    ] = None,
    select_all: AllOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Capture traffic and generate a Postman collection with Gemini.

    Example:
        mockgen mock https://example.com --output collection.json
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    target = resolve_url(url)
    config = _load_configuration(config_path)
    config.require_api_key()

    exchanges = select_exchanges(_capture(target, config), select_all)
    endpoints = _normalize(exchanges, config)
    if not endpoints:
        typer.echo("⚠️  No API endpoints captured. Nothing to generate.")
        return

    typer.echo(f"📊 Generated {len(serialize(endpoints))} characters of structured data for AI")
    typer.echo("🤖 Generating Postman Collection using AI...")
    generator = AiGenerator(config, AiGenerationOptions(retry_delay=2.0))
    result = asyncio.run(generator.generate_postman_collection(endpoints))
    if not result.success or result.collection_json is None:
        raise AppError(
            "AI_GENERATION_FAILED",
            "AI generation failed",
            result.error,
            category=ErrorCategory.AI_API,
        )

    path = _write_output(output or Path(config.output.default_filename), result.collection_json)
    stats = collection_stats(result.collection_json)
    typer.echo(f"✅ Collection saved to: {path}")
    typer.echo(
        f"   {stats['total_items']} items, {stats['total_responses']} responses "
        f"({result.retry_count} retries used)"
    )
    typer.echo("💡 Import this collection into Postman to start mocking your APIs.")


@app.command()
@handle_app_error
def capture(
    url: Annotated[
        str | None,
        typer.Argument(help="URL to capture (defaults to MOCKGEN_DEFAULT_URL or a prompt)"),
    ] = None,
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    doc_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Documentation format: markdown, json or html"),
    ] = "markdown",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output file (default: api_documentation_<timestamp>)"),
    ] = None,
    select_all: AllOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Capture traffic and generate API documentation without AI.

    Example:
        mockgen capture https://example.com --format html
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    if doc_format not in ("markdown", "json", "html"):
        raise _cli_error(
            "INVALID_FORMAT",
            f"Unsupported documentation format: {doc_format}",
            "Use one of: markdown, json, html",
        )
    fmt: DocumentFormat = doc_format  # type: ignore[assignment]

    target = resolve_url(url)
    config = _load_configuration(config_path)

    exchanges = select_exchanges(_capture(target, config), select_all)
    endpoints = _normalize(exchanges, config)
    if not endpoints:
        typer.echo("⚠️  No API endpoints captured. Nothing to document.")
        return

    typer.echo(f"📝 Generating {fmt.upper()} documentation...")
    generator = DocumentGenerator(DocumentOptions(format=fmt, output_path=output))
    result = generator.generate_documentation(endpoints)
    if not result.success or result.stats is None:
        raise AppError(
            "DOCUMENT_GENERATION_FAILED",
            "Documentation generation failed",
            result.error,
            category=ErrorCategory.FILE_SYSTEM,
        )

    typer.echo(f"✅ Documentation saved to: {result.file_path}")
    typer.echo(
        f"   {result.stats.total_endpoints} endpoints, {result.stats.block_api_count} block APIs, "
        f"hosts: {', '.join(result.stats.unique_hosts)}"
    )


@app.command("init-config")
@handle_app_error
def init_config(
    path: Annotated[
        Path,
        typer.Argument(help="Where to write the sample configuration"),
    ] = DEFAULT_CONFIG_PATH,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite an existing file"),
    ] = False,
) -> None:
    """Write a sample configuration file."""
    if path.exists() and not force:
        raise _cli_error(
            "CONFIG_EXISTS",
            f"Configuration file already exists: {path}",
            "Use --force to overwrite it",
        )
    written = create_sample_config(path)
    typer.echo(f"✅ Sample configuration written to: {written}")
    typer.echo("   Set ai.api_key (or AI_API_KEY) before running 'mockgen mock'.")


@app.command("show-config")
@handle_app_error
def show_config(config_path: ConfigOption = DEFAULT_CONFIG_PATH) -> None:
    """Show the effective configuration with secrets masked."""
    config = load_config(config_path)
    typer.echo(format_config_for_display(config))


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
