"""Document generator: API documentation without AI.

Renders canonical endpoints as Markdown, JSON or HTML. HTML output is the
Markdown document rendered through markdown-it with raw HTML disabled, so
captured content is always escaped.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from markdown_it import MarkdownIt
from pydantic import BaseModel

from mockgen.models import CanonicalEndpoint
from mockgen.processing.normalizer import group_by_method
from mockgen.utils.urls import get_hostname

logger = logging.getLogger(__name__)

DocumentFormat = Literal["markdown", "json", "html"]

FILE_EXTENSIONS: dict[str, str] = {"markdown": "md", "json": "json", "html": "html"}

GENERATOR_NAME = "mockgen document generator"

_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>API Documentation</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 40px; line-height: 1.6; }}
        h2 {{ border-bottom: 2px solid #eee; padding-bottom: 8px; }}
        pre {{ background: #f8f9fa; padding: 15px; border-radius: 4px; overflow-x: auto; }}
        code {{ background: #e9ecef; padding: 2px 6px; border-radius: 4px; }}
        pre code {{ background: none; padding: 0; }}
    </style>
</head>
<body>
{body}
</body>
</html>
"""


class DocumentOptions(BaseModel):
    """Options for document generation.

    Attributes:
        format: Output format
        include_examples: Include response body examples
        include_block_analysis: Give block APIs their own section
        output_path: Output file (None uses api_documentation_<timestamp>.<ext>)
    """

    format: DocumentFormat = "markdown"
    include_examples: bool = True
    include_block_analysis: bool = True
    output_path: Path | None = None


class DocumentStats(BaseModel):
    """Statistics of a generated document."""

    total_endpoints: int
    block_api_count: int
    regular_api_count: int
    unique_hosts: list[str]
    http_methods: list[str]
    document_size: int = 0


class DocumentGenerationResult(BaseModel):
    """Result of document generation.

    Attributes:
        success: Whether the document was rendered and written
        content: Rendered document
        file_path: Written file
        stats: Document statistics
        error: Error message if generation failed
    """

    success: bool
    content: str | None = None
    file_path: Path | None = None
    stats: DocumentStats | None = None
    error: str | None = None


def default_output_path(doc_format: DocumentFormat, now: datetime | None = None) -> Path:
    """Return ``api_documentation_<YYMMDD_HHMMSS>.<ext>`` for a format."""
    stamp = (now or datetime.now()).strftime("%y%m%d_%H%M%S")
    return Path(f"api_documentation_{stamp}.{FILE_EXTENSIONS[doc_format]}")


def _host(url: str) -> str:
    return get_hostname(url) or "unknown"


def _fence(text: str) -> str:
    """Return a backtick fence longer than any backtick run in text."""
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    return "`" * max(3, longest + 1)


def _format_json(text: str) -> str:
    try:
        return json.dumps(json.loads(text), indent=2, ensure_ascii=False)
    except ValueError:
        return text


def document_stats(endpoints: Sequence[CanonicalEndpoint], content: str = "") -> DocumentStats:
    """Compute statistics for a set of endpoints."""
    block_api_count = sum(1 for endpoint in endpoints if endpoint.is_block_api)
    return DocumentStats(
        total_endpoints=len(endpoints),
        block_api_count=block_api_count,
        regular_api_count=len(endpoints) - block_api_count,
        unique_hosts=list(dict.fromkeys(_host(endpoint.url) for endpoint in endpoints)),
        http_methods=list(dict.fromkeys(endpoint.method for endpoint in endpoints)),
        document_size=len(content),
    )


class DocumentGenerator:
    """Renders API documentation from canonical endpoints.

    Attributes:
        options: Document options
    """

    def __init__(self, options: DocumentOptions | None = None) -> None:
        self.options = options or DocumentOptions()

    def _endpoint_markdown(self, endpoint: CanonicalEndpoint, heading: str) -> list[str]:
        lines = [f"{heading} {endpoint.method} `{endpoint.url}`", ""]
        if endpoint.is_block_api:
            lines.append("**Type**: Block API  ")
        lines.append(f"**Host**: {_host(endpoint.url)}")

        if endpoint.query_params:
            lines += ["", "**Query Parameters**:"]
            lines += [f"- `{key}`: `{value}`" for key, value in endpoint.query_params.items()]

        if self.options.include_examples and endpoint.response_body:
            example = _format_json(endpoint.response_body)
            fence = _fence(example)
            lines += ["", "**Response Example**:", f"{fence}json", example, fence]

        lines.append("")
        return lines

    def render_markdown(
        self, endpoints: Sequence[CanonicalEndpoint], generated_at: str | None = None
    ) -> str:
        stats = document_stats(endpoints)
        lines = [
            "# API Documentation",
            "",
            f"Generated on: {generated_at or datetime.now(UTC).isoformat()}  ",
            f"Total Endpoints: {len(endpoints)}",
            "",
            "## Overview",
            "",
            f"- **Total Endpoints**: {stats.total_endpoints}",
            f"- **Block APIs**: {stats.block_api_count}",
            f"- **Regular APIs**: {stats.regular_api_count}",
            f"- **Unique Hosts**: {', '.join(stats.unique_hosts)}",
            f"- **HTTP Methods**: {', '.join(stats.http_methods)}",
            "",
        ]

        regular = list(endpoints)
        if self.options.include_block_analysis:
            block = [endpoint for endpoint in endpoints if endpoint.is_block_api]
            regular = [endpoint for endpoint in endpoints if not endpoint.is_block_api]
            if block:
                lines += [
                    "## Block APIs",
                    "",
                    "These APIs follow the backend-for-frontend block pattern:",
                    "",
                ]
                for endpoint in block:
                    lines += self._endpoint_markdown(endpoint, "###")
                    lines += ["---", ""]

        if regular:
            lines += ["## Regular APIs", ""]
            for method, group in group_by_method(regular).items():
                lines += [f"### {method} Endpoints", ""]
                for endpoint in group:
                    lines += self._endpoint_markdown(endpoint, "####")
                lines += ["---", ""]

        lines += [
            f"## Generated by {GENERATOR_NAME}",
            "",
            "This documentation was automatically generated from browser network logs.",
            "",
        ]
        return "\n".join(lines)

    def render_json(
        self, endpoints: Sequence[CanonicalEndpoint], generated_at: str | None = None
    ) -> str:
        apis = []
        for endpoint in endpoints:
            api = {
                "method": endpoint.method,
                "url": endpoint.url,
                "host": _host(endpoint.url),
                "isBlockApi": endpoint.is_block_api,
                "queryParams": endpoint.query_params,
                "pathParams": endpoint.path_params,
            }
            if self.options.include_examples:
                api["responseBody"] = endpoint.response_body
            apis.append(api)

        document = {
            "metadata": {
                "generatedAt": generated_at or datetime.now(UTC).isoformat(),
                "totalEndpoints": len(endpoints),
                "generator": GENERATOR_NAME,
            },
            "statistics": document_stats(endpoints).model_dump(),
            "apis": apis,
        }
        return json.dumps(document, indent=2, ensure_ascii=False)

    def render_html(
        self, endpoints: Sequence[CanonicalEndpoint], generated_at: str | None = None
    ) -> str:
        md = MarkdownIt("commonmark", {"html": False})
        body = md.render(self.render_markdown(endpoints, generated_at))
        return _HTML_TEMPLATE.format(body=body)

    def render(self, endpoints: Sequence[CanonicalEndpoint], generated_at: str | None = None) -> str:
        """Render endpoints in the configured format.

        Args:
            endpoints: Canonical endpoints
            generated_at: Header timestamp (defaults to now, UTC ISO 8601)

        Returns:
            Rendered document
        """
        if self.options.format == "json":
            return self.render_json(endpoints, generated_at)
        if self.options.format == "html":
            return self.render_html(endpoints, generated_at)
        return self.render_markdown(endpoints, generated_at)

    def generate_documentation(
        self, endpoints: Sequence[CanonicalEndpoint]
    ) -> DocumentGenerationResult:
        """Render endpoints and write the document file.

        The file is written only once rendering has succeeded.

        Args:
            endpoints: Canonical endpoints

        Returns:
            DocumentGenerationResult with content, file path and stats
        """
        if not endpoints:
            return DocumentGenerationResult(
                success=False, error="No API data provided for documentation generation"
            )

        logger.info(
            "Generating %s documentation for %d APIs...",
            self.options.format.upper(),
            len(endpoints),
        )
        content = self.render(endpoints)
        path = (self.options.output_path or default_output_path(self.options.format)).resolve()

        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.error("Failed to write documentation to %s: %s", path, e)
            return DocumentGenerationResult(
                success=False, error=f"Failed to write documentation file: {e}"
            )

        stats = document_stats(endpoints, content)
        logger.info(
            "Documentation written to %s (%d endpoints, %d block APIs)",
            path,
            stats.total_endpoints,
            stats.block_api_count,
        )
        return DocumentGenerationResult(success=True, content=content, file_path=path, stats=stats)
