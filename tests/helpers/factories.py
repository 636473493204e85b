"""Builders for captured exchanges and canonical endpoints."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from mockgen.capture.surface import ObservedExchange
from mockgen.models import CanonicalEndpoint, RawExchange

JSON_HEADERS = {"Content-Type": "application/json; charset=utf-8"}


def make_exchange(
    url: str,
    body: str = "{}",
    method: str = "GET",
    **overrides: Any,
) -> RawExchange:
    """Create a captured exchange with JSON response headers."""
    fields: dict[str, Any] = {
        "method": method,
        "url": url,
        "response_status": 200,
        "response_status_text": "OK",
        "response_headers": dict(JSON_HEADERS),
        "response_body": body,
        "resource_kind": "fetch",
    }
    fields.update(overrides)
    return RawExchange(**fields)


def make_endpoint(url: str, body: str = "{}", method: str = "GET", **overrides: Any) -> CanonicalEndpoint:
    """Create a canonical endpoint."""
    fields: dict[str, Any] = {"method": method, "url": url, "response_body": body}
    fields.update(overrides)
    return CanonicalEndpoint(**fields)


def make_observed(
    url: str,
    body: str = "{}",
    method: str = "GET",
    content_type: str = "application/json",
    resource_kind: str = "xhr",
    read_body: Callable[[], Awaitable[str]] | None = None,
) -> ObservedExchange:
    """Create an exchange as reported by a browsing surface."""

    async def _read() -> str:
        return body

    return ObservedExchange(
        method=method,
        url=url,
        status=200,
        status_text="OK",
        response_headers={"content-type": content_type},
        resource_kind=resource_kind,
        read_body=read_body or _read,
    )
