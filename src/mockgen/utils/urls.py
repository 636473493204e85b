"""URL helper utilities.

Parsing helpers that never raise. Captured traffic contains all kinds of
half-formed URLs and none of them may abort a capture or a normalization run.
"""

from __future__ import annotations

from typing import NamedTuple
from urllib.parse import SplitResult, parse_qsl, urlsplit


class ParsedUrl(NamedTuple):
    """Components of an absolute URL.

    Attributes:
        scheme: URL scheme (http, https)
        hostname: Lower-cased host name without port
        port: Port number if present in the URL
        pathname: Path portion, "/" when the URL has no path
        query: Raw query string without the leading "?"
        fragment: Fragment without the leading "#"
    """

    scheme: str
    hostname: str
    port: int | None
    pathname: str
    query: str
    fragment: str


def _split(url: str) -> SplitResult | None:
    try:
        parts = urlsplit(url)
    except (TypeError, ValueError):
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts


def parse_url(url: str) -> ParsedUrl | None:
    """Parse an absolute URL.

    Args:
        url: URL string to parse

    Returns:
        ParsedUrl, or None if the URL is not an absolute URL with a host
    """
    parts = _split(url)
    if parts is None:
        return None
    try:
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        # Invalid port or malformed IPv6 literal
        return None
    if not hostname:
        return None
    return ParsedUrl(
        scheme=parts.scheme.lower(),
        hostname=hostname,
        port=port,
        pathname=parts.path or "/",
        query=parts.query,
        fragment=parts.fragment,
    )


def is_valid_url(url: str) -> bool:
    """Check that a string is an absolute URL with a scheme and host."""
    return parse_url(url) is not None


def get_hostname(url: str) -> str | None:
    """Return the lower-cased hostname of a URL, or None if unparseable."""
    parsed = parse_url(url)
    return parsed.hostname if parsed else None


def query_pairs(url: str) -> list[tuple[str, str]]:
    """Return the query string of a URL as ordered (key, value) pairs.

    Blank values are kept so that ``?keys`` still reports a ``keys`` pair.
    Unparseable URLs yield an empty list.
    """
    parsed = parse_url(url)
    if parsed is None or not parsed.query:
        return []
    try:
        return parse_qsl(parsed.query, keep_blank_values=True)
    except ValueError:
        return []


def query_params(url: str) -> dict[str, str]:
    """Return the query parameters of a URL as a mapping.

    Repeated keys keep their last value. Unparseable URLs yield ``{}``.
    """
    return dict(query_pairs(url))


def display_path(url: str) -> str:
    """Return ``/path?query`` for display, falling back to the raw URL."""
    parsed = parse_url(url)
    if parsed is None:
        return url
    return f"{parsed.pathname}?{parsed.query}" if parsed.query else parsed.pathname
