"""Exchange filtering and classification.

Both predicates run inside the live response stream of a capture session,
so they are pure and never raise: malformed input is simply rejected
(filter) or classified as not matching (classifier).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from mockgen.utils.urls import get_hostname, parse_url, query_pairs

if TYPE_CHECKING:
    from mockgen.models import RawExchange


# Resource kinds issued by page scripts (as reported by Playwright)
CAPTURED_RESOURCE_KINDS = frozenset({"fetch", "xhr"})

# HTTP methods considered API calls
CAPTURED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})

JSON_CONTENT_TYPE = "application/json"

# Block API pattern: path fragment and required query parameter
BLOCK_PATH_FRAGMENT = "/blocks"
BLOCK_QUERY_PARAM = "keys"


def is_host_allowed(url: str, allowed_hosts: Sequence[str]) -> bool:
    """Check whether the URL's hostname is within the allowed hosts.

    An empty allow-list permits every host. Otherwise the hostname must
    equal an entry or be a subdomain of one.

    Args:
        url: Absolute URL of the exchange
        allowed_hosts: Allowed host names

    Returns:
        True if the host is allowed, False otherwise (including malformed URLs)
    """
    if not allowed_hosts:
        return True

    hostname = get_hostname(url)
    if hostname is None:
        return False

    for host in allowed_hosts:
        host = host.strip().lower()
        if not host:
            continue
        if hostname == host or hostname.endswith("." + host):
            return True
    return False


def should_capture(
    method: str,
    url: str,
    content_type: str,
    resource_kind: str,
    allowed_hosts: Sequence[str],
) -> bool:
    """Decide whether an observed exchange is in scope.

    Operates on the response head only, so it can run before the
    response body is read.

    Args:
        method: HTTP method of the request
        url: Absolute request URL
        content_type: Response Content-Type header value
        resource_kind: Resource type reported by the browser
        allowed_hosts: Allowed host names (empty allows all)

    Returns:
        True if the exchange should be captured
    """
    if not is_host_allowed(url, allowed_hosts):
        return False
    if JSON_CONTENT_TYPE not in (content_type or "").lower():
        return False
    if resource_kind not in CAPTURED_RESOURCE_KINDS:
        return False
    return (method or "").upper() in CAPTURED_METHODS


def accept(exchange: RawExchange, allowed_hosts: Sequence[str]) -> bool:
    """Decide whether a captured exchange is in scope.

    Args:
        exchange: Captured exchange
        allowed_hosts: Allowed host names (empty allows all)

    Returns:
        True if the exchange passes host, content-type, resource-kind
        and method checks
    """
    return should_capture(
        exchange.method,
        exchange.url,
        exchange.content_type,
        exchange.resource_kind,
        allowed_hosts,
    )


def is_block_api(url: str) -> bool:
    """Check a URL for the block API pattern.

    A block API has ``/blocks`` in its path and a ``keys`` query parameter.

    Args:
        url: URL to classify

    Returns:
        True if the URL matches, False otherwise (including malformed URLs)
    """
    parsed = parse_url(url)
    if parsed is None:
        return False
    if BLOCK_PATH_FRAGMENT not in parsed.pathname:
        return False
    return any(key == BLOCK_QUERY_PARAM for key, _ in query_pairs(url))
