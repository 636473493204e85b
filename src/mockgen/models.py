"""Pydantic data models for mockgen.

This module defines the data carried through the capture-to-endpoint
pipeline: raw exchanges observed in the browser, the canonical endpoints
derived from them, the result objects of each stage, and the error types.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from mockgen.filters import is_block_api
from mockgen.utils.urls import parse_url


def _now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# Error types
# =============================================================================


class ErrorCategory(str, Enum):
    """Application error categories."""

    CONFIG = "CONFIG"
    NETWORK = "NETWORK"
    AI_API = "AI_API"
    FILE_SYSTEM = "FILE_SYSTEM"
    VALIDATION = "VALIDATION"
    USER_INPUT = "USER_INPUT"


class AppError(Exception):
    """Structured application error.

    Attributes:
        category: Error category
        code: Machine-readable error code (e.g. NAVIGATION_ERROR)
        message: Human-readable error message
        details: Technical details for debugging
        timestamp: When the error occurred (Unix time in milliseconds)
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        code: str,
        message: str,
        details: str | None = None,
        category: ErrorCategory | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            code: Error code
            message: Human-readable error message
            details: Additional context
            category: Error category (defaults to the class category)
        """
        self.category = category or self.default_category
        self.code = code
        self.message = message
        self.details = details
        self.timestamp = _now_ms()
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Return the error in its caller-facing shape."""
        data: dict[str, Any] = {
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
        }
        if self.details is not None:
            data["details"] = self.details
        data["timestamp"] = self.timestamp
        return data


class NavigationError(AppError):
    """The browsing surface could not be started or could not load the URL."""

    default_category = ErrorCategory.NETWORK


class SerializationError(AppError):
    """Endpoint data could not be serialized (cyclic or non-JSON content)."""

    default_category = ErrorCategory.VALIDATION


class ConfigError(AppError):
    """Configuration could not be loaded or is invalid."""

    default_category = ErrorCategory.CONFIG


class AiGenerationError(AppError):
    """AI synthesis failed (template, API call or response)."""

    default_category = ErrorCategory.AI_API


# =============================================================================
# Captured traffic
# =============================================================================


class RawExchange(BaseModel):
    """One observed request/response pair.

    Created when a response completes during an active capture window
    and never mutated afterwards.

    Attributes:
        id: Capture-local identifier (log_<n>)
        method: Upper-case HTTP method
        url: Absolute request URL
        request_headers: Request headers, raw case preserved
        request_body: Request body text, if any
        response_status: HTTP status code
        response_status_text: HTTP status text
        response_headers: Response headers, raw case preserved
        response_body: Response body text (empty if unreadable)
        resource_kind: Resource type reported by the browser (fetch, xhr, ...)
        observed_at_request: Monotonic time the request was seen
        observed_at_response: Monotonic time the response completed
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    method: str
    url: str
    request_headers: dict[str, str] = Field(default_factory=dict)
    request_body: str | None = None
    response_status: int = 0
    response_status_text: str = ""
    response_headers: dict[str, str] = Field(default_factory=dict)
    response_body: str = ""
    resource_kind: str = "fetch"
    observed_at_request: float = 0.0
    observed_at_response: float = 0.0

    def request_header(self, name: str) -> str | None:
        """Look up a request header case-insensitively."""
        return _lookup_header(self.request_headers, name)

    def response_header(self, name: str) -> str | None:
        """Look up a response header case-insensitively."""
        return _lookup_header(self.response_headers, name)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def content_type(self) -> str:
        """Response Content-Type header value (empty if missing)."""
        return self.response_header("content-type") or ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_block_api(self) -> bool:
        """Whether the URL matches the block API pattern."""
        return is_block_api(self.url)


def _lookup_header(headers: dict[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


class EndpointIdentity(NamedTuple):
    """Grouping key for exchanges: (method, hostname, pathname).

    Query string and fragment are not part of the identity. When the URL
    cannot be parsed, hostname is empty and pathname holds the raw URL.
    """

    method: str
    hostname: str
    pathname: str

    @classmethod
    def of(cls, method: str, url: str) -> EndpointIdentity:
        """Compute the identity of an exchange from its method and URL."""
        method = method.upper()
        parsed = parse_url(url)
        if parsed is None:
            return cls(method, "", url)
        return cls(method, parsed.hostname, parsed.pathname)

    @property
    def key(self) -> str:
        """Display form, e.g. ``GET api.example.com/v1/blocks``."""
        return f"{self.method} {self.hostname}{self.pathname}"


class CanonicalEndpoint(BaseModel):
    """A normalized endpoint, merged from one or more exchanges.

    Attributes:
        method: Upper-case HTTP method
        url: URL of the representative exchange, query string included
        response_body: Response body of the representative exchange
        query_params: Query parameters parsed from the representative URL
        path_params: Path parameters (always empty; no path templating yet)
        is_block_api: True if any merged exchange matched the block pattern
    """

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    response_body: str = ""
    query_params: dict[str, str] = Field(default_factory=dict)
    path_params: dict[str, str] = Field(default_factory=dict)
    is_block_api: bool = False


# =============================================================================
# Stage results
# =============================================================================


class CaptureResult(BaseModel):
    """Result of a capture session.

    Attributes:
        success: False only if the session could not start or navigate
        exchanges: Accepted exchanges in arrival order
        total_count: Number of accepted exchanges
        block_api_count: Number of accepted block API exchanges
        error: Human-readable error message if capture failed
        error_detail: Structured error if capture failed
    """

    success: bool
    exchanges: list[RawExchange] = Field(default_factory=list)
    total_count: int = 0
    block_api_count: int = 0
    error: str | None = None
    error_detail: dict[str, Any] | None = None


class NormalizeOptions(BaseModel):
    """Options for endpoint normalization.

    Attributes:
        merge_duplicates: Group exchanges by endpoint identity
        prioritize_block_apis: Move block API exchanges to the front (stable)
        max_endpoints: Cap on raw exchanges considered, applied before grouping (0 = unlimited)
    """

    merge_duplicates: bool = True
    prioritize_block_apis: bool = True
    max_endpoints: int = Field(default=50, ge=0)


class NormalizationResult(BaseModel):
    """Result of endpoint normalization.

    Attributes:
        success: Whether normalization succeeded
        endpoints: Canonical endpoints in first-seen order
        total_exchanges: Number of exchanges given as input
        block_api_count: Number of endpoints flagged as block APIs
        unique_endpoints: Number of endpoints produced
        error: Error message if normalization failed
    """

    success: bool
    endpoints: list[CanonicalEndpoint] = Field(default_factory=list)
    total_exchanges: int = 0
    block_api_count: int = 0
    unique_endpoints: int = 0
    error: str | None = None


class ProcessingStats(BaseModel):
    """Summary statistics of a normalization run.

    Attributes:
        total_processed: Number of endpoints produced
        block_api_percentage: Share of block API endpoints (0-100, 2 decimals)
        compression_ratio: Input exchanges per produced endpoint (2 decimals)
        average_response_size: Mean response body length in characters
    """

    total_processed: int
    block_api_percentage: float
    compression_ratio: float
    average_response_size: int
