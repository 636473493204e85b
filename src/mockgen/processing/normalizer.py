"""Endpoint normalization.

Reduces captured exchanges to canonical endpoints:

1. Block API exchanges are moved to the front (stable partition).
2. The list is truncated to ``max_endpoints`` raw exchanges. Truncation
   happens before grouping, so it bounds the working set rather than the
   number of endpoints produced.
3. Exchanges are grouped by (method, hostname, pathname) and each group
   is merged into the exchange with the longest response body.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from mockgen.models import (
    AppError,
    CanonicalEndpoint,
    EndpointIdentity,
    NormalizationResult,
    NormalizeOptions,
    ProcessingStats,
    RawExchange,
)
from mockgen.utils.urls import parse_url, query_params

logger = logging.getLogger(__name__)


@dataclass
class EndpointGroup:
    """Exchanges sharing one endpoint identity, in first-seen order."""

    identity: EndpointIdentity
    exchanges: list[RawExchange] = field(default_factory=list)
    is_block_api: bool = False

    def add(self, exchange: RawExchange) -> None:
        self.exchanges.append(exchange)
        self.is_block_api = self.is_block_api or exchange.is_block_api

    def representative(self) -> RawExchange:
        """Return the exchange with the longest body; the first one wins ties.

        Raises:
            AppError: If the group is empty
        """
        if not self.exchanges:
            raise AppError("EMPTY_GROUP", f"Cannot merge empty group {self.identity.key}")
        best = self.exchanges[0]
        for exchange in self.exchanges[1:]:
            if len(exchange.response_body) > len(best.response_body):
                best = exchange
        return best


def _to_endpoint(exchange: RawExchange, is_block_api: bool) -> CanonicalEndpoint:
    return CanonicalEndpoint(
        method=exchange.method.upper(),
        url=exchange.url,
        response_body=exchange.response_body,
        query_params=query_params(exchange.url),
        path_params={},
        is_block_api=is_block_api,
    )


def group_exchanges(exchanges: Sequence[RawExchange]) -> list[EndpointGroup]:
    """Group exchanges by endpoint identity, preserving first-seen group order."""
    groups: dict[EndpointIdentity, EndpointGroup] = {}
    for exchange in exchanges:
        identity = EndpointIdentity.of(exchange.method, exchange.url)
        group = groups.get(identity)
        if group is None:
            group = groups[identity] = EndpointGroup(identity)
        group.add(exchange)
    return list(groups.values())


class EndpointNormalizer:
    """Normalizes captured exchanges into canonical endpoints.

    Attributes:
        options: Normalization options
    """

    def __init__(self, options: NormalizeOptions | None = None) -> None:
        self.options = options or NormalizeOptions()

    def prioritize(self, exchanges: Sequence[RawExchange]) -> list[RawExchange]:
        """Apply block API prioritization and the raw exchange cap."""
        selected = list(exchanges)
        if self.options.prioritize_block_apis:
            block = [exchange for exchange in selected if exchange.is_block_api]
            regular = [exchange for exchange in selected if not exchange.is_block_api]
            selected = block + regular
        if self.options.max_endpoints > 0:
            selected = selected[: self.options.max_endpoints]
        return selected

    def normalize(self, exchanges: Sequence[RawExchange] | None) -> NormalizationResult:
        """Normalize exchanges into canonical endpoints.

        Never raises for data-quality reasons: malformed URLs fall back to
        a raw identity and empty query parameters.

        Args:
            exchanges: Accepted exchanges in arrival order

        Returns:
            NormalizationResult; ``success`` is False only for a missing
            exchange list
        """
        if exchanges is None:
            logger.error("Normalization called without an exchange list")
            return NormalizationResult(success=False, error="Exchange list is required")

        total = len(exchanges)
        logger.info("Processing %d exchanges...", total)
        if total == 0:
            return NormalizationResult(success=True)

        selected = self.prioritize(exchanges)
        logger.debug("Filtered to %d exchanges for processing", len(selected))

        endpoints: list[CanonicalEndpoint] = []
        try:
            if self.options.merge_duplicates:
                groups = group_exchanges(selected)
                logger.debug("Grouped into %d unique endpoints", len(groups))
                for group in groups:
                    endpoints.append(_to_endpoint(group.representative(), group.is_block_api))
            else:
                for exchange in selected:
                    endpoints.append(_to_endpoint(exchange, exchange.is_block_api))
        except AppError as e:
            logger.error("Normalization failed: %s", e.message)
            return NormalizationResult(success=False, total_exchanges=total, error=e.message)

        block_api_count = sum(1 for endpoint in endpoints if endpoint.is_block_api)
        logger.info(
            "Processing complete: %d endpoints, %d block APIs", len(endpoints), block_api_count
        )
        return NormalizationResult(
            success=True,
            endpoints=endpoints,
            total_exchanges=total,
            block_api_count=block_api_count,
            unique_endpoints=len(endpoints),
        )


def normalize(
    exchanges: Sequence[RawExchange] | None, options: NormalizeOptions | None = None
) -> NormalizationResult:
    """Normalize exchanges with the given options (defaults if omitted)."""
    return EndpointNormalizer(options).normalize(exchanges)


def processing_stats(result: NormalizationResult) -> ProcessingStats:
    """Compute summary statistics for a normalization result."""
    total_processed = result.unique_endpoints
    block_api_percentage = (
        result.block_api_count / total_processed * 100 if total_processed > 0 else 0.0
    )
    # No endpoints means nothing was compressed
    compression_ratio = (
        result.total_exchanges / total_processed
        if result.total_exchanges > 0 and total_processed > 0
        else 1.0
    )
    sizes = [len(endpoint.response_body) for endpoint in result.endpoints]
    average_response_size = sum(sizes) / len(sizes) if sizes else 0

    return ProcessingStats(
        total_processed=total_processed,
        block_api_percentage=round(block_api_percentage, 2),
        compression_ratio=round(compression_ratio, 2),
        average_response_size=round(average_response_size),
    )


def extract_unique_endpoints(endpoints: Sequence[CanonicalEndpoint]) -> list[str]:
    """Return sorted unique ``METHOD /path`` strings (``METHOD url`` if unparseable)."""
    unique: set[str] = set()
    for endpoint in endpoints:
        parsed = parse_url(endpoint.url)
        target = parsed.pathname if parsed else endpoint.url
        unique.add(f"{endpoint.method} {target}")
    return sorted(unique)


def group_by_method(endpoints: Sequence[CanonicalEndpoint]) -> dict[str, list[CanonicalEndpoint]]:
    """Group endpoints by upper-case HTTP method, in first-seen order."""
    groups: dict[str, list[CanonicalEndpoint]] = {}
    for endpoint in endpoints:
        groups.setdefault(endpoint.method.upper(), []).append(endpoint)
    return groups
