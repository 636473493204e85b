"""Capture session: interactive network capture over a browsing surface.

The session opens a browsing surface, navigates it to the target URL and
records in-scope exchanges until the stop signal fires. Accepted
exchanges flow through a bounded queue that is drained after the signal,
so recording is decoupled from the automation library's callbacks.

State machine::

    IDLE -> INITIALIZING -> CAPTURING -> DRAINING -> TERMINATED
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from mockgen.capture.signals import EnterKeySignal, StopSignal
from mockgen.capture.surface import BrowsingSurface, ObservedExchange, PlaywrightSurface
from mockgen.filters import should_capture
from mockgen.models import AppError, CaptureResult, NavigationError, RawExchange
from mockgen.utils.urls import get_hostname, is_valid_url

if TYPE_CHECKING:
    from mockgen.config import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 10000

SurfaceFactory = Callable[[], BrowsingSurface]


class CaptureState(str, Enum):
    """Capture session lifecycle states."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    CAPTURING = "capturing"
    DRAINING = "draining"
    TERMINATED = "terminated"


@dataclass
class _SessionState:
    """Per-run mutable state, rebuilt on every capture."""

    queue: asyncio.Queue[RawExchange]
    pending: set[asyncio.Task[None]] = field(default_factory=set)
    counter: int = 0
    dropped: int = 0

    def next_id(self) -> str:
        self.counter += 1
        return f"log_{self.counter}"


class CaptureSession:
    """Single interactive network capture.

    One session drives one browsing surface at a time. The surface is
    created fresh for each ``capture_network_logs`` call and released
    exactly once on every exit path.

    Attributes:
        allowed_hosts: Hosts whose traffic is captured (empty captures all)
        state: Current lifecycle state
    """

    def __init__(
        self,
        allowed_hosts: Sequence[str] = (),
        *,
        surface_factory: SurfaceFactory | None = None,
        stop_signal: StopSignal | None = None,
        navigation_timeout_ms: int = 60000,
        response_timeout_ms: int = 10000,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        """Initialize the session.

        Args:
            allowed_hosts: Allowed host names (empty allows all)
            surface_factory: Creates the browsing surface (defaults to PlaywrightSurface)
            stop_signal: Ends the capture window (defaults to waiting for Enter)
            navigation_timeout_ms: Timeout for opening the surface and navigating
            response_timeout_ms: Timeout for reading a single response body
            queue_size: Maximum number of buffered exchanges
        """
        self.allowed_hosts = list(allowed_hosts)
        self._surface_factory = surface_factory or PlaywrightSurface
        self._stop_signal = stop_signal or EnterKeySignal()
        self._navigation_timeout_ms = navigation_timeout_ms
        self._response_timeout_ms = response_timeout_ms
        self._queue_size = queue_size
        self._surface: BrowsingSurface | None = None
        self._run: _SessionState | None = None
        self.state = CaptureState.IDLE

    async def capture_network_logs(self, url: str) -> CaptureResult:
        """Capture in-scope exchanges from a URL until the stop signal fires.

        Args:
            url: Absolute http(s) URL to open

        Returns:
            CaptureResult; ``success`` is False only if the surface could not
            be started or could not load the URL
        """
        self._run = _SessionState(queue=asyncio.Queue(maxsize=self._queue_size))
        self.state = CaptureState.INITIALIZING

        try:
            if not is_valid_url(url):
                raise NavigationError(
                    "INVALID_URL",
                    f"Invalid URL: {url}",
                    "Please provide a valid HTTP or HTTPS URL",
                )

            await self._open_surface(url)

            self.state = CaptureState.CAPTURING
            logger.info("Capturing network traffic from %s", url)
            await self._stop_signal.wait()

            exchanges = await self._drain()
        except AppError as e:
            logger.error("Capture failed: %s", e.message)
            return CaptureResult(success=False, error=e.message, error_detail=e.to_dict())
        except Exception as e:
            logger.error("Capture failed: %s", e)
            error = NavigationError("CAPTURE_ERROR", f"Capture failed: {e}", type(e).__name__)
            return CaptureResult(success=False, error=error.message, error_detail=error.to_dict())
        finally:
            await self._release()
            self.state = CaptureState.TERMINATED

        block_api_count = sum(1 for exchange in exchanges if exchange.is_block_api)
        logger.info(
            "Captured %d exchanges (%d block APIs)", len(exchanges), block_api_count
        )
        return CaptureResult(
            success=True,
            exchanges=exchanges,
            total_count=len(exchanges),
            block_api_count=block_api_count,
        )

    async def _open_surface(self, url: str) -> None:
        timeout = self._navigation_timeout_ms / 1000
        surface = self._surface_factory()
        self._surface = surface

        try:
            await asyncio.wait_for(surface.open(), timeout=timeout)
        except Exception as e:
            raise NavigationError(
                "BROWSER_INIT_ERROR",
                "Failed to initialize browser",
                str(e) or type(e).__name__,
            ) from e

        surface.subscribe(self._on_exchange)

        try:
            await asyncio.wait_for(
                surface.navigate(url, self._navigation_timeout_ms), timeout=timeout
            )
        except Exception as e:
            raise NavigationError(
                "NAVIGATION_ERROR",
                f"Failed to navigate to {url}",
                str(e) or type(e).__name__,
            ) from e

    def _on_exchange(self, observed: ObservedExchange) -> None:
        run = self._run
        if run is None or self.state is not CaptureState.CAPTURING:
            return
        if not should_capture(
            observed.method,
            observed.url,
            observed.content_type,
            observed.resource_kind,
            self.allowed_hosts,
        ):
            return

        task = asyncio.get_running_loop().create_task(self._record(run, observed))
        run.pending.add(task)
        task.add_done_callback(run.pending.discard)

    async def _record(self, run: _SessionState, observed: ObservedExchange) -> None:
        try:
            body = await asyncio.wait_for(
                observed.read_body(), timeout=self._response_timeout_ms / 1000
            )
        except Exception as e:
            logger.warning("Could not read response body for %s: %s", observed.url, e)
            body = ""

        # The stop signal may have fired while the body was being read
        if run is not self._run or self.state is not CaptureState.CAPTURING:
            return

        exchange = RawExchange(
            id=run.next_id(),
            method=observed.method.upper(),
            url=observed.url,
            request_headers=observed.request_headers,
            request_body=observed.request_body,
            response_status=observed.status,
            response_status_text=observed.status_text,
            response_headers=observed.response_headers,
            response_body=body,
            resource_kind=observed.resource_kind,
            observed_at_request=observed.observed_at_request,
            observed_at_response=time.monotonic(),
        )
        try:
            run.queue.put_nowait(exchange)
        except asyncio.QueueFull:
            run.dropped += 1
            logger.warning("Capture buffer full, dropping %s %s", exchange.method, exchange.url)
            return
        logger.debug("Captured: %s %s", exchange.method, exchange.url)

    async def _drain(self) -> list[RawExchange]:
        self.state = CaptureState.DRAINING
        run = self._run
        if run is None:
            return []

        pending = list(run.pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug("Dropped %d exchanges still awaiting their body", len(pending))

        exchanges: list[RawExchange] = []
        while True:
            try:
                exchanges.append(run.queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return exchanges

    async def _release(self) -> None:
        surface, self._surface = self._surface, None
        if surface is None:
            return
        try:
            await surface.close()
        except Exception as e:
            logger.warning("Error releasing browsing surface: %s", e)
        run = self._run
        if run is not None and run.pending:
            pending = list(run.pending)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    def get_status(self) -> dict[str, Any]:
        """Return the current session status."""
        return {
            "state": self.state.value,
            "captured_count": self._run.queue.qsize() if self._run else 0,
            "surface_open": self._surface is not None,
        }


def create_capture_session(
    config: AppConfig, stop_signal: StopSignal | None = None
) -> CaptureSession:
    """Create a capture session from application configuration.

    Args:
        config: Application configuration
        stop_signal: Stop signal (defaults to waiting for Enter)

    Returns:
        Configured CaptureSession using a Playwright surface
    """
    browser = config.browser
    return CaptureSession(
        config.filter.allowed_hosts,
        surface_factory=lambda: PlaywrightSurface(browser),
        stop_signal=stop_signal,
        navigation_timeout_ms=browser.navigation_timeout_ms,
        response_timeout_ms=browser.response_timeout_ms,
    )


# =============================================================================
# Helpers over captured exchanges
# =============================================================================


def extract_unique_urls(exchanges: Sequence[RawExchange]) -> list[str]:
    """Return the sorted, deduplicated URLs of captured exchanges."""
    return sorted({exchange.url for exchange in exchanges})


def filter_block_apis(exchanges: Sequence[RawExchange]) -> list[RawExchange]:
    """Return only block API exchanges, in order."""
    return [exchange for exchange in exchanges if exchange.is_block_api]


def group_by_hostname(exchanges: Sequence[RawExchange]) -> dict[str, list[RawExchange]]:
    """Group exchanges by hostname; exchanges with unparseable URLs are skipped."""
    groups: dict[str, list[RawExchange]] = {}
    for exchange in exchanges:
        hostname = get_hostname(exchange.url)
        if hostname is None:
            continue
        groups.setdefault(hostname, []).append(exchange)
    return groups
