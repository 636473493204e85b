"""Browsing surface used by capture sessions.

A browsing surface opens a page the user can interact with and reports
every completed response to its subscribers as an ObservedExchange.
PlaywrightSurface is the Chromium implementation; tests substitute
their own surface through the same protocol.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from playwright.async_api import async_playwright

from mockgen.config import BrowserSettings

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright, Request, Response

logger = logging.getLogger(__name__)

# Chromium flags for interactive capture
CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


async def _no_body() -> str:
    return ""


@dataclass(frozen=True)
class ObservedExchange:
    """A completed response as reported by the browsing surface.

    Carries the response head; the body is only read on demand through
    ``read_body`` so that out-of-scope exchanges never pay for it.

    Attributes:
        method: HTTP method of the request
        url: Request URL
        request_headers: Request headers
        request_body: Request body text, if any
        status: Response status code
        status_text: Response status text
        response_headers: Response headers
        resource_kind: Resource type (fetch, xhr, document, script, ...)
        observed_at_request: Monotonic time the request was issued
        read_body: Coroutine function returning the response body text
    """

    method: str
    url: str
    request_headers: dict[str, str] = field(default_factory=dict)
    request_body: str | None = None
    status: int = 0
    status_text: str = ""
    response_headers: dict[str, str] = field(default_factory=dict)
    resource_kind: str = ""
    observed_at_request: float = 0.0
    read_body: Callable[[], Awaitable[str]] = _no_body

    @property
    def content_type(self) -> str:
        """Response Content-Type header value (empty if missing)."""
        for key, value in self.response_headers.items():
            if key.lower() == "content-type":
                return value
        return ""


ExchangeListener = Callable[[ObservedExchange], None]


class BrowsingSurface(Protocol):
    """Controlled browsing surface owned by a capture session."""

    async def open(self) -> None:
        """Start the browser and open a page."""
        ...

    def subscribe(self, listener: ExchangeListener) -> None:
        """Register a listener called for every completed response."""
        ...

    async def navigate(self, url: str, timeout_ms: int) -> None:
        """Navigate the page to a URL."""
        ...

    async def close(self) -> None:
        """Release all browser resources. Safe to call more than once."""
        ...


class PlaywrightSurface:
    """Chromium page driven by Playwright.

    Attributes:
        settings: Browser launch and timeout settings
    """

    def __init__(self, settings: BrowserSettings | None = None) -> None:
        """Initialize the surface.

        Args:
            settings: Browser settings (defaults to BrowserSettings())
        """
        self.settings = settings or BrowserSettings()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._listeners: list[ExchangeListener] = []
        self._request_times: dict[Request, float] = {}

    @property
    def is_open(self) -> bool:
        """Whether a page is currently open."""
        return self._page is not None

    async def open(self) -> None:
        """Launch Chromium and open a page with response listeners attached."""
        logger.info("Initializing browser (headless=%s)...", self.settings.headless)
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.settings.headless,
            args=CHROMIUM_ARGS,
        )
        self._context = await self._browser.new_context(
            viewport={
                "width": self.settings.viewport_width,
                "height": self.settings.viewport_height,
            },
            ignore_https_errors=True,
            user_agent=DEFAULT_USER_AGENT,
        )
        page = await self._context.new_page()
        page.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        page.set_default_timeout(self.settings.response_timeout_ms)
        page.on("request", self._on_request)
        page.on("requestfailed", self._on_request_failed)
        page.on("response", self._on_response)
        self._page = page
        logger.info("Browser initialized")

    def subscribe(self, listener: ExchangeListener) -> None:
        """Register a listener called for every completed response."""
        self._listeners.append(listener)

    async def navigate(self, url: str, timeout_ms: int) -> None:
        """Navigate to a URL, returning once the navigation is committed.

        Raises:
            RuntimeError: If the surface is not open
        """
        if self._page is None:
            raise RuntimeError("Browsing surface not open")
        logger.info("Navigating to: %s", url)
        await self._page.goto(url, wait_until="commit", timeout=timeout_ms)

    def _on_request(self, request: Request) -> None:
        self._request_times[request] = time.monotonic()

    def _on_request_failed(self, request: Request) -> None:
        self._request_times.pop(request, None)

    def _on_response(self, response: Response) -> None:
        request = response.request
        started = self._request_times.pop(request, time.monotonic())

        try:
            post_data = request.post_data
        except UnicodeDecodeError:
            post_data = None

        async def read_body() -> str:
            # Decode leniently: a malformed body is still a readable body
            return (await response.body()).decode("utf-8", errors="replace")

        observed = ObservedExchange(
            method=request.method,
            url=response.url,
            request_headers=dict(request.headers),
            request_body=post_data,
            status=response.status,
            status_text=response.status_text,
            response_headers=dict(response.headers),
            resource_kind=request.resource_type,
            observed_at_request=started,
            read_body=read_body,
        )
        for listener in list(self._listeners):
            try:
                listener(observed)
            except Exception as e:
                logger.warning("Exchange listener failed for %s: %s", observed.url, e)

    async def close(self) -> None:
        """Close page, context and browser, then stop Playwright.

        Errors during cleanup are logged and ignored so that every
        resource gets its chance to be released.
        """
        self._listeners.clear()
        self._request_times.clear()

        page, self._page = self._page, None
        context, self._context = self._context, None
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None

        if page is not None:
            try:
                await page.close()
            except Exception as e:
                logger.warning("Error closing page: %s", e)
        if context is not None:
            try:
                await context.close()
            except Exception as e:
                logger.warning("Error closing browser context: %s", e)
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning("Error closing browser: %s", e)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning("Error stopping Playwright: %s", e)
