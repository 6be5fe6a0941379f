"""
Headless browser session that loads one target page.
"""

from __future__ import annotations

import time
from typing import Any, Iterable, Optional

import structlog
from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from chainprobe.config.config import ClientIdentityConfig, FetcherConfig
from chainprobe.fetcher.network import NetworkMonitor
from chainprobe.fetcher.page import PlaywrightPage, navigation_error_from
from chainprobe.fetcher.stealth import STEALTH_JS, context_options, launch_args
from chainprobe.fetcher.user_agents import pick_user_agent
from chainprobe.protocols import FetchResult, WaitPolicy

logger = structlog.get_logger(__name__)


class PageFetcher:
    """
    Owns one chromium session (driver, browser, context) for a single target.

    Usage:
        async with PageFetcher(fetcher_config, identity) as fetcher:
            fetch = await fetcher.fetch(url, WaitPolicy.NETWORK_IDLE, 60000)

    The session is released on exit whatever happened inside the block.
    """

    def __init__(
        self,
        config: FetcherConfig,
        identity: ClientIdentityConfig,
        console_patterns: Optional[Iterable[str]] = None,
    ) -> None:
        self.config = config
        self.identity = identity
        self.console_patterns = list(console_patterns or ())
        self.user_agent = pick_user_agent(identity.user_agent)
        self.logger = logger.bind(component="PageFetcher")

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> PageFetcher:
        self._playwright = await async_playwright().start()
        try:
            launch_kwargs: dict[str, Any] = {"headless": self.config.headless, "args": launch_args(self.config.stealth)}
            if self.config.browser_channel:
                launch_kwargs["channel"] = self.config.browser_channel
            self._browser = await self._playwright.chromium.launch(**launch_kwargs)
            self._context = await self._browser.new_context(**context_options(self.identity, self.user_agent))
            if self.config.stealth:
                await self._context.add_init_script(STEALTH_JS)
        except BaseException as e:
            self.logger.error("Browser session setup failed", error=str(e), error_type=type(e).__name__)
            await self.close()
            raise
        self.logger.debug("Browser session started", headless=self.config.headless, stealth=self.config.stealth)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        for name, closer in (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except PlaywrightError as e:
                self.logger.warning("Failed to close browser resource", resource=name, error=str(e))
        self._context = None
        self._browser = None
        self._playwright = None

    async def fetch(self, url: str, wait_policy: WaitPolicy, timeout_ms: int) -> FetchResult:
        """
        Navigate a fresh page to ``url``.

        Raises:
            NavigationError: on timeout, DNS, TLS or connection failure.
        """
        if self._context is None:
            raise RuntimeError("PageFetcher must be entered before fetching")

        page = await self._context.new_page()
        monitor = NetworkMonitor(self.console_patterns)
        monitor.attach(page)

        start = time.monotonic()
        try:
            response = await page.goto(url, wait_until=wait_policy.value, timeout=timeout_ms)
        except PlaywrightError as e:
            error = navigation_error_from(url, e)
            self.logger.warning("Navigation failed", url=url, kind=error.kind, error=error.message)
            raise error from e

        if self.config.post_load_wait_ms:
            await page.wait_for_timeout(self.config.post_load_wait_ms)

        elapsed = time.monotonic() - start
        status = response.status if response is not None else None
        self.logger.info("Page loaded", url=url, final_url=page.url, status=status, elapsed=round(elapsed, 2))

        return FetchResult(
            page=PlaywrightPage(page),
            requested_url=url,
            final_url=page.url,
            status_code=status,
            network=monitor,
            elapsed_seconds=elapsed,
        )
