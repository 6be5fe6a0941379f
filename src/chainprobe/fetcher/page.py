"""
Playwright implementations of the page and element protocols.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import List, Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from chainprobe.errors import DownloadTimeout, NavigationError
from chainprobe.protocols import BoundingBox, ElementProtocol, WaitPolicy

logger = structlog.get_logger(__name__)

ELEMENT_TIMEOUT_MS = 5000
PROBE_TEXT_LIMIT = 30

_CLICKABLE_JS = """(el) => {
    if (el.tagName === 'A' || el.tagName === 'BUTTON') return true;
    if (el.onclick || el.getAttribute('onclick')) return true;
    if (window.getComputedStyle(el).cursor === 'pointer') return true;
    return !!(el.classList && el.classList.contains('cursor-pointer'));
}"""

_VISIBLE_TEXTS_JS = """(limit) => {
    const visible = Array.from(document.querySelectorAll('body *')).filter((el) => {
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        return rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
    });
    return visible.slice(-limit).map((el) => (el.textContent || '').trim()).filter((t) => t.length > 0);
}"""


def navigation_error_from(url: str, exc: BaseException) -> NavigationError:
    """Map a Playwright navigation failure to a typed NavigationError."""
    text = str(exc)
    first_line = text.splitlines()[0] if text else type(exc).__name__
    if isinstance(exc, PlaywrightTimeoutError) or ("Timeout" in text and "exceeded" in text):
        kind = "timeout"
    elif "ERR_NAME_NOT_RESOLVED" in text or "ENOTFOUND" in text:
        kind = "dns"
    elif "ERR_CERT" in text or "ERR_SSL" in text or "SSL_ERROR" in text:
        kind = "tls"
    elif "ERR_CONNECTION" in text or "ERR_INTERNET_DISCONNECTED" in text or "ECONNREFUSED" in text:
        kind = "connection"
    else:
        kind = "other"
    return NavigationError(url, kind, first_line)


class PlaywrightElement:
    def __init__(self, locator: Locator) -> None:
        self._locator = locator

    async def text(self) -> str:
        return (await self._locator.text_content(timeout=ELEMENT_TIMEOUT_MS)) or ""

    async def is_visible(self) -> bool:
        return await self._locator.is_visible()

    async def bounding_box(self) -> Optional[BoundingBox]:
        box = await self._locator.bounding_box(timeout=ELEMENT_TIMEOUT_MS)
        if box is None:
            return None
        return BoundingBox(x=box["x"], y=box["y"], width=box["width"], height=box["height"])

    async def get_attribute(self, name: str) -> Optional[str]:
        return await self._locator.get_attribute(name, timeout=ELEMENT_TIMEOUT_MS)

    async def is_clickable(self) -> bool:
        return bool(await self._locator.evaluate(_CLICKABLE_JS, timeout=ELEMENT_TIMEOUT_MS))

    async def parent(self) -> Optional[ElementProtocol]:
        return PlaywrightElement(self._locator.locator("xpath=.."))

    async def locate_all(self, selector: str) -> List[ElementProtocol]:
        return [PlaywrightElement(locator) for locator in await self._locator.locator(selector).all()]

    async def click(self) -> None:
        await self._locator.click(timeout=ELEMENT_TIMEOUT_MS)


class PlaywrightPage:
    """Adapter that exposes a Playwright ``Page`` as a ``PageProtocol``."""

    def __init__(self, page: Page) -> None:
        self._page = page
        self.logger = logger.bind(component="PlaywrightPage")

    @property
    def url(self) -> str:
        return self._page.url

    async def title(self) -> str:
        return await self._page.title()

    async def body_text(self) -> str:
        return await self._page.inner_text("body", timeout=ELEMENT_TIMEOUT_MS)

    async def locate_all(self, selector: str) -> List[ElementProtocol]:
        return [PlaywrightElement(locator) for locator in await self._page.locator(selector).all()]

    async def find_by_text(self, text: str, exact: bool = False) -> List[ElementProtocol]:
        return [PlaywrightElement(locator) for locator in await self._page.get_by_text(text, exact=exact).all()]

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            self.logger.debug("Selector did not become visible", selector=selector, timeout_ms=timeout_ms)
            return False
        return True

    async def probe_chart(
        self, chart: ElementProtocol, x_ratio: float, y_ratio: float, settle_ms: int
    ) -> List[str]:
        box = await chart.bounding_box()
        if box is None:
            return []
        await self._page.mouse.move(box.x + box.width * x_ratio, box.y + box.height * y_ratio)
        await self._page.wait_for_timeout(settle_ms)
        return list(await self._page.evaluate(_VISIBLE_TEXTS_JS, PROBE_TEXT_LIMIT))

    async def download(self, trigger: ElementProtocol, timeout_ms: int) -> str:
        try:
            async with self._page.expect_download(timeout=timeout_ms) as download_info:
                await trigger.click()
            download = await download_info.value
        except PlaywrightTimeoutError as e:
            raise DownloadTimeout("csv_download", f"no download within {timeout_ms}ms") from e

        with tempfile.TemporaryDirectory(prefix="chainprobe-") as tmp:
            target = Path(tmp) / (download.suggested_filename or "export.csv")
            await download.save_as(target)
            self.logger.debug("Download saved", filename=download.suggested_filename, size=target.stat().st_size)
            return target.read_text(encoding="utf-8", errors="replace")

    async def goto(self, url: str, wait_policy: WaitPolicy, timeout_ms: int) -> Optional[int]:
        try:
            response = await self._page.goto(url, wait_until=wait_policy.value, timeout=timeout_ms)
        except PlaywrightError as e:
            raise navigation_error_from(url, e) from e
        return response.status if response is not None else None
