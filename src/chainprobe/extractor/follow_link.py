"""
Follow a link, then extract on the linked page.

Used where the value lives one page away, e.g. the fee of the latest
transfer on a token page is only shown on that transaction's detail page.
The page handle is navigated in place, so later metrics of the same target
see the linked page.
"""

from __future__ import annotations

import dataclasses
from typing import Optional
from urllib.parse import urljoin

import structlog

from chainprobe.config.config import FollowLinkSpec
from chainprobe.errors import ExtractionMiss, NavigationError
from chainprobe.extractor.dom import ascend, is_visible
from chainprobe.extractor.protocols import StrategyContext
from chainprobe.protocols import ExtractedValue, PageProtocol

logger = structlog.get_logger(__name__)


class FollowLinkStrategy:
    name = "follow_link"

    def __init__(self, spec: FollowLinkSpec) -> None:
        self.spec = spec

    async def find_href(self, page: PageProtocol) -> Optional[str]:
        for anchor in await page.find_by_text(self.spec.anchor_text):
            if not await is_visible(anchor):
                continue
            container = await ascend(anchor, self.spec.depth)
            for link in await container.locate_all(self.spec.link_selector):
                href = await link.get_attribute("href")
                if href:
                    return href
        return None

    async def extract(self, ctx: StrategyContext) -> ExtractedValue:
        page = ctx.page
        if not await page.wait_for_selector(f"text={self.spec.anchor_text}", self.spec.wait_timeout_ms):
            raise ExtractionMiss(self.name, f"'{self.spec.anchor_text}' not shown")

        href = await self.find_href(page)
        if href is None:
            raise ExtractionMiss(self.name, f"no '{self.spec.link_selector}' link near '{self.spec.anchor_text}'")

        url = urljoin(page.url, href)
        logger.info("Following link", metric=ctx.metric.name, url=url)
        try:
            await page.goto(url, self.spec.wait_policy, self.spec.navigation_timeout_ms)
        except NavigationError as e:
            raise ExtractionMiss(self.name, f"linked page failed to load: {e}") from e

        outcome = await ctx.run_nested(self.spec.then)
        if not outcome.extracted.found:
            raise ExtractionMiss(self.name, outcome.reason or "nothing found on linked page")
        return dataclasses.replace(outcome.extracted, strategy=f"{self.name}/{outcome.extracted.strategy}")
