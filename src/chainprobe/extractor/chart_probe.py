"""
Chart probe.

Time-series charts usually show the latest value only in a hover tooltip.
The probe hovers near the right edge of each sufficiently large chart and
reads whatever unit-bearing text appears. Hovering itself goes through
``PageProtocol.probe_chart``.
"""

from __future__ import annotations

from typing import List

import structlog

from chainprobe.config.config import ChartProbeSpec
from chainprobe.errors import ExtractionMiss
from chainprobe.extractor.dom import bounding_box, is_visible
from chainprobe.extractor.protocols import StrategyContext
from chainprobe.normalizer import contains_unit_keyword
from chainprobe.protocols import ElementProtocol, ExtractedValue, PageProtocol

logger = structlog.get_logger(__name__)


class ChartProbeStrategy:
    name = "chart_probe"

    def __init__(self, spec: ChartProbeSpec) -> None:
        self.spec = spec

    async def _hover(self, page: PageProtocol, chart: ElementProtocol, x_ratio: float) -> List[str]:
        try:
            return await page.probe_chart(chart, x_ratio, self.spec.y_position, self.spec.settle_ms)
        except Exception as e:
            logger.debug("Chart hover failed", x_ratio=x_ratio, error=str(e), error_type=type(e).__name__)
            return []

    async def extract(self, ctx: StrategyContext) -> ExtractedValue:
        page = ctx.page
        if not await page.wait_for_selector(", ".join(self.spec.chart_selectors), self.spec.wait_timeout_ms):
            raise ExtractionMiss(self.name, "no chart rendered")

        probed = 0
        for selector in self.spec.chart_selectors:
            for chart in await page.locate_all(selector):
                if not await is_visible(chart):
                    continue
                box = await bounding_box(chart)
                if box is None or box.width <= self.spec.min_width or box.height <= self.spec.min_height:
                    continue
                probed += 1
                for x_ratio in self.spec.x_positions:
                    for text in await self._hover(page, chart, x_ratio):
                        if not contains_unit_keyword(text, ctx.unit):
                            continue
                        found = ctx.accept(text.strip(), self.name)
                        if found is not None:
                            return found

        raise ExtractionMiss(self.name, f"no tooltip value after probing {probed} chart(s)")
