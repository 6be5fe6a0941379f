"""
CSV export download and latest-value lookup.

Chart pages often offer a "CSV Data" export. The affordance is frequently an
icon inside a clickable wrapper, so both the matched element and its parent
are checked for clickability.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import Any, List, Optional

import structlog

from chainprobe.config.config import CsvDownloadSpec
from chainprobe.errors import ExtractionMiss
from chainprobe.extractor.dom import is_clickable, is_visible, parent_of, read_text
from chainprobe.extractor.numeric import RangeLike
from chainprobe.extractor.protocols import StrategyContext
from chainprobe.normalizer import normalize
from chainprobe.protocols import ElementProtocol, ExtractedValue, PageProtocol

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CsvLatest:
    value: float
    date: str
    raw: str


def parse_latest_csv_value(content: str, unit: str, plausible_range: RangeLike) -> Optional[CsvLatest]:
    """
    Latest value from an exported time series.

    The last non-empty row is the latest sample. Column 0 is its date; the
    first later column holding an in-range number is its value.
    """
    if not content or not content.strip():
        return None
    rows: List[List[str]] = [row for row in csv.reader(io.StringIO(content.strip())) if any(c.strip() for c in row)]
    if not rows:
        return None

    last = rows[-1]
    date = last[0].strip()
    for cell in last[1:]:
        parsed = normalize(cell.strip(), unit)
        if parsed is not None and plausible_range.contains(parsed.value):
            return CsvLatest(value=parsed.value, date=date, raw=",".join(cell.strip() for cell in last))
    return None


class CsvDownloadStrategy:
    name = "csv_download"

    def __init__(self, spec: CsvDownloadSpec) -> None:
        self.spec = spec
        self.logger = logger.bind(component="CsvDownloadStrategy")

    async def find_trigger(self, page: PageProtocol) -> Optional[ElementProtocol]:
        for selector in self.spec.trigger_selectors:
            try:
                elements = await page.locate_all(selector)
            except Exception as e:
                self.logger.debug("Trigger selector failed", selector=selector, error=str(e))
                continue
            for element in elements:
                if not await is_visible(element):
                    continue
                if await is_clickable(element):
                    return element
                parent = await parent_of(element)
                if parent is not None and await is_clickable(parent):
                    return parent

        wanted = [text.lower() for text in self.spec.trigger_texts]
        for element in await page.locate_all(".cursor-pointer"):
            text = (await read_text(element)).lower()
            if any(token in text for token in wanted):
                return element
        return None

    async def extract(self, ctx: StrategyContext) -> ExtractedValue:
        trigger = await self.find_trigger(ctx.page)
        if trigger is None:
            raise ExtractionMiss(self.name, "no clickable CSV export found")

        content = await ctx.page.download(trigger, self.spec.download_timeout_ms)
        self.logger.debug("CSV downloaded", metric=ctx.metric.name, lines=content.count("\n") + 1)

        latest = parse_latest_csv_value(content, ctx.unit, ctx.plausible_range)
        if latest is None:
            raise ExtractionMiss(self.name, "last CSV row holds no in-range number")

        context: dict[str, Any] = {"date": latest.date} if latest.date else {}
        return ExtractedValue(
            metric=ctx.metric.name, value=latest.value, raw=latest.raw, strategy=self.name, context=context
        )
