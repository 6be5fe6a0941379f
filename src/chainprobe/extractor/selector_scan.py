"""
Heuristic selector scan.

Walks a prioritized list of generic selectors (attribute substrings, heading
tags, stat classes) and parses visible element texts. With
``prefer="smallest"`` every in-range hit is collected and the smallest one
wins; on transaction pages the fee is usually the smallest STX amount shown.
That tie-break is best-effort.
"""

from __future__ import annotations

import re
from typing import List

import structlog

from chainprobe.config.config import SelectorScanSpec
from chainprobe.errors import ExtractionMiss
from chainprobe.extractor.dom import is_visible, read_text
from chainprobe.extractor.protocols import StrategyContext
from chainprobe.normalizer import contains_unit_keyword
from chainprobe.protocols import ExtractedValue

logger = structlog.get_logger(__name__)

BARE_NUMBER_RE = re.compile(r"^[\d,]+(?:\.\d+)?$")


class SelectorScanStrategy:
    name = "selector_scan"

    def __init__(self, spec: SelectorScanSpec) -> None:
        self.spec = spec

    def accepts_text(self, text: str, unit: str) -> bool:
        if self.spec.max_text_length is not None and len(text) >= self.spec.max_text_length:
            return False
        if self.spec.text_filter == "any":
            return True
        if contains_unit_keyword(text, unit):
            return True
        return self.spec.text_filter == "unit_or_bare" and bool(BARE_NUMBER_RE.match(text))

    async def extract(self, ctx: StrategyContext) -> ExtractedValue:
        candidates: List[ExtractedValue] = []
        scanned = 0

        for selector in self.spec.selectors:
            try:
                elements = await ctx.page.locate_all(selector)
            except Exception as e:
                logger.debug("Selector failed", selector=selector, error=str(e), error_type=type(e).__name__)
                continue

            for element in elements[: self.spec.per_selector_limit]:
                if not await is_visible(element):
                    continue
                text = (await read_text(element)).strip()
                if not text or not self.accepts_text(text, ctx.unit):
                    continue
                scanned += 1
                found = ctx.accept(text, self.name)
                if found is None:
                    continue
                if self.spec.prefer == "first":
                    return found
                candidates.append(found)

        if candidates:
            return min(candidates, key=lambda candidate: candidate.value or 0.0)
        raise ExtractionMiss(self.name, f"no in-range value in {scanned} candidate elements")
