"""
Bulk page-text scan.

Last resort before giving up on a metric: regex patterns over the full body
text (whole match is parsed, so a unit inside the pattern is honored), then
every line mentioning ``keyword``.
"""

from __future__ import annotations

import re

from chainprobe.config.config import TextScanSpec
from chainprobe.errors import ExtractionMiss
from chainprobe.extractor.protocols import StrategyContext
from chainprobe.protocols import ExtractedValue


class TextScanStrategy:
    name = "text_scan"

    def __init__(self, spec: TextScanSpec) -> None:
        self.spec = spec
        self._patterns = [re.compile(pattern, re.IGNORECASE) for pattern in spec.patterns]

    async def extract(self, ctx: StrategyContext) -> ExtractedValue:
        body = await ctx.page.body_text()
        if not body:
            raise ExtractionMiss(self.name, "page has no text")

        for pattern in self._patterns:
            for match in pattern.finditer(body):
                found = ctx.accept(match.group(0), self.name)
                if found is not None:
                    return found

        if self.spec.keyword:
            keyword = self.spec.keyword.lower()
            for line in body.splitlines():
                if keyword in line.lower():
                    found = ctx.accept(line.strip(), self.name)
                    if found is not None:
                        return found

        raise ExtractionMiss(self.name, "no pattern or keyword line yielded an in-range value")
