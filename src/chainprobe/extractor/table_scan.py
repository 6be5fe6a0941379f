"""Row scan over rendered tables and ARIA grids."""

from __future__ import annotations

from chainprobe.config.config import TableScanSpec
from chainprobe.errors import ExtractionMiss
from chainprobe.extractor.dom import read_text
from chainprobe.extractor.protocols import StrategyContext
from chainprobe.protocols import ExtractedValue


class TableScanStrategy:
    name = "table_scan"

    def __init__(self, spec: TableScanSpec) -> None:
        self.spec = spec
        self.labels = [label.lower() for label in spec.labels]

    async def extract(self, ctx: StrategyContext) -> ExtractedValue:
        rows = 0
        for selector in self.spec.row_selectors:
            for row in await ctx.page.locate_all(selector):
                rows += 1
                text = " ".join((await read_text(row)).split())
                lowered = text.lower()
                for label in self.labels:
                    index = lowered.find(label)
                    if index < 0:
                        continue
                    # parse after the label so digits inside it are skipped
                    found = ctx.accept(text[index + len(label) :], self.name)
                    if found is not None:
                        return found
        raise ExtractionMiss(self.name, f"no row labeled {self.spec.labels} among {rows} rows")
