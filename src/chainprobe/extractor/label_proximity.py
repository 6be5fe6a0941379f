"""Find a visible label and read the number in its surrounding container."""

from __future__ import annotations

from chainprobe.config.config import LabelProximitySpec
from chainprobe.errors import ExtractionMiss
from chainprobe.extractor.dom import ascend, is_visible, read_text
from chainprobe.extractor.protocols import StrategyContext
from chainprobe.protocols import ExtractedValue


class LabelProximityStrategy:
    name = "label_proximity"

    def __init__(self, spec: LabelProximitySpec) -> None:
        self.spec = spec

    async def extract(self, ctx: StrategyContext) -> ExtractedValue:
        for label in self.spec.labels:
            for element in await ctx.page.find_by_text(label):
                if not await is_visible(element):
                    continue
                container = await ascend(element, self.spec.depth)
                found = ctx.accept(await read_text(container), self.name)
                if found is not None:
                    return found
        raise ExtractionMiss(self.name, f"no in-range value next to {self.spec.labels}")
