"""
Labeled-card lookup.

Dashboards such as the Rootstock stats page render each figure as a card
with a title element and a value element. The card is chosen by exact title
match, so "avg gas price" never picks up "max gas price".
"""

from __future__ import annotations

from typing import List

from chainprobe.config.config import LabeledCardSpec
from chainprobe.errors import ExtractionMiss
from chainprobe.extractor.dom import normalize_label, read_text
from chainprobe.extractor.protocols import StrategyContext
from chainprobe.protocols import ExtractedValue


class LabeledCardStrategy:
    name = "labeled_card"

    def __init__(self, spec: LabeledCardSpec) -> None:
        self.spec = spec
        self.labels = {normalize_label(label) for label in spec.labels}

    async def extract(self, ctx: StrategyContext) -> ExtractedValue:
        page = ctx.page
        if not await page.wait_for_selector(self.spec.card_selector, self.spec.wait_timeout_ms):
            raise ExtractionMiss(
                self.name, f"no visible '{self.spec.card_selector}' within {self.spec.wait_timeout_ms}ms"
            )

        rejected: List[str] = []
        for card in await page.locate_all(self.spec.card_selector):
            if not await self._has_label(card):
                continue
            values = await card.locate_all(self.spec.value_selector)
            if not values:
                continue
            text = (await read_text(values[0])).strip()
            found = ctx.accept(text, self.name)
            if found is not None:
                return found
            rejected.append(text)

        if rejected:
            raise ExtractionMiss(self.name, f"card values not usable: {rejected}")
        raise ExtractionMiss(self.name, f"no card titled {sorted(self.labels)}")

    async def _has_label(self, card) -> bool:
        for title in await card.locate_all(self.spec.title_selector):
            if normalize_label(await read_text(title)) in self.labels:
                return True
        return False
