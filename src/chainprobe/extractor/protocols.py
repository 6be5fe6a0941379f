"""
Protocols and shared context for pluggable value-extraction strategies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from chainprobe.extractor.numeric import extract_numeric
from chainprobe.protocols import ExtractedValue, MetricOutcome, PageProtocol

if TYPE_CHECKING:
    from chainprobe.config.config import MetricSpec, PlausibleRange


@dataclass
class StrategyContext:
    """What a strategy gets to work with for one metric on one page."""

    page: PageProtocol
    metric: MetricSpec
    plausible_range: PlausibleRange
    run_nested: Callable[[Sequence[Any]], Awaitable[MetricOutcome]]
    target: str = ""
    extras: Mapping[str, Any] = field(default_factory=dict)

    @property
    def unit(self) -> str:
        return self.metric.unit

    def accept(
        self, text: Optional[str], strategy: str, context: Optional[Mapping[str, str]] = None
    ) -> Optional[ExtractedValue]:
        """Run numeric extraction on ``text`` and wrap an in-range hit as an ExtractedValue."""
        hit = extract_numeric(text, self.unit, self.plausible_range)
        if hit is None:
            return None
        return ExtractedValue(
            metric=self.metric.name,
            value=hit.value,
            raw=hit.raw,
            strategy=strategy,
            context={**hit.context, **(context or {})},
        )


@runtime_checkable
class Strategy(Protocol):
    """One way of recovering a metric value from a loaded page."""

    name: str

    async def extract(self, ctx: StrategyContext) -> ExtractedValue:
        """Return an in-range value or raise ExtractionMiss."""
        ...
