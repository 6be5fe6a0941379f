"""
ExtractorManager: per-metric strategy fallback chain.

Strategies run in their configured order and the first in-range value ends
the chain. Misses and strategy crashes are logged and the next strategy is
tried. A metric with no usable value is recorded with the reason, never
raised.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence, Type

import structlog

from chainprobe.config.config import ExtractionSettings, MetricSpec, PlausibleRange
from chainprobe.errors import AllStrategiesExhausted, ConfigError, ExtractionMiss
from chainprobe.observability.metrics import increment
from chainprobe.protocols import ExtractedValue, MetricOutcome, PageProtocol

from .chart_probe import ChartProbeStrategy
from .csv_download import CsvDownloadStrategy
from .follow_link import FollowLinkStrategy
from .label_proximity import LabelProximityStrategy
from .labeled_card import LabeledCardStrategy
from .protocols import Strategy, StrategyContext
from .selector_scan import SelectorScanStrategy
from .table_scan import TableScanStrategy
from .text_scan import TextScanStrategy

logger = structlog.get_logger(__name__)

STRATEGY_REGISTRY: Dict[str, Type[Any]] = {
    "labeled_card": LabeledCardStrategy,
    "label_proximity": LabelProximityStrategy,
    "selector_scan": SelectorScanStrategy,
    "chart_probe": ChartProbeStrategy,
    "text_scan": TextScanStrategy,
    "csv_download": CsvDownloadStrategy,
    "table_scan": TableScanStrategy,
    "follow_link": FollowLinkStrategy,
}


class ExtractorManager:
    """
    Runs the fallback chain for each metric of a target.

    Features:
    - Strategies built from declarative per-metric specs
    - First in-range value wins, later strategies are never invoked
    - Plausible range enforced on every strategy result
    - Per-strategy attempt/success/time counters
    """

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        registry: Optional[Dict[str, Type[Any]]] = None,
    ) -> None:
        self.settings = settings or ExtractionSettings()
        self._registry = dict(registry if registry is not None else STRATEGY_REGISTRY)
        self.logger = logger.bind(component="ExtractorManager")

        self._extraction_metrics: Dict[str, Dict[str, float]] = {
            name: {"attempts": 0, "successes": 0, "total_time": 0.0} for name in self._registry
        }

    def build_strategies(self, specs: Sequence[Any]) -> List[Strategy]:
        """Instantiate strategies for ``specs``, skipping globally disabled kinds."""
        strategies: List[Strategy] = []
        for spec in specs:
            if spec.kind in self.settings.disabled_strategies:
                self.logger.debug("Strategy disabled by settings", strategy=spec.kind)
                continue
            strategy_cls = self._registry.get(spec.kind)
            if strategy_cls is None:
                raise ConfigError(
                    f"Invalid strategy '{spec.kind}'. Available strategies: {list(self._registry.keys())}"
                )
            strategies.append(strategy_cls(spec))
        return strategies

    async def extract_metric(self, page: PageProtocol, metric: MetricSpec, target: str = "") -> MetricOutcome:
        return await self.run_chain(page, metric, self.build_strategies(metric.strategies), target=target)

    async def run_chain(
        self,
        page: PageProtocol,
        metric: MetricSpec,
        strategies: Sequence[Strategy],
        target: str = "",
    ) -> MetricOutcome:
        """
        Try ``strategies`` in order until one yields an in-range value.

        Returns:
            MetricOutcome carrying the value, or an absent value plus the
            AllStrategiesExhausted reason.
        """
        attempts: List[str] = []

        async def run_nested(specs: Sequence[Any]) -> MetricOutcome:
            return await self.run_chain(page, metric, self.build_strategies(specs), target=target)

        for strategy in strategies:
            name = strategy.name
            attempts.append(name)
            stats = self._extraction_metrics.setdefault(name, {"attempts": 0, "successes": 0, "total_time": 0.0})
            stats["attempts"] += 1
            increment("strategy_attempts", labels={"strategy": name})

            ctx = StrategyContext(
                page=page,
                metric=metric,
                plausible_range=self._range_for(strategy, metric),
                run_nested=run_nested,
                target=target,
            )

            start_time = time.monotonic()
            try:
                self.logger.debug("Attempting strategy", target=target, metric=metric.name, strategy=name)
                value: Optional[ExtractedValue] = await strategy.extract(ctx)
            except ExtractionMiss as e:
                self.logger.debug("Strategy missed", target=target, metric=metric.name, strategy=name, reason=str(e))
                continue
            except Exception as e:
                self.logger.warning(
                    "Strategy failed",
                    event_type="strategy_failed",
                    target=target,
                    metric=metric.name,
                    strategy=name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            finally:
                stats["total_time"] += time.monotonic() - start_time

            if value is None or not metric.plausible_range.contains(value.value):
                self.logger.debug(
                    "Strategy value rejected",
                    target=target,
                    metric=metric.name,
                    strategy=name,
                    value=None if value is None else value.value,
                )
                continue

            stats["successes"] += 1
            increment("strategy_hits", labels={"strategy": name})
            self.logger.info(
                "Metric extracted",
                target=target,
                metric=metric.name,
                strategy=value.strategy or name,
                value=value.value,
                raw=value.raw,
            )
            return MetricOutcome(
                metric=metric.name,
                raw_field=metric.output_raw_field,
                context_fields=metric.context_fields,
                extracted=value,
                attempts=tuple(attempts),
            )

        exhausted = AllStrategiesExhausted(metric.name, attempts)
        self.logger.warning("No strategy produced a value", target=target, metric=metric.name, attempts=attempts)
        return MetricOutcome(
            metric=metric.name,
            raw_field=metric.output_raw_field,
            context_fields=metric.context_fields,
            extracted=ExtractedValue.absent(metric.name),
            reason=str(exhausted),
            attempts=tuple(attempts),
        )

    @staticmethod
    def _range_for(strategy: Strategy, metric: MetricSpec) -> PlausibleRange:
        spec = getattr(strategy, "spec", None)
        override = getattr(spec, "plausible_range", None)
        return override if isinstance(override, PlausibleRange) else metric.plausible_range

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        """
        Get strategy performance metrics.

        Returns:
            Dictionary of metrics per strategy
        """
        metrics = {}
        for name, raw_metrics in self._extraction_metrics.items():
            attempts = raw_metrics["attempts"]
            successes = raw_metrics["successes"]
            total_time = raw_metrics["total_time"]
            metrics[name] = {
                "attempts": attempts,
                "successes": successes,
                "success_rate": successes / attempts if attempts > 0 else 0.0,
                "total_time": total_time,
                "avg_time": total_time / attempts if attempts > 0 else 0.0,
            }
        return metrics
