"""
Result assembly: turns metric outcomes into one immutable per-target record.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

import structlog

from chainprobe.config.config import TargetConfig
from chainprobe.protocols import BlockVerdict, ExtractedValue, MetricOutcome, MetricResultSet

logger = structlog.get_logger(__name__)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ResultAssembler:
    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self._clock = clock

    def assemble(
        self,
        target: TargetConfig,
        outcomes: Iterable[MetricOutcome],
        verdict: Optional[BlockVerdict] = None,
        error: Optional[str] = None,
    ) -> MetricResultSet:
        """
        Build the result set for ``target``.

        Every configured metric appears exactly once, in configured order.
        Metrics without an outcome, or whose value falls outside the metric's
        plausible range, are recorded as absent.
        """
        timestamp = utc_timestamp(self._clock())
        by_name = {outcome.metric: outcome for outcome in outcomes}

        checked: List[MetricOutcome] = []
        for metric in target.metrics:
            outcome = by_name.get(metric.name)
            if outcome is None:
                outcome = MetricOutcome(
                    metric=metric.name,
                    raw_field=metric.output_raw_field,
                    context_fields=metric.context_fields,
                    extracted=ExtractedValue.absent(metric.name),
                    reason=error or "not attempted",
                )
            elif outcome.value is not None and not metric.plausible_range.contains(outcome.value):
                logger.warning(
                    "Dropping out-of-range value", target=target.name, metric=metric.name, value=outcome.value
                )
                outcome = MetricOutcome(
                    metric=metric.name,
                    raw_field=metric.output_raw_field,
                    context_fields=metric.context_fields,
                    extracted=ExtractedValue.absent(metric.name),
                    reason=f"value {outcome.value} outside plausible range",
                    attempts=outcome.attempts,
                )
            checked.append(outcome)

        return MetricResultSet(
            target=target.name,
            timestamp=timestamp,
            outcomes=tuple(checked),
            source=target.source,
            verdict=verdict if target.detect_blocking else None,
            error=error,
        )

    def assemble_failure(
        self, target: TargetConfig, error: BaseException | str, verdict: Optional[BlockVerdict] = None
    ) -> MetricResultSet:
        """All-null record for a target whose run failed before extraction."""
        message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
        return self.assemble(target, (), verdict=verdict, error=message)
