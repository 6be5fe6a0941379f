"""
Prometheus collectors for scrape runs.

chainprobe is a one-shot process, so metrics are exported by writing the
registry to a textfile (see ``write_metrics_file``) rather than serving them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import write_to_textfile

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Module reloads in the test suite would otherwise fail with duplicate
# registration errors.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "strategy_attempts": Counter(
            "chainprobe_strategy_attempts_total",
            "Extraction strategy invocations",
            ["strategy"],
        ),
        "strategy_hits": Counter(
            "chainprobe_strategy_hits_total",
            "Extraction strategy invocations that produced an in-range value",
            ["strategy"],
        ),
        "metric_misses": Counter(
            "chainprobe_metric_misses_total",
            "Metrics left empty after every strategy missed",
            ["target", "metric"],
        ),
        "blocked_verdicts": Counter(
            "chainprobe_blocked_verdicts_total",
            "Fetches classified as blocked",
            ["target"],
        ),
        "target_runs": Counter(
            "chainprobe_target_runs_total",
            "Target runs by outcome",
            ["target", "status"],
        ),
        "target_duration_seconds": Histogram(
            "chainprobe_target_duration_seconds",
            "Wall-clock time of a target run, fetch to assembly",
            ["target"],
            buckets=[1.0, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0, 300.0],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def increment(name: str, value: float = 1.0, labels: Optional[Dict[str, Any]] = None) -> None:
    """Increment a counter metric."""
    metric = METRICS.get(name)
    if metric is None:
        return
    if labels is not None:
        metric.labels(**labels).inc(value)
    else:
        metric.inc(value)


def observe(name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
    """Observe a histogram metric."""
    metric = METRICS.get(name)
    if metric is None:
        return
    if labels is not None:
        metric.labels(**labels).observe(value)
    else:
        metric.observe(value)


def write_metrics_file(path: Path) -> None:
    """Write the default registry in text exposition format (node-exporter textfile collector)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(str(path), _PROM_REGISTRY)
