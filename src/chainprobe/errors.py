"""
Exception taxonomy for chainprobe.

Only ``NavigationError`` is fatal to a target run. Extraction misses are
absorbed by the strategy chain and recorded as reasons on the result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .protocols import BlockVerdict


class ChainProbeError(Exception):
    """Base class for all chainprobe errors."""

    pass


class ConfigError(ValueError):
    """Raised when a target or metric definition is invalid."""

    pass


class NavigationError(ChainProbeError):
    """The target page could not be loaded (timeout, DNS, TLS, connection)."""

    def __init__(self, url: str, kind: str, message: str) -> None:
        self.url = url
        self.kind = kind
        self.message = message
        super().__init__(f"{kind} navigating to {url}: {message}")


class BlockedError(ChainProbeError):
    """The page was classified as blocked and the target asked to abort."""

    def __init__(self, verdict: BlockVerdict) -> None:
        self.verdict = verdict
        super().__init__("access blocked: " + "; ".join(verdict.reasons))


class ExtractionMiss(ChainProbeError):
    """A single strategy did not yield an in-range value."""

    def __init__(self, strategy: str, message: str) -> None:
        self.strategy = strategy
        super().__init__(f"{strategy}: {message}")


class DownloadTimeout(ExtractionMiss):
    """The export download did not complete in time."""

    pass


class AllStrategiesExhausted(ChainProbeError):
    """Every configured strategy for a metric missed. Recorded, never raised."""

    def __init__(self, metric: str, attempts: Sequence[str]) -> None:
        self.metric = metric
        self.attempts = list(attempts)
        tried = ", ".join(self.attempts) or "none"
        super().__init__(f"all strategies exhausted for '{metric}' (tried: {tried})")
