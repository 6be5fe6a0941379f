"""
Core data records and browser collaborator protocols for chainprobe.

Everything above the fetcher talks to pages through ``PageProtocol`` and
``ElementProtocol`` so the extraction core can be exercised without a
browser.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

if TYPE_CHECKING:
    from .fetcher.network import NetworkMonitor

# ============================================================================
# Enums
# ============================================================================


class WaitPolicy(str, Enum):
    """When navigation is considered complete."""

    NETWORK_IDLE = "networkidle"
    DOM_CONTENT_LOADED = "domcontentloaded"
    LOAD = "load"


class RunStatus(str, Enum):
    """Outcome of a single target run."""

    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


class ObservationKind(str, Enum):
    RESPONSE = "response"
    CONSOLE = "console"


# ============================================================================
# Browser collaborator
# ============================================================================


@dataclass(slots=True, frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float


@runtime_checkable
class ElementProtocol(Protocol):
    """A rendered element on a loaded page."""

    async def text(self) -> str: ...

    async def is_visible(self) -> bool: ...

    async def bounding_box(self) -> Optional[BoundingBox]: ...

    async def get_attribute(self, name: str) -> Optional[str]: ...

    async def is_clickable(self) -> bool:
        """True when the element itself reacts to clicks (link, button, handler, pointer cursor)."""
        ...

    async def parent(self) -> Optional[ElementProtocol]: ...

    async def locate_all(self, selector: str) -> List[ElementProtocol]: ...

    async def click(self) -> None: ...


@runtime_checkable
class PageProtocol(Protocol):
    """A loaded page, as seen by the classifier and the extraction strategies."""

    @property
    def url(self) -> str: ...

    async def title(self) -> str: ...

    async def body_text(self) -> str: ...

    async def locate_all(self, selector: str) -> List[ElementProtocol]: ...

    async def find_by_text(self, text: str, exact: bool = False) -> List[ElementProtocol]: ...

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        """Wait until a visible element matches. Returns False on timeout."""
        ...

    async def probe_chart(
        self, chart: ElementProtocol, x_ratio: float, y_ratio: float, settle_ms: int
    ) -> List[str]:
        """Hover the chart at a relative position and return the visible texts afterwards."""
        ...

    async def download(self, trigger: ElementProtocol, timeout_ms: int) -> str:
        """Click ``trigger`` and return the downloaded file's text. Raises DownloadTimeout."""
        ...

    async def goto(self, url: str, wait_policy: WaitPolicy, timeout_ms: int) -> Optional[int]: ...


# ============================================================================
# Fetch and classification records
# ============================================================================


@dataclass(slots=True, frozen=True)
class NetworkObservation:
    """A subsidiary response or console message seen during the session."""

    kind: ObservationKind
    detail: str
    url: Optional[str] = None
    status: Optional[int] = None

    def describe(self) -> str:
        if self.kind is ObservationKind.RESPONSE:
            return f"subresource {self.status} from {self.url}"
        return f"console error: {self.detail}"


@dataclass(slots=True)
class FetchResult:
    """A loaded page plus what the fetcher learned while loading it."""

    page: PageProtocol
    requested_url: str
    final_url: str
    status_code: Optional[int]
    network: NetworkMonitor
    elapsed_seconds: float = 0.0


@dataclass(slots=True, frozen=True)
class BlockVerdict:
    """Classifier judgment. A blocked verdict always carries at least one reason."""

    blocked: bool
    reasons: Tuple[str, ...] = ()
    suspicious: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.blocked and not self.reasons:
            raise ValueError("A blocked verdict requires at least one reason")

    @classmethod
    def clear(cls) -> BlockVerdict:
        return cls(blocked=False)


# ============================================================================
# Extraction records
# ============================================================================


@dataclass(slots=True, frozen=True)
class ExtractedValue:
    """One recovered numeric fact, in canonical units."""

    metric: str
    value: Optional[float]
    raw: Optional[str]
    strategy: Optional[str] = None
    context: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.value is None and self.raw is not None:
            raise ValueError("An absent value cannot carry raw text")

    @classmethod
    def absent(cls, metric: str) -> ExtractedValue:
        return cls(metric=metric, value=None, raw=None)

    @property
    def found(self) -> bool:
        return self.value is not None


@dataclass(slots=True, frozen=True)
class MetricOutcome:
    """Final state of one metric after its strategy chain ran."""

    metric: str
    raw_field: str
    extracted: ExtractedValue
    reason: Optional[str] = None
    attempts: Tuple[str, ...] = ()
    context_fields: Mapping[str, str] = field(default_factory=dict)

    @property
    def value(self) -> Optional[float]:
        return self.extracted.value


@dataclass(slots=True, frozen=True)
class MetricResultSet:
    """Immutable per-target result record."""

    target: str
    timestamp: str
    outcomes: Tuple[MetricOutcome, ...]
    source: Optional[str] = None
    verdict: Optional[BlockVerdict] = None
    error: Optional[str] = None

    def get(self, metric: str) -> Optional[MetricOutcome]:
        for outcome in self.outcomes:
            if outcome.metric == metric:
                return outcome
        return None

    @property
    def values(self) -> Dict[str, Optional[float]]:
        return {outcome.metric: outcome.value for outcome in self.outcomes}

    @property
    def found_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.value is not None)

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"target": self.target, "source": self.source, "timestamp": self.timestamp}
        for outcome in self.outcomes:
            record[outcome.metric] = outcome.extracted.value
            record[outcome.raw_field] = outcome.extracted.raw
            for key, name in outcome.context_fields.items():
                record[name] = outcome.extracted.context.get(key)
            for key, value in outcome.extracted.context.items():
                if key not in outcome.context_fields:
                    record[f"{outcome.metric}_{key}"] = value
        if self.verdict is not None:
            record["blocked"] = self.verdict.blocked
            record["reasons"] = list(self.verdict.reasons)
            record["suspicious"] = list(self.verdict.suspicious)
        if self.error is not None:
            record["error"] = self.error
        return record


# ============================================================================
# Run records
# ============================================================================


@dataclass(slots=True, frozen=True)
class TargetRunResult:
    key: str
    result: MetricResultSet
    status: RunStatus = RunStatus.SUCCESS
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.SUCCESS


@dataclass(slots=True, frozen=True)
class RunSummary:
    """Aggregate over all targets of one run."""

    timestamp: str
    results: Tuple[TargetRunResult, ...]

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "summary": {"total": self.total, "successful": self.successful, "failed": self.failed},
            "data": {result.key: result.result.to_dict() for result in self.results},
            "errors": {result.key: result.error for result in self.results if not result.ok},
        }
