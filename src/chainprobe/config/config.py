"""
Configuration management for chainprobe using Pydantic.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chainprobe.errors import ConfigError
from chainprobe.normalizer import known_units
from chainprobe.protocols import WaitPolicy

# --- Setup Logging ---
log = logging.getLogger(__name__)

# --- Metric and Strategy Definitions ---


class PlausibleRange(BaseModel):
    """Exclusive sanity bounds for a metric value."""

    model_config = ConfigDict(frozen=True)

    min: float = 0.0
    max: float

    @model_validator(mode="after")
    def check_order(self) -> PlausibleRange:
        if self.min >= self.max:
            raise ValueError(f"plausible range min ({self.min}) must be below max ({self.max})")
        return self

    def contains(self, value: Optional[float]) -> bool:
        return value is not None and self.min < value < self.max

    def within(self, other: PlausibleRange) -> bool:
        return other.min <= self.min and self.max <= other.max


class _StrategyBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    plausible_range: Optional[PlausibleRange] = Field(
        default=None, description="Narrower range for this strategy only. Must sit inside the metric range."
    )


class LabeledCardSpec(_StrategyBase):
    kind: Literal["labeled_card"] = "labeled_card"
    labels: List[str]
    card_selector: str = ".big-data"
    title_selector: str = ".bd-title"
    value_selector: str = ".bd-data"
    wait_timeout_ms: int = 15000


class LabelProximitySpec(_StrategyBase):
    kind: Literal["label_proximity"] = "label_proximity"
    labels: List[str]
    depth: int = Field(default=1, ge=0, le=5)


class SelectorScanSpec(_StrategyBase):
    kind: Literal["selector_scan"] = "selector_scan"
    selectors: List[str]
    text_filter: Literal["unit", "unit_or_bare", "any"] = Field(
        default="unit_or_bare",
        description="Element texts to consider: 'unit' needs a unit keyword, 'unit_or_bare' also takes bare numbers.",
    )
    max_text_length: Optional[int] = None
    per_selector_limit: int = 200
    prefer: Literal["first", "smallest"] = "first"


class ChartProbeSpec(_StrategyBase):
    kind: Literal["chart_probe"] = "chart_probe"
    chart_selectors: List[str] = Field(default_factory=lambda: ["canvas", "svg", ".chart", '[class*="chart"]'])
    x_positions: List[float] = Field(default_factory=lambda: [0.95, 0.90, 0.85])
    y_position: float = 0.5
    settle_ms: int = 2000
    min_width: float = 200
    min_height: float = 100
    wait_timeout_ms: int = 10000

    @field_validator("x_positions")
    @classmethod
    def check_positions(cls, v: List[float]) -> List[float]:
        if not v or any(not 0.0 <= x <= 1.0 for x in v):
            raise ValueError("x_positions must be non-empty ratios between 0 and 1")
        return v


class TextScanSpec(_StrategyBase):
    kind: Literal["text_scan"] = "text_scan"
    patterns: List[str] = Field(default_factory=list)
    keyword: Optional[str] = None

    @field_validator("patterns")
    @classmethod
    def check_patterns(cls, v: List[str]) -> List[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid pattern {pattern!r}: {e}") from e
        return v


class CsvDownloadSpec(_StrategyBase):
    kind: Literal["csv_download"] = "csv_download"
    trigger_selectors: List[str] = Field(
        default_factory=lambda: [
            "text=CSV Data",
            "text=Download",
            'svg[class*="iconify"]',
            '[class*="download"]',
            'a[href*="csv"]',
            'button[class*="download"]',
        ]
    )
    trigger_texts: List[str] = Field(default_factory=lambda: ["CSV"])
    download_timeout_ms: int = 15000


class TableScanSpec(_StrategyBase):
    kind: Literal["table_scan"] = "table_scan"
    labels: List[str]
    row_selectors: List[str] = Field(default_factory=lambda: ["tr", '[role="row"]'])


class FollowLinkSpec(_StrategyBase):
    kind: Literal["follow_link"] = "follow_link"
    anchor_text: str
    link_selector: str = "a[href]"
    depth: int = Field(default=2, ge=0, le=6)
    wait_timeout_ms: int = 10000
    wait_policy: WaitPolicy = WaitPolicy.NETWORK_IDLE
    navigation_timeout_ms: int = 30000
    then: List[StrategySpec]


StrategySpec = Annotated[
    Union[
        LabeledCardSpec,
        LabelProximitySpec,
        SelectorScanSpec,
        ChartProbeSpec,
        TextScanSpec,
        CsvDownloadSpec,
        TableScanSpec,
        FollowLinkSpec,
    ],
    Field(discriminator="kind"),
]

FollowLinkSpec.model_rebuild()


class MetricSpec(BaseModel):
    """One numeric fact to recover from a target page."""

    model_config = ConfigDict(frozen=True)

    name: str
    unit: str
    plausible_range: PlausibleRange
    strategies: List[StrategySpec]
    raw_field: Optional[str] = None
    # output names for extra match details, e.g. {"wei": "avg_gas_price_wei"}
    context_fields: Dict[str, str] = Field(default_factory=dict)

    @field_validator("unit")
    @classmethod
    def check_unit(cls, v: str) -> str:
        if v not in known_units():
            raise ValueError(f"unknown unit '{v}'. Known units: {known_units()}")
        return v

    @field_validator("strategies")
    @classmethod
    def check_strategies(cls, v: List[Any]) -> List[Any]:
        if not v:
            raise ValueError("a metric needs at least one strategy")
        return v

    @model_validator(mode="after")
    def check_overrides(self) -> MetricSpec:
        for spec in _walk_specs(self.strategies):
            if spec.plausible_range is not None and not spec.plausible_range.within(self.plausible_range):
                raise ValueError(
                    f"{spec.kind} range {spec.plausible_range.min}..{spec.plausible_range.max} "
                    f"is wider than metric range for '{self.name}'"
                )
        return self

    @property
    def output_raw_field(self) -> str:
        return self.raw_field or f"{self.name}_raw"


def _walk_specs(specs: List[Any]) -> List[Any]:
    flat: List[Any] = []
    for spec in specs:
        flat.append(spec)
        if isinstance(spec, FollowLinkSpec):
            flat.extend(_walk_specs(spec.then))
    return flat


class TargetConfig(BaseModel):
    """A website to scrape and the metrics it exposes."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    description: str = ""
    source: Optional[str] = None
    wait_policy: WaitPolicy = WaitPolicy.NETWORK_IDLE
    navigation_timeout_ms: int = Field(default=60000, gt=0)
    detect_blocking: bool = False
    abort_on_block: bool = False
    metrics: List[MetricSpec]

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"target url must be http(s): {v}")
        return v

    @model_validator(mode="after")
    def check_metric_names(self) -> TargetConfig:
        fields: List[str] = []
        for metric in self.metrics:
            fields.extend([metric.name, metric.output_raw_field, *metric.context_fields.values()])
        duplicates = {name for name in fields if fields.count(name) > 1}
        if duplicates:
            raise ValueError(f"duplicate output fields in target '{self.name}': {sorted(duplicates)}")
        return self


# --- Nested Configuration Models ---


class FetcherConfig(BaseModel):
    """Browser session configuration."""

    headless: bool = Field(default=True, description="Run chromium without a window.")
    stealth: bool = Field(default=True, description="Suppress common automation fingerprints.")
    browser_channel: Optional[str] = Field(default=None, description="Playwright channel, e.g. 'chrome'.")
    post_load_wait_ms: int = Field(default=0, ge=0, description="Extra settle time after navigation.")


class ClientIdentityConfig(BaseModel):
    """How the browser presents itself."""

    user_agent: Optional[str] = Field(default=None, description="Fixed User-Agent. None picks a desktop agent.")
    viewport_width: int = 1920
    viewport_height: int = 1080
    locale: str = "en-US"
    timezone_id: str = "America/New_York"
    extra_http_headers: Dict[str, str] = Field(
        default_factory=lambda: {"Accept-Language": "en-US,en;q=0.9", "Upgrade-Insecure-Requests": "1"}
    )


class ClassifierConfig(BaseModel):
    """Block-access signatures. Patterns are matched case-insensitively."""

    text_signatures: Dict[str, str] = Field(
        default_factory=lambda: {
            "challenge verification": (
                r"just a moment|checking your browser|verify you are human|cf-browser-verification"
            ),
            "captcha": r"captcha",
            "bot detection": r"bot detection|are you a robot|automated (?:access|requests?)",
            "ddos protection": r"ddos protection|attention required",
            "access denied": r"access denied|request blocked|you have been blocked",
        }
    )
    challenge_selectors: List[str] = Field(
        default_factory=lambda: [
            "#challenge-form",
            "#challenge-running",
            "#cf-challenge-running",
            ".cf-browser-verification",
            "#px-captcha",
            ".g-recaptcha",
            'iframe[src*="captcha"]',
            'iframe[src*="challenge"]',
        ]
    )
    console_patterns: List[str] = Field(
        default_factory=lambda: [
            r"\b403\b",
            r"\b429\b",
            r"\bforbidden\b",
            r"captcha",
            r"\brate[- ]?limit",
            r"\baccess denied\b",
            r"\byou have been blocked\b|\brequest blocked\b|\bblocked by (?:the )?(?:waf|firewall|cloudflare)\b",
        ]
    )

    @field_validator("text_signatures")
    @classmethod
    def check_signatures(cls, v: Dict[str, str]) -> Dict[str, str]:
        for name, pattern in v.items():
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid signature '{name}': {e}") from e
        return v

    @field_validator("console_patterns")
    @classmethod
    def check_console_patterns(cls, v: List[str]) -> List[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid console pattern '{pattern}': {e}") from e
        return v


class ExtractionSettings(BaseModel):
    """Configuration for the per-metric strategy chain."""

    disabled_strategies: List[str] = Field(
        default_factory=list, description="Strategy kinds to skip everywhere, e.g. ['chart_probe']."
    )

    @field_validator("disabled_strategies")
    @classmethod
    def validate_disabled(cls, v: List[str]) -> List[str]:
        known = {
            "labeled_card",
            "label_proximity",
            "selector_scan",
            "chart_probe",
            "text_scan",
            "csv_download",
            "table_scan",
            "follow_link",
        }
        unknown = [name for name in v if name not in known]
        if unknown:
            raise ValueError(f"Unknown strategies in disabled_strategies: {unknown}. Available: {sorted(known)}")
        return v


class OrchestratorConfig(BaseModel):
    target_timeout_seconds: float = Field(default=180.0, gt=0, description="Wall-clock limit per target run.")


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: Optional[str] = Field(default=None, description="Path to log file. If None, logs go to stderr.")
    json_logs: bool = Field(default=False, description="Render logs as JSON lines.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


def _default_targets() -> List[TargetConfig]:
    from chainprobe.config.targets import builtin_targets

    return builtin_targets()


class Config(BaseSettings):
    project_name: str = "chainprobe"
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    identity: ClientIdentityConfig = Field(default_factory=ClientIdentityConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    targets: List[TargetConfig] = Field(default_factory=_default_targets)

    model_config = SettingsConfigDict(env_prefix="CHAINPROBE_", env_nested_delimiter="__", case_sensitive=False)

    @field_validator("targets")
    @classmethod
    def check_unique_names(cls, v: List[TargetConfig]) -> List[TargetConfig]:
        names = [target.name for target in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate target names: {duplicates}")
        return v

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)

    def select_targets(self, names: Tuple[str, ...] | List[str] = ()) -> List[TargetConfig]:
        """Targets matching ``names`` (case-insensitive), or all of them."""
        if not names:
            return list(self.targets)
        by_name = {target.name.lower(): target for target in self.targets}
        missing = [name for name in names if name.lower() not in by_name]
        if missing:
            raise ConfigError(f"Unknown target(s): {missing}. Configured: {sorted(by_name)}")
        return [by_name[name.lower()] for name in names]


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    for path in (current_dir / "chainprobe.yaml", current_dir / "chainprobe.yml"):
        if path.exists():
            return path
    return None


def load_config(path: Optional[Path] = None) -> Config:
    """Load from ``path``, else from a config file in the working directory, else defaults."""
    config_path = path or find_config_file()
    if config_path is None:
        log.info("No config file found. Using built-in targets and default settings.")
        return Config()
    try:
        log.info("Loading configuration from: %s", config_path)
        return Config.from_yaml(config_path)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in '{config_path}': {e}") from e
