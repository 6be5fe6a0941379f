from .config import (
    ClassifierConfig,
    ClientIdentityConfig,
    Config,
    ExtractionSettings,
    FetcherConfig,
    MetricSpec,
    MonitoringConfig,
    OrchestratorConfig,
    PlausibleRange,
    TargetConfig,
    find_config_file,
    load_config,
)

__all__ = [
    "ClassifierConfig",
    "ClientIdentityConfig",
    "Config",
    "ExtractionSettings",
    "FetcherConfig",
    "MetricSpec",
    "MonitoringConfig",
    "OrchestratorConfig",
    "PlausibleRange",
    "TargetConfig",
    "find_config_file",
    "load_config",
]
