"""
Value extraction: strategies, the fallback chain, and numeric parsing.
"""

from .csv_download import CsvLatest, parse_latest_csv_value
from .manager import STRATEGY_REGISTRY, ExtractorManager
from .numeric import extract_numeric
from .protocols import Strategy, StrategyContext

__all__ = [
    "CsvLatest",
    "ExtractorManager",
    "STRATEGY_REGISTRY",
    "Strategy",
    "StrategyContext",
    "extract_numeric",
    "parse_latest_csv_value",
]
