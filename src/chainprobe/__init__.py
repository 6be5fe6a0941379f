"""
chainprobe - headless-browser collector for blockchain explorer metrics.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .pipeline import Orchestrator, TargetRunner

__all__ = ["__version__", "Config", "Orchestrator", "TargetRunner"]
