"""Logging and metrics for chainprobe runs."""

from __future__ import annotations

from .logging import configure_logging
from .metrics import METRICS, increment, observe, write_metrics_file

__all__ = ["configure_logging", "METRICS", "increment", "observe", "write_metrics_file"]
