"""Utility helpers for chainprobe."""

from .atomic import atomic_write_json, atomic_write_text
from .slugify import slugify, target_key

__all__ = ["atomic_write_json", "atomic_write_text", "slugify", "target_key"]
