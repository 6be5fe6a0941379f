"""
Generic numeric extraction with plausibility gating.
"""

from __future__ import annotations

from typing import Optional, Protocol

from chainprobe.normalizer import NormalizedValue, find_bare_numbers, find_unit_values


class RangeLike(Protocol):
    def contains(self, value: Optional[float]) -> bool: ...


def extract_numeric(text: Optional[str], unit: str, plausible_range: RangeLike) -> Optional[NormalizedValue]:
    """
    Recover one number from free text.

    Unit-qualified matches (``12.5 Gwei``, ``$0.73``, ``200,000 µSTX``) are
    tried first, in document order, and the first one inside
    ``plausible_range`` wins. When the text holds no unit-qualified match at
    all, the first bare number is accepted if it is in range. The bare path
    can pick up unrelated numbers (dates, counters) that happen to be in
    range.
    """
    if not text:
        return None

    seen_qualified = False
    for candidate in find_unit_values(text, unit):
        seen_qualified = True
        if plausible_range.contains(candidate.value):
            return candidate
    if seen_qualified:
        return None

    for candidate in find_bare_numbers(text):
        return candidate if plausible_range.contains(candidate.value) else None
    return None
