"""
Unit normalization for scraped numeric text.

Converts strings such as ``"26,065,600,000wei"`` or ``"200,000 µSTX"`` into
canonical units (gwei, STX, USD, seconds). Conversions go through
``decimal.Decimal`` so large integer wei amounts stay exact. Nothing in this
module raises on malformed input: callers get ``None`` instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterator, List, Optional, Pattern, Tuple, Union

NUMBER = r"(?<![\d.,])(?:\d[\d,]*(?:\.\d+)?|\.\d+)"
_NUMBER_RE = re.compile(NUMBER)
_PLAIN_NUMBER_RE = re.compile(r"^(?:\d+(?:\.\d+)?|\.\d+)$")
_INTEGER_RE = re.compile(r"^\d+$")

GWEI_PER_WEI = Decimal(10) ** 9
MICRO = Decimal(10) ** 6


def parse_number(text: str) -> Optional[Decimal]:
    """Parse ``"1,234.5"`` style text. Returns None for anything else."""
    if text is None:
        return None
    cleaned = text.strip().replace(",", "")
    if not _PLAIN_NUMBER_RE.match(cleaned):
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def wei_to_gwei(wei: Union[int, str]) -> Optional[float]:
    """Exact wei to gwei conversion. Strings may carry separators and a ``wei`` suffix."""
    amount = parse_wei(wei)
    if amount is None:
        return None
    return float(Decimal(amount) / GWEI_PER_WEI)


def parse_wei(wei: Union[int, str]) -> Optional[int]:
    """Integer wei amount from ``"26,065,600,000 wei"`` style text, or None."""
    if isinstance(wei, bool):
        return None
    if isinstance(wei, int):
        amount = wei
    else:
        cleaned = re.sub(r"wei$", "", wei.strip(), flags=re.IGNORECASE).replace(",", "").strip()
        if not _INTEGER_RE.match(cleaned):
            return None
        amount = int(cleaned)
    return amount if amount >= 0 else None


def micro_to_unit(micro: Union[int, str, Decimal]) -> Optional[float]:
    """µSTX (or any micro-denominated amount) to whole units."""
    amount = micro if isinstance(micro, Decimal) else parse_number(str(micro))
    if amount is None:
        return None
    return float(amount / MICRO)


@dataclass(frozen=True)
class UnitSpelling:
    """One way a unit is written next to a number."""

    label: str
    pattern: str
    divisor: Decimal = Decimal(1)
    prefix: bool = False
    converter: Optional[Callable[[str], Optional[float]]] = None
    # context key under which the exact matched amount is kept
    exact_key: Optional[str] = None

    def compile(self) -> Pattern[str]:
        if self.prefix:
            return re.compile(rf"(?P<unit>{self.pattern})\s*(?P<number>{NUMBER})", re.IGNORECASE)
        return re.compile(rf"(?P<number>{NUMBER})\s*(?P<unit>{self.pattern})(?![A-Za-z])", re.IGNORECASE)

    def convert(self, number: str) -> Optional[float]:
        if self.converter is not None:
            return self.converter(number)
        amount = parse_number(number)
        return None if amount is None else float(amount / self.divisor)


# Most specific spelling first within each unit.
UNIT_SPELLINGS: Dict[str, Tuple[UnitSpelling, ...]] = {
    "gwei": (
        UnitSpelling("gwei", r"g\s?wei"),
        UnitSpelling("wei", r"wei", converter=wei_to_gwei, exact_key="wei"),
    ),
    "stx": (
        UnitSpelling("µSTX", r"(?:[µμu]|micro-?)STX", converter=micro_to_unit),
        UnitSpelling("STX", r"STX"),
    ),
    "usd": (
        UnitSpelling("$", r"\$", prefix=True),
        UnitSpelling("USD", r"USD"),
    ),
    "seconds": (
        UnitSpelling("ms", r"ms", divisor=Decimal(1000)),
        UnitSpelling("s", r"s(?:ec(?:ond)?s?)?"),
    ),
    "number": (),
}

_COMPILED: Dict[str, List[Tuple[UnitSpelling, Pattern[str]]]] = {
    unit: [(spelling, spelling.compile()) for spelling in spellings] for unit, spellings in UNIT_SPELLINGS.items()
}

# Lowercase tokens whose presence marks text as unit-bearing.
UNIT_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "gwei": ("gwei", "wei"),
    "stx": ("stx",),
    "usd": ("$", "usd"),
    "seconds": (),
    "number": (),
}


@dataclass(frozen=True)
class NormalizedValue:
    value: float
    raw: str
    unit: Optional[str] = None
    context: Dict[str, str] = field(default_factory=dict)


def known_units() -> List[str]:
    return list(UNIT_SPELLINGS)


def contains_unit_keyword(text: str, unit: str) -> bool:
    lowered = text.lower()
    if unit == "seconds":
        return any(True for _ in find_unit_values(text, unit))
    return any(keyword in lowered for keyword in UNIT_KEYWORDS.get(unit, ()))


def find_unit_values(text: str, unit: str) -> Iterator[NormalizedValue]:
    """Yield every unit-qualified number in ``text``, in document order, converted to ``unit``."""
    if not text or unit not in _COMPILED:
        return
    hits: List[Tuple[int, int, NormalizedValue]] = []
    for spelling, pattern in _COMPILED[unit]:
        for match in pattern.finditer(text):
            number = match.group("number")
            converted = spelling.convert(number)
            if converted is None:
                continue
            context = {spelling.exact_key: number.replace(",", "")} if spelling.exact_key else {}
            value = NormalizedValue(converted, match.group(0).strip(), spelling.label, context)
            hits.append((match.start(), match.end(), value))

    hits.sort(key=lambda hit: hit[0])
    last_end = -1
    for start, end, value in hits:
        if start < last_end:
            continue
        last_end = end
        yield value


def find_bare_numbers(text: str) -> Iterator[NormalizedValue]:
    """Yield every number in ``text`` ignoring units."""
    if not text:
        return
    for match in _NUMBER_RE.finditer(text):
        try:
            amount = Decimal(match.group(0).replace(",", ""))
        except InvalidOperation:
            continue
        yield NormalizedValue(float(amount), match.group(0))


def normalize(raw: Optional[str], unit: str) -> Optional[NormalizedValue]:
    """
    Convert raw text to the canonical ``unit``.

    The first unit-qualified number wins. Text with no unit-qualified number
    falls back to its first bare number. Unknown units and unparseable text
    yield None.
    """
    if not raw or unit not in UNIT_SPELLINGS:
        return None
    for value in find_unit_values(raw, unit):
        return value
    for value in find_bare_numbers(raw):
        return value
    return None
