"""
String slugification for result keys and file names.
"""

import re
from typing import Optional

UNSAFE_CHARS_PATTERN = re.compile(r"[^A-Za-z0-9]")


def slugify(text: str, replacement: str = "-", max_length: Optional[int] = 200, lowercase: bool = True) -> str:
    """
    Convert a string to a safe slug.

    Every character outside ``[A-Za-z0-9]`` becomes ``replacement``; runs of
    the replacement collapse and are trimmed from both ends.

    Examples:
        >>> slugify("Hiro/STX", "_")
        'hiro_stx'

        >>> slugify("Core DAO", "_")
        'core_dao'

        >>> slugify("  ")
        ''
    """
    if not text or not text.strip():
        return ""

    result = UNSAFE_CHARS_PATTERN.sub(replacement, text.strip())

    if len(replacement) == 1:
        result = re.sub(f"{re.escape(replacement)}+", replacement, result)

    result = result.strip(replacement)

    if lowercase:
        result = result.lower()

    if max_length and len(result) > max_length:
        result = result[:max_length].rstrip(replacement)

    return result


def target_key(name: str) -> str:
    """Key under which a target's record appears in the run summary."""
    return slugify(name, replacement="_") or "target"
