"""Small helpers for walking rendered elements.

Elements can detach or time out between being located and being read. Every
helper here turns that into a neutral answer so a scan can move on to the
next element.
"""

from __future__ import annotations

from typing import Optional

import structlog

from chainprobe.protocols import BoundingBox, ElementProtocol

logger = structlog.get_logger(__name__)


def normalize_label(text: str) -> str:
    """Lowercase and collapse whitespace, for exact label comparison."""
    return " ".join(text.split()).lower()


async def read_text(element: ElementProtocol) -> str:
    """Element text, or "" when the element detached or timed out mid-scan."""
    try:
        return (await element.text()) or ""
    except Exception as e:
        logger.debug("Element text unreadable", error=str(e), error_type=type(e).__name__)
        return ""


async def is_visible(element: ElementProtocol) -> bool:
    try:
        return await element.is_visible()
    except Exception as e:
        logger.debug("Element visibility unreadable", error=str(e), error_type=type(e).__name__)
        return False


async def is_clickable(element: ElementProtocol) -> bool:
    try:
        return await element.is_clickable()
    except Exception as e:
        logger.debug("Element clickability unreadable", error=str(e), error_type=type(e).__name__)
        return False


async def bounding_box(element: ElementProtocol) -> Optional[BoundingBox]:
    try:
        return await element.bounding_box()
    except Exception as e:
        logger.debug("Element box unreadable", error=str(e), error_type=type(e).__name__)
        return None


async def parent_of(element: ElementProtocol) -> Optional[ElementProtocol]:
    try:
        return await element.parent()
    except Exception as e:
        logger.debug("Element parent unreadable", error=str(e), error_type=type(e).__name__)
        return None


async def ascend(element: ElementProtocol, depth: int) -> ElementProtocol:
    """Walk ``depth`` parents up, stopping at the top."""
    current = element
    for _ in range(depth):
        parent = await parent_of(current)
        if parent is None:
            break
        current = parent
    return current
