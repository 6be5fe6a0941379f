"""
Session-wide network and console observation.

Challenge pages often load fine at the document level while the XHRs that
carry the data come back 403/429, or scripts log a block notice to the
console. ``NetworkMonitor`` keeps those signals for the classifier.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional, Pattern

import structlog

from chainprobe.protocols import NetworkObservation, ObservationKind

logger = structlog.get_logger(__name__)

BLOCKING_STATUSES = frozenset({403, 429})


class NetworkMonitor:
    """Collects blocking-relevant observations for one browser session."""

    def __init__(self, console_patterns: Optional[Iterable[str]] = None) -> None:
        self.console_patterns: List[Pattern[str]] = [re.compile(p, re.IGNORECASE) for p in (console_patterns or ())]
        self._observations: List[NetworkObservation] = []
        self.logger = logger.bind(component="NetworkMonitor")

    @property
    def observations(self) -> List[NetworkObservation]:
        return list(self._observations)

    def record_response(self, url: str, status: int) -> None:
        if status not in BLOCKING_STATUSES:
            return
        self._observations.append(
            NetworkObservation(kind=ObservationKind.RESPONSE, detail=f"HTTP {status}", url=url, status=status)
        )
        self.logger.debug("Blocking subresource status", url=url, status=status)

    def record_console(self, message_type: str, text: str) -> None:
        if message_type != "error":
            return
        if not any(pattern.search(text) for pattern in self.console_patterns):
            return
        self._observations.append(NetworkObservation(kind=ObservationKind.CONSOLE, detail=text[:200]))
        self.logger.debug("Blocking console error", text=text[:200])

    def attach(self, page: Any) -> None:
        """Subscribe to a Playwright page's ``response`` and ``console`` events."""

        def on_response(response: Any) -> None:
            try:
                request = response.request
                if request.is_navigation_request() and response.frame == page.main_frame:
                    return
                self.record_response(response.url, response.status)
            except Exception as e:
                self.logger.debug("Ignoring unreadable response event", error=str(e))

        def on_console(message: Any) -> None:
            self.record_console(message.type, message.text)

        page.on("response", on_response)
        page.on("console", on_console)
