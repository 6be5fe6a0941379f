"""
Block-access classification for loaded pages.

A verdict is built from four independent rules: the HTTP status of the main
document, text signatures in the title and body, visible challenge-wrapper
elements, and blocking network/console observations recorded during the
session. Any rule can mark the fetch blocked and each contributes its own
reason.
"""

from __future__ import annotations

import re
from typing import List, Optional, Pattern, Tuple

import structlog

from chainprobe.config.config import ClassifierConfig
from chainprobe.fetcher.network import NetworkMonitor
from chainprobe.protocols import BlockVerdict, FetchResult, PageProtocol

logger = structlog.get_logger(__name__)

STATUS_REASONS = {
    403: "status 403: forbidden",
    429: "status 429: rate limited",
}


def _dedupe(items: List[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(items))


class BlockClassifier:
    """Decides whether a fetch was blocked and why."""

    def __init__(self, config: Optional[ClassifierConfig] = None) -> None:
        self.config = config or ClassifierConfig()
        self._signatures: List[Tuple[str, Pattern[str]]] = [
            (name, re.compile(pattern, re.IGNORECASE)) for name, pattern in self.config.text_signatures.items()
        ]
        self.logger = logger.bind(component="BlockClassifier")

    def status_signals(self, status_code: Optional[int]) -> Tuple[List[str], List[str]]:
        """Return (blocking reasons, suspicious notes) for a main-document status."""
        if status_code is None:
            return [], ["no main document response"]
        if status_code in STATUS_REASONS:
            return [STATUS_REASONS[status_code]], []
        if status_code >= 500:
            return [], [f"status {status_code}: server error"]
        return [], []

    def text_signals(self, title: str, body: str) -> List[str]:
        haystack = f"{title}\n{body}"
        return [f"text signature '{name}'" for name, pattern in self._signatures if pattern.search(haystack)]

    async def marker_signals(self, page: PageProtocol) -> List[str]:
        reasons: List[str] = []
        for selector in self.config.challenge_selectors:
            try:
                elements = await page.locate_all(selector)
                for element in elements:
                    if await element.is_visible():
                        reasons.append(f"challenge marker '{selector}'")
                        break
            except Exception as e:
                self.logger.debug("Challenge selector check failed", selector=selector, error=str(e))
        return reasons

    @staticmethod
    def network_signals(monitor: NetworkMonitor) -> List[str]:
        return [observation.describe() for observation in monitor.observations]

    async def classify(self, fetch: FetchResult) -> BlockVerdict:
        """Derive the verdict for one fetch. Read failures count as empty text, never as blocking."""
        reasons, suspicious = self.status_signals(fetch.status_code)

        title = await self._read(fetch.page.title, "title")
        body = await self._read(fetch.page.body_text, "body")
        reasons.extend(self.text_signals(title, body))
        reasons.extend(await self.marker_signals(fetch.page))
        reasons.extend(self.network_signals(fetch.network))

        verdict = BlockVerdict(blocked=bool(reasons), reasons=_dedupe(reasons), suspicious=_dedupe(suspicious))
        if verdict.blocked:
            self.logger.warning("Fetch classified as blocked", url=fetch.final_url, reasons=list(verdict.reasons))
        else:
            self.logger.debug("Fetch not blocked", url=fetch.final_url, suspicious=list(verdict.suspicious))
        return verdict

    def merge_network(self, verdict: BlockVerdict, monitor: NetworkMonitor) -> BlockVerdict:
        """Fold observations recorded after ``verdict`` was made into a new verdict."""
        late = [reason for reason in self.network_signals(monitor) if reason not in verdict.reasons]
        if not late:
            return verdict
        self.logger.info("Late blocking signals observed", reasons=late)
        return BlockVerdict(blocked=True, reasons=_dedupe([*verdict.reasons, *late]), suspicious=verdict.suspicious)

    async def _read(self, reader, what: str) -> str:
        try:
            return await reader() or ""
        except Exception as e:
            self.logger.debug("Could not read page text for classification", part=what, error=str(e))
            return ""
