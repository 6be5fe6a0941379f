"""
Run orchestration: one sequential run per target, targets in parallel.

Each target gets its own browser session and shares nothing with the
others, so no locks are needed. A target that fails to load, or exceeds its
wall-clock limit, is reported in the summary without affecting the rest.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Callable, Iterable, List, Optional

import structlog

from chainprobe.assembler import ResultAssembler, utc_timestamp
from chainprobe.classifier import BlockClassifier
from chainprobe.config.config import Config, TargetConfig
from chainprobe.errors import BlockedError, NavigationError
from chainprobe.extractor.manager import ExtractorManager
from chainprobe.observability.metrics import increment, observe
from chainprobe.protocols import BlockVerdict, MetricOutcome, RunStatus, RunSummary, TargetRunResult
from chainprobe.utils.slugify import target_key

logger = structlog.get_logger(__name__)


def create_run_id() -> str:
    return uuid.uuid4().hex[:12]


class TargetRunner:
    """Fetch, classify, extract and assemble for a single target."""

    def __init__(
        self,
        config: Config,
        fetcher_factory: Optional[Callable[[], Any]] = None,
        manager: Optional[ExtractorManager] = None,
        classifier: Optional[BlockClassifier] = None,
        assembler: Optional[ResultAssembler] = None,
    ) -> None:
        self.config = config
        self.fetcher_factory = fetcher_factory or self._default_fetcher
        self.manager = manager or ExtractorManager(config.extraction)
        self.classifier = classifier or BlockClassifier(config.classifier)
        self.assembler = assembler or ResultAssembler()
        self.logger = logger.bind(component="TargetRunner")

    def _default_fetcher(self) -> Any:
        from chainprobe.fetcher.page_fetcher import PageFetcher

        return PageFetcher(self.config.fetcher, self.config.identity, self.config.classifier.console_patterns)

    async def run(self, target: TargetConfig) -> TargetRunResult:
        key = target_key(target.name)
        log = self.logger.bind(target=target.name)
        start = time.monotonic()
        verdict: Optional[BlockVerdict] = None
        outcomes: List[MetricOutcome] = []

        log.info("Starting target run", url=target.url, detect_blocking=target.detect_blocking)
        try:
            async with self.fetcher_factory() as fetcher:
                fetch = await fetcher.fetch(target.url, target.wait_policy, target.navigation_timeout_ms)

                if target.detect_blocking:
                    verdict = await self.classifier.classify(fetch)
                    if verdict.blocked:
                        increment("blocked_verdicts", labels={"target": target.name})
                        if target.abort_on_block:
                            raise BlockedError(verdict)
                        log.warning("Page looks blocked, extracting anyway", reasons=list(verdict.reasons))

                for metric in target.metrics:
                    outcomes.append(await self.manager.extract_metric(fetch.page, metric, target=target.name))

                if verdict is not None:
                    verdict = self.classifier.merge_network(verdict, fetch.network)

        except NavigationError as e:
            log.error("Navigation failed", kind=e.kind, error=e.message)
            return self._failed(key, target, e, start)
        except BlockedError as e:
            log.error("Aborting blocked target", reasons=list(e.verdict.reasons))
            return self._failed(key, target, e, start, verdict=e.verdict)

        duration = time.monotonic() - start
        result = self.assembler.assemble(target, outcomes, verdict=verdict)
        observe("target_duration_seconds", duration, labels={"target": target.name})

        for outcome in result.outcomes:
            if outcome.value is None:
                increment("metric_misses", labels={"target": target.name, "metric": outcome.metric})

        if result.found_count == 0:
            log.warning("No metric values extracted", duration=round(duration, 2))

        log.info(
            "Target run complete",
            found=result.found_count,
            total=len(result.outcomes),
            duration=round(duration, 2),
        )
        increment("target_runs", labels={"target": target.name, "status": RunStatus.SUCCESS.value})
        return TargetRunResult(key=key, result=result, duration_seconds=duration)

    def _failed(
        self,
        key: str,
        target: TargetConfig,
        error: BaseException,
        start: float,
        verdict: Optional[BlockVerdict] = None,
    ) -> TargetRunResult:
        duration = time.monotonic() - start
        increment("target_runs", labels={"target": target.name, "status": RunStatus.FAILED.value})
        observe("target_duration_seconds", duration, labels={"target": target.name})
        return TargetRunResult(
            key=key,
            result=self.assembler.assemble_failure(target, error, verdict=verdict),
            status=RunStatus.FAILED,
            error=f"{type(error).__name__}: {error}",
            duration_seconds=duration,
        )


class Orchestrator:
    """Runs every selected target concurrently and aggregates the results."""

    def __init__(self, config: Config, runner: Optional[TargetRunner] = None) -> None:
        self.config = config
        self.runner = runner or TargetRunner(config)
        self.logger = logger.bind(component="Orchestrator")

    async def run(self, targets: Optional[Iterable[TargetConfig]] = None) -> RunSummary:
        selected = list(targets) if targets is not None else list(self.config.targets)
        run_id = create_run_id()
        structlog.contextvars.bind_contextvars(run_id=run_id)
        try:
            self.logger.info("Run started", targets=[target.name for target in selected])
            results = await asyncio.gather(*(self._run_one(target) for target in selected))
        finally:
            structlog.contextvars.unbind_contextvars("run_id")

        summary = RunSummary(timestamp=utc_timestamp(), results=tuple(self._unique_keys(results)))
        self.logger.info(
            "Run finished",
            run_id=run_id,
            total=summary.total,
            successful=summary.successful,
            failed=summary.failed,
        )
        return summary

    async def _run_one(self, target: TargetConfig) -> TargetRunResult:
        timeout = self.config.orchestrator.target_timeout_seconds
        start = time.monotonic()
        try:
            return await asyncio.wait_for(self.runner.run(target), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.error("Target run timed out", target=target.name, timeout_seconds=timeout)
            increment("target_runs", labels={"target": target.name, "status": RunStatus.TIMEOUT.value})
            message = f"target run exceeded {timeout:g}s"
            return TargetRunResult(
                key=target_key(target.name),
                result=self.runner.assembler.assemble_failure(target, message),
                status=RunStatus.TIMEOUT,
                error=message,
                duration_seconds=time.monotonic() - start,
            )
        except Exception as e:
            self.logger.error(
                "Target run crashed",
                target=target.name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            increment("target_runs", labels={"target": target.name, "status": RunStatus.FAILED.value})
            return TargetRunResult(
                key=target_key(target.name),
                result=self.runner.assembler.assemble_failure(target, e),
                status=RunStatus.FAILED,
                error=f"{type(e).__name__}: {e}",
                duration_seconds=time.monotonic() - start,
            )

    @staticmethod
    def _unique_keys(results: Iterable[TargetRunResult]) -> List[TargetRunResult]:
        seen: dict[str, int] = {}
        unique: List[TargetRunResult] = []
        for result in results:
            count = seen.get(result.key, 0)
            seen[result.key] = count + 1
            if count:
                result = TargetRunResult(
                    key=f"{result.key}_{count + 1}",
                    result=result.result,
                    status=result.status,
                    error=result.error,
                    duration_seconds=result.duration_seconds,
                )
            unique.append(result)
        return unique
