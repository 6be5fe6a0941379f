"""
Tests for target runs and the concurrent orchestrator, using fake fetchers.
"""

import pytest

from chainprobe.config.config import Config, OrchestratorConfig
from chainprobe.errors import NavigationError
from chainprobe.fetcher.network import NetworkMonitor
from chainprobe.pipeline import Orchestrator, TargetRunner, create_run_id
from chainprobe.protocols import RunStatus
from tests.helpers import FakeFetcher, FakePage, make_metric, make_target, metric_delta

GOOD_URL = "https://good.example/"
BAD_URL = "https://bad.example/"


def _runner(config, fetcher):
    return TargetRunner(config, fetcher_factory=lambda: fetcher)


def _config(*targets, timeout=5.0):
    return Config(targets=list(targets), orchestrator=OrchestratorConfig(target_timeout_seconds=timeout))


class TestTargetRunner:
    @pytest.mark.asyncio
    async def test_successful_run(self):
        target = make_target(name="Good Chain", url=GOOD_URL)
        fetcher = FakeFetcher({GOOD_URL: FakePage(GOOD_URL, body="Gas price 12 gwei")})

        with metric_delta("chainprobe_target_runs_total", {"target": "Good Chain", "status": "success"}):
            result = await _runner(_config(target), fetcher).run(target)

        assert result.ok
        assert result.key == "good_chain"
        assert result.result.values == {"avg_gas_price_gwei": 12}
        assert result.error is None
        assert fetcher.entered == fetcher.exited == 1

    @pytest.mark.asyncio
    async def test_navigation_failure_gives_all_null_record(self):
        target = make_target(url=BAD_URL)
        error = NavigationError(BAD_URL, "timeout", "Timeout 60000ms exceeded.")
        fetcher = FakeFetcher({BAD_URL: error})

        result = await _runner(_config(target), fetcher).run(target)

        assert result.status is RunStatus.FAILED
        assert result.error == f"NavigationError: timeout navigating to {BAD_URL}: Timeout 60000ms exceeded."
        record = result.result.to_dict()
        assert record["avg_gas_price_gwei"] is None
        assert record["error"] == result.error
        assert fetcher.exited == 1

    @pytest.mark.asyncio
    async def test_loaded_page_without_values_is_still_data(self):
        target = make_target(url=GOOD_URL)
        fetcher = FakeFetcher({GOOD_URL: FakePage(GOOD_URL, body="Gas price unavailable")})

        with metric_delta("chainprobe_target_runs_total", {"target": "Testnet", "status": "success"}):
            result = await _runner(_config(target), fetcher).run(target)

        assert result.ok
        assert result.status is RunStatus.SUCCESS
        assert result.error is None
        record = result.result.to_dict()
        assert record["avg_gas_price_gwei"] is None
        assert "error" not in record
        assert "all strategies exhausted" in result.result.get("avg_gas_price_gwei").reason

    @pytest.mark.asyncio
    async def test_blocked_page_extracts_anyway_by_default(self):
        target = make_target(url=GOOD_URL, detect_blocking=True)
        fetcher = FakeFetcher({GOOD_URL: FakePage(GOOD_URL, body="Gas price 12 gwei")}, status_code=403)

        result = await _runner(_config(target), fetcher).run(target)

        assert result.ok
        record = result.result.to_dict()
        assert record["blocked"] is True
        assert record["reasons"] == ["status 403: forbidden"]
        assert record["avg_gas_price_gwei"] == 12

    @pytest.mark.asyncio
    async def test_abort_on_block(self):
        target = make_target(url=GOOD_URL, detect_blocking=True, abort_on_block=True)
        fetcher = FakeFetcher({GOOD_URL: FakePage(GOOD_URL, title="Just a moment...")})

        result = await _runner(_config(target), fetcher).run(target)

        assert result.status is RunStatus.FAILED
        assert result.error.startswith("BlockedError: access blocked")
        assert result.result.to_dict()["blocked"] is True

    @pytest.mark.asyncio
    async def test_late_network_signals_merged(self):
        class LateMonitorPage(FakePage):
            def __init__(self, monitor, **kwargs):
                super().__init__(GOOD_URL, **kwargs)
                self.monitor = monitor
                self.reads = 0

            async def body_text(self):
                # first read is the classifier's, the second is extraction's
                self.reads += 1
                if self.reads == 2:
                    self.monitor.record_response("https://api.example/gas", 429)
                return await super().body_text()

        monitor = NetworkMonitor()
        target = make_target(url=GOOD_URL, detect_blocking=True)
        page = LateMonitorPage(monitor, body="Gas price 12 gwei")
        fetcher = FakeFetcher({GOOD_URL: page}, monitor=monitor)

        result = await _runner(_config(target), fetcher).run(target)

        assert result.result.verdict.blocked
        assert "subresource 429 from https://api.example/gas" in result.result.verdict.reasons

    @pytest.mark.asyncio
    async def test_metrics_run_sequentially_in_order(self):
        metrics = [
            make_metric(name="first_gwei"),
            make_metric(name="second_usd", unit="usd", strategies=[{"kind": "text_scan", "keyword": "$"}]),
        ]
        target = make_target(url=GOOD_URL, metrics=metrics)
        fetcher = FakeFetcher({GOOD_URL: FakePage(GOOD_URL, body="Gas 3 gwei\nPrice $0.73")})

        result = await _runner(_config(target), fetcher).run(target)

        assert result.result.values == {"first_gwei": 3, "second_usd": 0.73}


class TestOrchestrator:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self):
        good = make_target(name="Good", url=GOOD_URL)
        bad = make_target(name="Bad", url=BAD_URL)
        config = _config(good, bad)
        fetcher = FakeFetcher(
            {
                GOOD_URL: FakePage(GOOD_URL, body="Gas price 12 gwei"),
                BAD_URL: NavigationError(BAD_URL, "dns", "net::ERR_NAME_NOT_RESOLVED"),
            }
        )

        summary = await Orchestrator(config, runner=_runner(config, fetcher)).run()

        assert (summary.total, summary.successful, summary.failed) == (2, 1, 1)
        payload = summary.to_dict()
        assert payload["data"]["good"]["avg_gas_price_gwei"] == 12
        assert payload["data"]["bad"]["avg_gas_price_gwei"] is None
        assert list(payload["errors"]) == ["bad"]

    @pytest.mark.asyncio
    async def test_all_null_record_counts_as_successful(self):
        target = make_target(url=GOOD_URL)
        config = _config(target)
        fetcher = FakeFetcher({GOOD_URL: FakePage(GOOD_URL, body="Gas price unavailable")})

        summary = await Orchestrator(config, runner=_runner(config, fetcher)).run()

        payload = summary.to_dict()
        assert payload["summary"] == {"total": 1, "successful": 1, "failed": 0}
        assert payload["errors"] == {}
        assert payload["data"]["testnet"]["avg_gas_price_gwei"] is None

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self):
        slow = make_target(name="Slow", url=GOOD_URL)
        config = _config(slow, timeout=0.05)
        fetcher = FakeFetcher({GOOD_URL: FakePage(GOOD_URL, body="Gas price 12 gwei")}, delay=1.0)

        summary = await Orchestrator(config, runner=_runner(config, fetcher)).run()

        (result,) = summary.results
        assert result.status is RunStatus.TIMEOUT
        assert result.error == "target run exceeded 0.05s"
        assert result.result.to_dict()["avg_gas_price_gwei"] is None
        assert fetcher.exited == 1

    @pytest.mark.asyncio
    async def test_unexpected_crash_is_contained(self):
        target = make_target(name="Crashy", url=BAD_URL)
        config = _config(target)
        fetcher = FakeFetcher({BAD_URL: RuntimeError("browser died")})

        summary = await Orchestrator(config, runner=_runner(config, fetcher)).run()

        assert summary.results[0].status is RunStatus.FAILED
        assert summary.results[0].error == "RuntimeError: browser died"

    @pytest.mark.asyncio
    async def test_colliding_keys_are_suffixed(self):
        first = make_target(name="Hiro/STX", url=GOOD_URL)
        second = make_target(name="Hiro STX", url=GOOD_URL)
        config = _config(first, second)
        fetcher = FakeFetcher({GOOD_URL: FakePage(GOOD_URL, body="Gas price 12 gwei")})

        summary = await Orchestrator(config, runner=_runner(config, fetcher)).run()

        assert [r.key for r in summary.results] == ["hiro_stx", "hiro_stx_2"]

    @pytest.mark.asyncio
    async def test_explicit_selection(self):
        good = make_target(name="Good", url=GOOD_URL)
        bad = make_target(name="Bad", url=BAD_URL)
        config = _config(good, bad)
        fetcher = FakeFetcher({GOOD_URL: FakePage(GOOD_URL, body="Gas price 12 gwei")})

        summary = await Orchestrator(config, runner=_runner(config, fetcher)).run([good])

        assert summary.total == 1
        assert fetcher.fetched == [GOOD_URL]


def test_run_ids_are_unique():
    assert create_run_id() != create_run_id()
    assert len(create_run_id()) == 12
