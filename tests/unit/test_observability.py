"""
Tests for Prometheus collectors and structured logging setup.
"""

import json
import logging

import pytest
import structlog

from chainprobe.config.config import MonitoringConfig
from chainprobe.observability.logging import add_run_id, configure_logging
from chainprobe.observability.metrics import METRICS, Counter, increment, observe, write_metrics_file
from tests.helpers import histogram_observes, metric_delta


class TestMetrics:
    def test_increment_labelled_counter(self):
        with metric_delta("chainprobe_blocked_verdicts_total", {"target": "metrics-test"}, expected_delta=2):
            increment("blocked_verdicts", labels={"target": "metrics-test"})
            increment("blocked_verdicts", labels={"target": "metrics-test"})

    def test_observe_histogram(self):
        with histogram_observes("chainprobe_target_duration_seconds", {"target": "metrics-test"}):
            observe("target_duration_seconds", 3.2, labels={"target": "metrics-test"})

    def test_unknown_metric_is_ignored(self):
        increment("no_such_metric")
        observe("no_such_metric", 1.0)

    def test_duplicate_registration_reuses_collector(self):
        again = Counter("chainprobe_strategy_attempts_total", "Extraction strategy invocations", ["strategy"])
        assert again is METRICS["strategy_attempts"]

    def test_write_metrics_file(self, tmp_path):
        increment("target_runs", labels={"target": "metrics-test", "status": "success"})
        path = tmp_path / "textfile" / "chainprobe.prom"

        write_metrics_file(path)

        content = path.read_text()
        assert 'chainprobe_target_runs_total{target="metrics-test",status="success"}' in content


class TestLogging:
    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers = handlers
        root.setLevel(level)
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()

    def test_add_run_id(self):
        structlog.contextvars.bind_contextvars(run_id="abc123")
        assert add_run_id(None, "info", {"event": "x"}) == {"event": "x", "run_id": "abc123"}

    def test_add_run_id_without_run(self):
        assert add_run_id(None, "info", {"event": "x"}) == {"event": "x"}

    def test_file_logging_is_json(self, tmp_path):
        log_file = tmp_path / "logs" / "chainprobe.log"
        configure_logging(MonitoringConfig(log_level="INFO", log_file=str(log_file)))

        structlog.get_logger("chainprobe.test").info("Metric extracted", metric="avg_gas_price_gwei", value=0.05)
        for handler in logging.getLogger().handlers:
            handler.flush()

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert records[-1]["event"] == "Metric extracted"
        assert records[-1]["metric"] == "avg_gas_price_gwei"
        assert records[-1]["level"] == "info"

    def test_level_applied(self):
        configure_logging(MonitoringConfig(log_level="warning"))
        assert logging.getLogger().level == logging.WARNING
