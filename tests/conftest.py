"""
Test configuration for chainprobe.

Fixtures build small targets and metrics so tests never depend on the
built-in explorer definitions or on a browser.
"""

import asyncio
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from chainprobe.config.config import Config, MetricSpec, OrchestratorConfig, TargetConfig
from tests.helpers.factories import make_metric, make_target

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "browser: Tests requiring an installed chromium")


# ============================================================================
# Core Test Fixtures
# ============================================================================


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel any task a test leaves behind so one test cannot hang the next."""
    tasks_before = asyncio.all_tasks()
    yield
    leftover = [task for task in asyncio.all_tasks() - tasks_before if not task.done()]
    for task in leftover:
        task.cancel()
    if leftover:
        await asyncio.gather(*leftover, return_exceptions=True)


@pytest.fixture
def gas_metric() -> MetricSpec:
    return make_metric()


@pytest.fixture
def target() -> TargetConfig:
    return make_target()


@pytest.fixture
def test_config() -> Config:
    """Config with one small target and a short per-target time limit."""
    return Config(targets=[make_target()], orchestrator=OrchestratorConfig(target_timeout_seconds=5))
