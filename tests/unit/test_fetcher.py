"""
Tests for the browser session, page adapter and network observation.

Playwright objects are replaced with mocks; no chromium is launched.
"""

import random
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from chainprobe.config.config import ClassifierConfig, ClientIdentityConfig, FetcherConfig
from chainprobe.errors import NavigationError
from chainprobe.fetcher.network import NetworkMonitor
from chainprobe.fetcher.page import PlaywrightPage, navigation_error_from
from chainprobe.fetcher.page_fetcher import PageFetcher
from chainprobe.fetcher.stealth import STEALTH_ARGS, context_options, launch_args
from chainprobe.fetcher.user_agents import DESKTOP_AGENTS, pick_user_agent
from chainprobe.protocols import ObservationKind, WaitPolicy


class TestNavigationErrorMapping:
    @pytest.mark.parametrize(
        "exc,kind",
        [
            (PlaywrightTimeoutError("Timeout 60000ms exceeded."), "timeout"),
            (PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://x.example/"), "dns"),
            (PlaywrightError("net::ERR_CERT_AUTHORITY_INVALID at https://x.example/"), "tls"),
            (PlaywrightError("net::ERR_CONNECTION_REFUSED at https://x.example/"), "connection"),
            (PlaywrightError("Target page, context or browser has been closed"), "other"),
        ],
    )
    def test_kinds(self, exc, kind):
        error = navigation_error_from("https://x.example/", exc)
        assert isinstance(error, NavigationError)
        assert error.kind == kind
        assert error.url == "https://x.example/"

    def test_keeps_first_line_only(self):
        exc = PlaywrightError("net::ERR_FAILED\nCall log:\n  - navigating")
        error = navigation_error_from("https://x.example/", exc)
        assert error.message == "net::ERR_FAILED"


class TestIdentity:
    def test_configured_agent_wins(self):
        assert pick_user_agent("MyAgent/1.0") == "MyAgent/1.0"

    def test_random_desktop_agent(self):
        assert pick_user_agent(None, rng=random.Random(7)) in DESKTOP_AGENTS

    def test_context_options(self):
        options = context_options(ClientIdentityConfig(locale="en-GB"), "MyAgent/1.0")
        assert options["user_agent"] == "MyAgent/1.0"
        assert options["viewport"] == {"width": 1920, "height": 1080}
        assert options["locale"] == "en-GB"
        assert options["accept_downloads"] is True

    def test_launch_args(self):
        assert "--disable-blink-features=AutomationControlled" in launch_args(True)
        assert launch_args(False) == []
        assert launch_args(True) is not STEALTH_ARGS


class TestNetworkMonitor:
    def test_only_blocking_statuses_kept(self):
        monitor = NetworkMonitor()
        monitor.record_response("https://api.example/a", 200)
        monitor.record_response("https://api.example/b", 500)
        monitor.record_response("https://api.example/c", 429)

        (observation,) = monitor.observations
        assert observation.kind is ObservationKind.RESPONSE
        assert observation.status == 429

    def test_console_needs_error_type_and_keyword(self):
        monitor = NetworkMonitor(["Blocked"])
        monitor.record_console("warning", "request blocked")
        monitor.record_console("error", "chart failed to render")
        monitor.record_console("error", "Request BLOCKED by policy")

        assert [o.describe() for o in monitor.observations] == ["console error: Request BLOCKED by policy"]

    @pytest.mark.parametrize(
        "text",
        [
            "Mixed Content: The page was loaded over HTTPS, but requested an insecure script. "
            "This request has been blocked; the content must be served over HTTPS.",
            "Refused to load the image because it violates the Content Security Policy; it was blocked",
            "Failed to fetch block 14030",
        ],
    )
    def test_default_patterns_ignore_ordinary_errors(self, text):
        monitor = NetworkMonitor(ClassifierConfig().console_patterns)
        monitor.record_console("error", text)
        assert monitor.observations == []

    @pytest.mark.parametrize(
        "text",
        [
            "Failed to load resource: the server responded with a status of 403 ()",
            "429 Too Many Requests",
            "Request blocked by WAF",
            "You have been blocked",
            "Rate limit exceeded",
        ],
    )
    def test_default_patterns_flag_blocking_errors(self, text):
        monitor = NetworkMonitor(ClassifierConfig().console_patterns)
        monitor.record_console("error", text)
        assert len(monitor.observations) == 1

    def test_attach_subscribes_to_page_events(self):
        page = MagicMock()
        monitor = NetworkMonitor(["403"])
        monitor.attach(page)
        handlers = {call.args[0]: call.args[1] for call in page.on.call_args_list}
        assert set(handlers) == {"response", "console"}

        document = MagicMock(status=403, url="https://explorer.example/", frame=page.main_frame)
        document.request.is_navigation_request.return_value = True
        xhr = MagicMock(status=403, url="https://api.example/stats")
        xhr.request.is_navigation_request.return_value = False
        handlers["response"](document)
        handlers["response"](xhr)
        handlers["console"](MagicMock(type="error", text="Failed to load resource: 403"))

        assert [o.describe() for o in monitor.observations] == [
            "subresource 403 from https://api.example/stats",
            "console error: Failed to load resource: 403",
        ]


def _playwright_stack(goto_result=None, goto_error=None):
    page = MagicMock()
    page.url = "https://explorer.example/final"
    page.goto = AsyncMock(return_value=goto_result, side_effect=goto_error)
    page.wait_for_timeout = AsyncMock()

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.add_init_script = AsyncMock()
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)
    return starter, playwright, browser, context, page


class TestPageFetcher:
    @pytest.mark.asyncio
    async def test_fetch_returns_loaded_page(self):
        starter, playwright, browser, context, page = _playwright_stack(goto_result=MagicMock(status=200))

        with patch("chainprobe.fetcher.page_fetcher.async_playwright", return_value=starter):
            async with PageFetcher(FetcherConfig(), ClientIdentityConfig(), ["blocked"]) as fetcher:
                fetch = await fetcher.fetch("https://explorer.example/", WaitPolicy.NETWORK_IDLE, 60000)

        assert fetch.status_code == 200
        assert fetch.final_url == "https://explorer.example/final"
        assert isinstance(fetch.page, PlaywrightPage)
        page.goto.assert_awaited_once_with("https://explorer.example/", wait_until="networkidle", timeout=60000)
        context.add_init_script.assert_awaited_once()
        launch_kwargs = playwright.chromium.launch.await_args.kwargs
        assert launch_kwargs["headless"] is True
        assert "--disable-blink-features=AutomationControlled" in launch_kwargs["args"]
        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_navigation_failure_raises_and_releases_session(self):
        error = PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://nowhere.example/")
        starter, playwright, browser, context, page = _playwright_stack(goto_error=error)

        with patch("chainprobe.fetcher.page_fetcher.async_playwright", return_value=starter):
            with pytest.raises(NavigationError) as excinfo:
                async with PageFetcher(FetcherConfig(stealth=False), ClientIdentityConfig()) as fetcher:
                    await fetcher.fetch("https://nowhere.example/", WaitPolicy.LOAD, 1000)

        assert excinfo.value.kind == "dns"
        context.add_init_script.assert_not_awaited()
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_launch_stops_driver(self):
        starter, playwright, browser, context, page = _playwright_stack()
        playwright.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")

        with patch("chainprobe.fetcher.page_fetcher.async_playwright", return_value=starter):
            with pytest.raises(PlaywrightError, match="Executable"):
                async with PageFetcher(FetcherConfig(), ClientIdentityConfig()):
                    pass

        playwright.stop.assert_awaited_once()
        browser.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_context_closes_browser_and_driver(self):
        starter, playwright, browser, context, page = _playwright_stack()
        browser.new_context.side_effect = PlaywrightError("invalid viewport")

        with patch("chainprobe.fetcher.page_fetcher.async_playwright", return_value=starter):
            with pytest.raises(PlaywrightError):
                async with PageFetcher(FetcherConfig(), ClientIdentityConfig()):
                    pass

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        context.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_tolerates_errors(self):
        starter, playwright, browser, context, page = _playwright_stack()
        context.close.side_effect = PlaywrightError("already closed")

        with patch("chainprobe.fetcher.page_fetcher.async_playwright", return_value=starter):
            async with PageFetcher(FetcherConfig(), ClientIdentityConfig()):
                pass

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_requires_session(self):
        with pytest.raises(RuntimeError):
            await PageFetcher(FetcherConfig(), ClientIdentityConfig()).fetch("https://x.example/", WaitPolicy.LOAD, 1)


class TestPlaywrightPage:
    @pytest.mark.asyncio
    async def test_wait_for_selector_timeout_is_false(self):
        raw = MagicMock()
        raw.wait_for_selector = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 10ms exceeded."))
        assert await PlaywrightPage(raw).wait_for_selector(".big-data", 10) is False

    @pytest.mark.asyncio
    async def test_goto_maps_errors(self):
        raw = MagicMock()
        raw.goto = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 30000ms exceeded."))
        with pytest.raises(NavigationError) as excinfo:
            await PlaywrightPage(raw).goto("https://x.example/tx", WaitPolicy.NETWORK_IDLE, 30000)
        assert excinfo.value.kind == "timeout"

    @pytest.mark.asyncio
    async def test_goto_returns_status(self):
        raw = MagicMock()
        raw.goto = AsyncMock(return_value=MagicMock(status=200))
        assert await PlaywrightPage(raw).goto("https://x.example/tx", WaitPolicy.LOAD, 30000) == 200
