"""Unit tests for the Playwright browser driver."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from browser import SimpleBrowser
from exceptions import BrowserNotStartedError, DeviceError


@pytest.fixture
def started_browser() -> SimpleBrowser:
    browser = SimpleBrowser()
    browser.page = MagicMock()
    browser.page.wait_for_load_state = AsyncMock()
    return browser


class TestSimpleBrowser:
    """Tests for SimpleBrowser."""

    def test_requires_start(self):
        with pytest.raises(BrowserNotStartedError):
            SimpleBrowser().get_url()

    @pytest.mark.asyncio
    async def test_settle_ignores_load_timeout(self, started_browser):
        started_browser.page.wait_for_load_state.side_effect = PlaywrightTimeout("Timeout 1000ms exceeded")
        await started_browser.settle(0)

    @pytest.mark.asyncio
    async def test_settle_wraps_closed_page(self, started_browser):
        started_browser.page.wait_for_load_state.side_effect = PlaywrightError("Target closed")
        with pytest.raises(DeviceError):
            await started_browser.settle(0)

    @pytest.mark.asyncio
    async def test_failed_launch_stops_driver(self, monkeypatch):
        playwright = MagicMock()
        playwright.stop = AsyncMock()
        playwright.chromium.launch = AsyncMock(side_effect=PlaywrightError("Executable doesn't exist"))
        manager = MagicMock()
        manager.start = AsyncMock(return_value=playwright)
        monkeypatch.setattr("browser.async_playwright", lambda: manager)
        browser = SimpleBrowser()

        with pytest.raises(DeviceError):
            await browser.start()

        playwright.stop.assert_awaited_once()
        assert browser.page is None
