"""Unit tests for the Playwright computer adapter."""
from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from actions import (
    AriaLocator,
    Click,
    ClipboardRead,
    ClipboardWrite,
    CoordinatesLocator,
    CssLocator,
    Drag,
    IdLocator,
    Key,
    NavGoto,
    Scroll,
    Submit,
    TextLocator,
    TypeText,
    XPathLocator,
)
from agent import Agent, AgentSettings
from computer import PlaywrightComputer, playwright_key
from defaults import AllowAllPolicy, NullMemoryStore
from exceptions import ActionNotSupportedError, DeviceError, ElementNotFoundError
from ports import Reasoner
from run_types import Goal, ResultHint, Thought

POINT = CoordinatesLocator(x=100, y=50)


def _element(box=None, text="Sign in") -> MagicMock:
    element = MagicMock()
    element.wait_for = AsyncMock()
    element.bounding_box = AsyncMock(return_value=box or {"x": 10, "y": 20, "width": 40, "height": 10})
    element.inner_text = AsyncMock(return_value=text)
    element.evaluate = AsyncMock()
    element.set_input_files = AsyncMock()
    return element


class TestObservation:
    """Tests for open and observe."""

    @pytest.mark.asyncio
    async def test_open_navigates_settles_and_captures(self, mock_browser):
        computer = PlaywrightComputer(mock_browser, settle_ms=250)

        snapshot = await computer.open("https://example.com")

        mock_browser.goto.assert_awaited_once_with("https://example.com")
        mock_browser.settle.assert_awaited_once_with(250)
        assert snapshot.url == "https://example.com"
        assert snapshot.title == "Example Page"
        assert snapshot.dom_summary == "Page content here"
        assert base64.b64decode(snapshot.image_base64) == b"fake_screenshot_data"

    @pytest.mark.asyncio
    async def test_snapshot_ids_are_unique(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        first = await computer.observe()
        second = await computer.observe()
        assert first.id != second.id


class TestExecute:
    """Tests for PlaywrightComputer.execute."""

    @pytest.mark.asyncio
    async def test_click_at_coordinates(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        await computer.observe()

        result = await computer.execute(Click(target=POINT, button="right", click_count=2), 5.0)

        mock_browser.click.assert_awaited_once_with(100.0, 50.0, button="right", click_count=2)
        assert result.changed is False

    @pytest.mark.asyncio
    async def test_url_change_is_reported(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        await computer.observe()
        mock_browser.get_url.return_value = "https://example.com/next"

        result = await computer.execute(Key(combo="Enter"), 5.0)

        mock_browser.press_key.assert_awaited_once_with("Enter")
        assert result.changed is True
        assert result.snapshot.url == "https://example.com/next"

    @pytest.mark.asyncio
    async def test_screenshot_change_is_reported(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        await computer.observe()
        mock_browser.screenshot.return_value = b"different_pixels"

        result = await computer.execute(Scroll(dy=200), 5.0)

        mock_browser.scroll.assert_awaited_once_with(0, 200)
        assert result.changed is True

    @pytest.mark.asyncio
    async def test_click_on_element_uses_box_center(self, mock_browser):
        mock_browser.locator.return_value.first = _element()
        computer = PlaywrightComputer(mock_browser)

        await computer.execute(Click(target=CssLocator(selector="#login")), 5.0)

        mock_browser.locator.assert_called_with("#login")
        mock_browser.click.assert_awaited_once_with(30.0, 25.0, button="left", click_count=1)

    @pytest.mark.asyncio
    async def test_type_into_active_element_does_not_click(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        await computer.execute(TypeText(text="hello"), 5.0)
        mock_browser.click.assert_not_awaited()
        mock_browser.type_text.assert_awaited_once_with("hello")

    @pytest.mark.asyncio
    async def test_type_into_element_focuses_it_first(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        await computer.execute(TypeText(text="hi", into=POINT), 5.0)
        mock_browser.click.assert_awaited_once_with(100.0, 50.0)
        mock_browser.type_text.assert_awaited_once_with("hi")

    @pytest.mark.asyncio
    async def test_drag_between_points(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        await computer.execute(Drag(source=POINT, target=CoordinatesLocator(x=5, y=6)), 5.0)
        mock_browser.drag_and_drop.assert_awaited_once_with(100.0, 50.0, 5.0, 6.0)

    @pytest.mark.asyncio
    async def test_navigation_uses_step_timeout(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        await computer.execute(NavGoto(url="https://example.com/docs"), 2.0)
        mock_browser.goto.assert_awaited_once_with("https://example.com/docs", timeout=2000.0)

    @pytest.mark.asyncio
    async def test_clipboard(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)

        result = await computer.execute(ClipboardRead(), 5.0)
        await computer.execute(ClipboardWrite(data="paste me"), 5.0)

        assert result.message == "copied text"
        mock_browser.write_clipboard.assert_awaited_once_with("paste me")

    @pytest.mark.asyncio
    async def test_submit_requires_element(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        with pytest.raises(ActionNotSupportedError):
            await computer.execute(Submit(target=POINT), 5.0)

    @pytest.mark.asyncio
    async def test_submit_runs_request_submit(self, mock_browser):
        element = _element()
        mock_browser.locator.return_value.first = element
        computer = PlaywrightComputer(mock_browser)

        await computer.execute(Submit(target=IdLocator(id="signup")), 5.0)

        mock_browser.locator.assert_called_with('[id="signup"]')
        assert "requestSubmit" in element.evaluate.call_args.args[0]

    @pytest.mark.asyncio
    async def test_driver_errors_become_device_errors(self, mock_browser):
        mock_browser.press_key.side_effect = RuntimeError("target closed")
        computer = PlaywrightComputer(mock_browser)

        with pytest.raises(DeviceError) as exc_info:
            await computer.execute(Key(combo="Enter"), 5.0)
        assert "target closed" in str(exc_info.value)


class TestLocate:
    """Tests for PlaywrightComputer.locate."""

    @pytest.mark.asyncio
    async def test_coordinates_resolve_without_the_page(self, mock_browser):
        descriptor = await PlaywrightComputer(mock_browser).locate(POINT, 1.0)
        assert descriptor.rect.x == 100.0
        assert descriptor.rect.width == 1.0
        mock_browser.locator.assert_not_called()

    @pytest.mark.asyncio
    async def test_element_descriptor(self, mock_browser):
        mock_browser.get_by_text.return_value.first = _element(text="  Pricing  ")
        descriptor = await PlaywrightComputer(mock_browser).locate(TextLocator(pattern="Pricing"), 1.0)
        assert descriptor.description == "Pricing"
        assert descriptor.rect.height == 10

    @pytest.mark.asyncio
    async def test_strategies(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        mock_browser.locator.return_value.first = _element()
        mock_browser.get_by_label.return_value.first = _element()
        mock_browser.get_by_role.return_value.first = _element()

        await computer.locate(XPathLocator(expr="//button"), 1.0)
        mock_browser.locator.assert_called_with("xpath=//button")
        await computer.locate(AriaLocator(name="Close"), 1.0)
        mock_browser.get_by_label.assert_called_with("Close")
        await computer.locate(AriaLocator(role="button", name="Save"), 1.0)
        mock_browser.get_by_role.assert_called_with("button", "Save")

    @pytest.mark.asyncio
    async def test_empty_aria_locator_is_unsupported(self, mock_browser):
        with pytest.raises(ActionNotSupportedError):
            await PlaywrightComputer(mock_browser).locate(AriaLocator(), 1.0)

    @pytest.mark.asyncio
    async def test_timeout_becomes_element_not_found(self, mock_browser):
        element = _element()
        element.wait_for.side_effect = PlaywrightTimeout("Timeout 1000ms exceeded")
        mock_browser.locator.return_value.first = element

        with pytest.raises(ElementNotFoundError) as exc_info:
            await PlaywrightComputer(mock_browser).locate(CssLocator(selector=".missing"), 1.0)
        assert exc_info.value.locator == {"by": "css", "selector": ".missing"}

    @pytest.mark.asyncio
    async def test_id_and_label_with_quotes(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        mock_browser.locator.return_value.first = _element()
        mock_browser.get_by_label.return_value.first = _element()

        await computer.locate(IdLocator(id='say "hi"'), 1.0)
        mock_browser.locator.assert_called_with('[id="say \\"hi\\""]')
        await computer.locate(AriaLocator(name="Don't save"), 1.0)
        mock_browser.get_by_label.assert_called_with("Don't save")


class TestKeyNames:
    """Tests for playwright_key."""

    @pytest.mark.parametrize(
        "combo,expected",
        [
            ("CTRL+L", "Control+l"),
            ("ENTER", "Enter"),
            ("ESC", "Escape"),
            ("ctrl+shift+T", "Control+Shift+t"),
            ("CMD+A", "Meta+a"),
            ("Enter", "Enter"),
            ("A", "A"),
            ("F5", "F5"),
            ("PAGEDOWN", "PageDown"),
            ("+", "+"),
        ],
    )
    def test_translation(self, combo, expected):
        assert playwright_key(combo) == expected

    @pytest.mark.asyncio
    async def test_key_action_presses_translated_combo(self, mock_browser):
        await PlaywrightComputer(mock_browser).execute(Key(combo="CTRL+L"), 5.0)
        mock_browser.press_key.assert_awaited_once_with("Control+l")


class _ClickOnce(Reasoner):
    async def decide(self, goal, snapshot, last_error=None):
        return Thought(action=Click(target=POINT))

    async def is_goal_met(self, goal, snapshot):
        return False


class TestPostActionFaults:
    """Faults after the action itself still surface as device errors."""

    @pytest.mark.asyncio
    async def test_settle_failure_is_wrapped(self, mock_browser):
        mock_browser.settle.side_effect = PlaywrightError("Target page, context or browser has been closed")
        computer = PlaywrightComputer(mock_browser)

        with pytest.raises(DeviceError) as exc_info:
            await computer.execute(Click(target=POINT), 5.0)
        assert "has been closed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_capture_failure_is_wrapped(self, mock_browser):
        computer = PlaywrightComputer(mock_browser)
        mock_browser.get_title.side_effect = PlaywrightError("Target closed")

        with pytest.raises(DeviceError):
            await computer.execute(Key(combo="Enter"), 5.0)

    @pytest.mark.asyncio
    async def test_page_closed_by_click_is_recorded_as_step_error(self, mock_browser):
        mock_browser.settle.side_effect = [
            None,
            PlaywrightError("Target page, context or browser has been closed"),
        ]
        agent = Agent(
            computer=PlaywrightComputer(mock_browser),
            reasoner=_ClickOnce(),
            memory=NullMemoryStore(),
            policy=AllowAllPolicy(),
            settings=AgentSettings(max_steps=1),
        )

        report = await agent.run(Goal(task="close the popup"), start_url="https://example.com")

        assert report.steps[0].result_hint == ResultHint.ERROR
        assert "has been closed" in report.steps[0].error
