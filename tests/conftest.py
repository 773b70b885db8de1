"""Pytest fixtures for the computer-use agent tests."""
from __future__ import annotations

import base64
import io
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from actions import Click, CoordinatesLocator
from goal_types import GoalDefinition, GoalRunResult
from run_types import (
    Approval,
    Goal,
    ResultHint,
    RunMetrics,
    RunReport,
    RunStatus,
    Snapshot,
    StepLog,
)


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def png_base64() -> str:
    """A tiny valid PNG, base64 encoded."""
    buf = io.BytesIO()
    Image.new("RGB", (4, 3), color=(200, 30, 30)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


@pytest.fixture
def sample_goal() -> Goal:
    return Goal(
        task="Find the pricing page",
        constraints=["Stay on example.com"],
        success_criteria=["Pricing table is visible"],
    )


@pytest.fixture
def snapshot_with_image(png_base64: str) -> Snapshot:
    return Snapshot(
        id="snap-1",
        url="https://example.com",
        title="Example",
        image_base64=png_base64,
    )


@pytest.fixture
def sample_report(sample_goal: Goal) -> RunReport:
    click = Click(target=CoordinatesLocator(x=10, y=20))
    return RunReport(
        run_id="run-123",
        goal=sample_goal,
        status=RunStatus.SUCCESS,
        metrics=RunMetrics(steps=2, time_ms=1500, success=True),
        steps=[
            StepLog(
                step=0,
                plan="",
                action=click,
                approval=Approval(granted=True, reason="no scope required"),
                result_hint=ResultHint.CHANGED,
                snapshot_id="snap-2",
                timestamp_ms=100,
            ),
            StepLog(
                step=1,
                plan="The pricing page is open.",
                result_hint=ResultHint.MESSAGE,
                timestamp_ms=900,
            ),
        ],
        last_snapshot=Snapshot(id="snap-2", url="https://example.com/pricing"),
        message="Goal met",
    )


@pytest.fixture
def sample_definition(sample_goal: Goal) -> GoalDefinition:
    return GoalDefinition(
        id="pricing",
        goal=sample_goal,
        start_url="https://example.com",
        tags={"smoke"},
    )


@pytest.fixture
def sample_run_result(sample_definition: GoalDefinition, sample_report: RunReport) -> GoalRunResult:
    return GoalRunResult(
        definition=sample_definition,
        started_at=datetime(2024, 1, 1, 10, 0, 0),
        finished_at=datetime(2024, 1, 1, 10, 0, 30),
        report=sample_report,
        browser_type="chromium",
    )


@pytest.fixture
def sample_goal_yaml() -> str:
    """Sample YAML goal definition."""
    return """
id: signup
task: Complete the signup flow
constraints:
  - Do not use a real email address
success_criteria:
  - Welcome message is visible
start_url: https://example.com/signup
timeout_seconds: 90
max_steps: 25
tags:
  - smoke
  - signup
priority: 1
"""


@pytest.fixture
def sample_goal_json() -> Dict[str, Any]:
    """Sample JSON goal definition."""
    return {
        "id": "login",
        "objective": "Log in with the demo account",
        "success_criteria": "Dashboard is visible",
        "start_url": "https://example.com/login",
        "timeout_ms": 60000,
        "tags": ["auth", "p0"],
    }


def response_payload(
    response_id: str = "resp_1",
    output: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """A Responses API payload as returned by model_dump()."""
    return {"id": response_id, "output": output or []}


def computer_call_item(
    call_id: str = "call_1",
    action: Optional[Dict[str, Any]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    item = {
        "type": "computer_call",
        "call_id": call_id,
        "action": action or {"type": "click", "x": 10, "y": 20, "button": "left"},
        "pending_safety_checks": [],
    }
    item.update(extra)
    return item


def message_item(text: str) -> Dict[str, Any]:
    return {
        "type": "message",
        "role": "assistant",
        "content": [{"type": "output_text", "text": text}],
    }


@pytest.fixture
def mock_openai() -> MagicMock:
    """AsyncOpenAI stand-in whose responses.create returns queued payloads."""
    client = MagicMock()
    client.responses.create = AsyncMock()
    return client


def queue_payloads(client: MagicMock, *payloads: Dict[str, Any]) -> None:
    """Make client.responses.create return the given payloads in order."""
    responses = []
    for payload in payloads:
        response = MagicMock()
        response.model_dump.return_value = payload
        responses.append(response)
    client.responses.create.side_effect = responses


@pytest.fixture
def mock_browser() -> MagicMock:
    """Create a mock SimpleBrowser for testing."""
    browser = MagicMock()
    browser.start = AsyncMock()
    browser.close = AsyncMock()
    browser.goto = AsyncMock()
    browser.settle = AsyncMock()
    browser.screenshot = AsyncMock(return_value=b"fake_screenshot_data")
    browser.click = AsyncMock()
    browser.hover = AsyncMock()
    browser.scroll = AsyncMock()
    browser.drag_and_drop = AsyncMock()
    browser.type_text = AsyncMock()
    browser.press_key = AsyncMock()
    browser.read_clipboard = AsyncMock(return_value="copied text")
    browser.write_clipboard = AsyncMock()
    browser.get_url = MagicMock(return_value="https://example.com")
    browser.get_title = AsyncMock(return_value="Example Page")
    browser.get_body_text = AsyncMock(return_value="Page content here")
    return browser


class PayloadFactory:
    """Builders for Responses API payloads and a queue for the mocked client."""

    response = staticmethod(response_payload)
    computer_call = staticmethod(computer_call_item)
    message = staticmethod(message_item)
    queue = staticmethod(queue_payloads)


@pytest.fixture
def payloads() -> PayloadFactory:
    return PayloadFactory()
