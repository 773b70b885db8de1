"""Reasoner backed by the computer-use Responses API."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from actions import (
    ACTIVE_ELEMENT,
    Action,
    Click,
    CoordinatesLocator,
    Hover,
    Key,
    Scroll,
    TypeText,
)
from cua_client import CuaClient
from cua_types import (
    ClickRequest,
    ComputerCallOutput,
    CuaAction,
    CuaOutput,
    DoneOutput,
    DoubleClickRequest,
    DragPathRequest,
    KeypressRequest,
    MessageOutput,
    MoveRequest,
    ScreenshotRequest,
    ScrollRequest,
    TypeRequest,
    UnknownRequest,
    WaitRequest,
)
from exceptions import ObservationRequiredError
from ports import Reasoner
from prompts import DEFAULT_INSTRUCTIONS, compose_instructions
from run_types import Goal, Snapshot, Thought


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_OBSERVATION = "awaiting_observation"
    TERMINAL = "terminal"


@dataclass
class ReasoningSession:
    """
    Conversation state carried between decide() calls.

    `awaiting_observation` and `pending_call_id` are always set and cleared
    together.
    """

    previous_response_id: Optional[str] = None
    pending_call_id: Optional[str] = None
    pending_safety_checks: List[Dict[str, Any]] = field(default_factory=list)
    awaiting_observation: bool = False
    terminal_message: Optional[str] = None

    @property
    def state(self) -> SessionState:
        if self.terminal_message is not None:
            return SessionState.TERMINAL
        if self.awaiting_observation:
            return SessionState.AWAITING_OBSERVATION
        return SessionState.IDLE


@dataclass
class CuaReasonerConfig:
    # Any plain message from the service ends the run.
    stop_on_message: bool = True
    # Hint sent only with the first turn of a conversation.
    auto_confirm_text: Optional[str] = None
    keep_thread_on_message: bool = False


def map_cua_action(action: CuaAction) -> Tuple[Optional[Action], Optional[str]]:
    """
    Translate a service action into the device-agnostic vocabulary.

    Returns:
        The mapped action (None when the directive has no counterpart) and a
        note describing a dropped directive.
    """
    if isinstance(action, ClickRequest):
        return Click(target=CoordinatesLocator(x=action.x, y=action.y), button=action.button or "left"), None
    if isinstance(action, DoubleClickRequest):
        return Click(target=CoordinatesLocator(x=action.x, y=action.y), click_count=2), None
    if isinstance(action, MoveRequest):
        return Hover(target=CoordinatesLocator(x=action.x, y=action.y)), None
    if isinstance(action, ScrollRequest):
        return Scroll(target=None, dx=action.dx, dy=action.dy), None
    if isinstance(action, TypeRequest):
        return TypeText(text=action.text, into=ACTIVE_ELEMENT), None
    if isinstance(action, KeypressRequest):
        return Key(combo=action.key), None
    if isinstance(action, DragPathRequest):
        return None, f"drag path with {len(action.points)} points not supported"
    if isinstance(action, WaitRequest):
        return None, f"wait {action.ms}ms"
    if isinstance(action, ScreenshotRequest):
        return None, "screenshot"
    if isinstance(action, UnknownRequest):
        return None, f"unknown action '{action.kind}'"
    return None, None


class CuaReasoner(Reasoner):
    """
    Drives a computer-use conversation one decision at a time.

    Each decide() call either answers the service's pending computer call
    with the latest screenshot, or starts a new turn with the composed goal
    instructions. The session is only updated after the service replied, so
    a failed call leaves it exactly as it was.
    """

    def __init__(
        self,
        client: CuaClient,
        instructions: str = DEFAULT_INSTRUCTIONS,
        config: Optional[CuaReasonerConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.instructions = instructions
        self.config = config or CuaReasonerConfig()
        self.logger = logger or logging.getLogger("reasoner")
        self.session = ReasoningSession()
        self._lock = asyncio.Lock()

    async def decide(
        self,
        goal: Goal,
        snapshot: Snapshot,
        last_error: Optional[Exception] = None,
    ) -> Thought:
        async with self._lock:
            session = self.session

            if session.awaiting_observation and session.pending_call_id:
                if not snapshot.has_image:
                    raise ObservationRequiredError(session.pending_call_id)
                output = await self.client.send_observation(
                    call_id=session.pending_call_id,
                    image_base64=snapshot.image_base64,
                    previous=session.previous_response_id,
                    safety_checks=session.pending_safety_checks,
                )
            else:
                instructions = compose_instructions(
                    self.instructions,
                    goal,
                    last_error=str(last_error) if last_error else None,
                )
                extra_text = None
                if session.previous_response_id is None:
                    extra_text = self.config.auto_confirm_text
                output = await self.client.turn(
                    instructions=instructions,
                    current_url=snapshot.url,
                    extra_text=extra_text,
                    previous=session.previous_response_id,
                )

            self.session, thought = self._classify(session, output)
            return thought

    def _classify(
        self,
        session: ReasoningSession,
        output: CuaOutput,
    ) -> Tuple[ReasoningSession, Thought]:
        if isinstance(output, MessageOutput):
            updated = replace(
                session,
                pending_call_id=None,
                pending_safety_checks=[],
                awaiting_observation=False,
                previous_response_id=(
                    session.previous_response_id if self.config.keep_thread_on_message else None
                ),
            )
            if self.config.stop_on_message:
                updated.terminal_message = output.text
            self.logger.info(f"Service message: {output.text[:200]}")
            return updated, Thought(plan=output.text, action=None, rationale=None)

        if isinstance(output, ComputerCallOutput):
            if output.requires_observation:
                updated = replace(
                    session,
                    previous_response_id=output.response_id,
                    pending_call_id=output.call_id,
                    pending_safety_checks=list(output.safety_checks),
                    awaiting_observation=True,
                )
            else:
                updated = replace(
                    session,
                    previous_response_id=output.response_id,
                    pending_call_id=None,
                    pending_safety_checks=[],
                    awaiting_observation=False,
                )
            action, note = map_cua_action(output.action)
            if isinstance(output.action, UnknownRequest):
                self.logger.warning(f"Unknown service action '{output.action.kind}' ignored")
            self.logger.debug(f"Computer call {output.call_id}: {output.action}")
            return updated, Thought(plan="", action=action, rationale=note)

        if isinstance(output, DoneOutput):
            updated = replace(
                session,
                previous_response_id=output.response_id,
                pending_call_id=None,
                pending_safety_checks=[],
                awaiting_observation=False,
                terminal_message="done",
            )
            return updated, Thought(plan="done", action=None, rationale=None)

        raise TypeError(f"Unexpected service output: {output!r}")

    async def is_goal_met(self, goal: Goal, snapshot: Snapshot) -> bool:
        async with self._lock:
            if not self.config.stop_on_message:
                return False
            return self.session.terminal_message is not None

    async def reset(self) -> None:
        """Forget the conversation so the reasoner can serve a new run."""
        async with self._lock:
            self.session = ReasoningSession()
