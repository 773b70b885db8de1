"""No-op and allow-all collaborators for tests and dry runs."""
from __future__ import annotations

import uuid
from typing import Collection, Optional

from actions import Action, Locator
from ports import Computer, MemoryStore, PolicyEngine, Reasoner
from run_types import (
    ActionResult,
    Approval,
    ElementDescriptor,
    ElementRect,
    Goal,
    RunReport,
    Scope,
    Snapshot,
    StepLog,
    Thought,
)


def new_snapshot_id() -> str:
    return uuid.uuid4().hex


class NullMemoryStore(MemoryStore):
    """Discards every lifecycle event."""

    async def on_run_start(self, run_id: str, goal: Goal) -> None:
        return None

    async def on_step(self, run_id: str, step: StepLog) -> None:
        return None

    async def on_run_end(self, run_id: str, report: RunReport) -> None:
        return None


class AllowAllPolicy(PolicyEngine):
    async def approve(self, scopes: Collection[Scope], action: Action) -> Approval:
        return Approval(granted=True, scope=None, reason="allow all")


class NoopComputer(Computer):
    """Computer that never touches a device and always reports a change."""

    async def open(self, url: str) -> Snapshot:
        return Snapshot(
            id=new_snapshot_id(),
            url=url,
            title="noop",
            dom_summary="<noop/>",
        )

    async def observe(self) -> Snapshot:
        return Snapshot(
            id=new_snapshot_id(),
            url="about:blank",
            title="noop",
            dom_summary="<noop/>",
        )

    async def locate(self, locator: Locator, timeout: float) -> ElementDescriptor:
        return ElementDescriptor(
            locator=locator,
            description="noop",
            rect=ElementRect(x=0.0, y=0.0, width=100.0, height=30.0),
        )

    async def execute(self, action: Action, timeout: float) -> ActionResult:
        snapshot = await self.observe()
        return ActionResult(snapshot=snapshot, changed=True, message="noop")


class SimpleReasoner(Reasoner):
    """Echoes the task as a plan; the goal is met when the task says "stop"."""

    async def decide(
        self,
        goal: Goal,
        snapshot: Snapshot,
        last_error: Optional[Exception] = None,
    ) -> Thought:
        return Thought(plan=f"Plan: {goal.task}", action=None, rationale="noop")

    async def is_goal_met(self, goal: Goal, snapshot: Snapshot) -> bool:
        return "stop" in goal.task.lower()
