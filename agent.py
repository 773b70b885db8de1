"""Run controller: the bounded observe, reason, approve, act, log loop."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Union

from actions import Action, describe_action
from config.models import AgentConfig
from defaults import AllowAllPolicy, NullMemoryStore
from exceptions import AgentError, PolicyDeniedError, StepTimeoutError
from ports import Computer, MemoryStore, PolicyEngine, Reasoner, SnapshotStore
from run_types import (
    ActionResult,
    Approval,
    Goal,
    ResultHint,
    RunMetrics,
    RunReport,
    RunStatus,
    Scope,
    Snapshot,
    StepLog,
)


@dataclass
class AgentSettings:
    """Budgets and granted scopes for every run of one Agent."""

    max_steps: int = 40
    step_timeout_ms: int = 15000
    scopes: Set[Scope] = field(default_factory=lambda: {Scope.NAVIGATE})

    @property
    def step_timeout(self) -> float:
        """Per-step timeout in seconds."""
        return self.step_timeout_ms / 1000.0

    @classmethod
    def from_config(cls, config: AgentConfig) -> "AgentSettings":
        return cls(
            max_steps=config.max_steps,
            step_timeout_ms=config.step_timeout_ms,
            scopes=set(config.scopes),
        )


@dataclass
class _StepOutcome:
    plan: str = ""
    action: Optional[Action] = None
    approval: Optional[Approval] = None
    hint: ResultHint = ResultHint.ERROR
    snapshot: Optional[Snapshot] = None
    error: Optional[Exception] = None


class Agent:
    """
    Drives one device toward a goal with a pluggable reasoner.

    Per-step faults (device errors, reasoning errors, policy denials, step
    timeouts) are recorded in the step log and handed to the next decide()
    call. Only the run-start notification, the initial observation and the
    step/run-end notifications can fail a run outright.
    """

    def __init__(
        self,
        computer: Computer,
        reasoner: Reasoner,
        memory: MemoryStore,
        policy: PolicyEngine,
        settings: Optional[AgentSettings] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.computer = computer
        self.reasoner = reasoner
        self.memory = memory
        self.policy = policy
        self.settings = settings or AgentSettings()
        self.snapshot_store = snapshot_store
        self.logger = logger or logging.getLogger("agent")
        self._clock = clock

    @classmethod
    def with_defaults(
        cls,
        computer: Computer,
        reasoner: Reasoner,
        settings: Optional[AgentSettings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "Agent":
        """Agent with a discarding memory store and an allow-all policy."""
        return cls(
            computer=computer,
            reasoner=reasoner,
            memory=NullMemoryStore(),
            policy=AllowAllPolicy(),
            settings=settings,
            logger=logger,
        )

    def with_snapshot_store(self, store: SnapshotStore) -> "Agent":
        self.snapshot_store = store
        return self

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    async def _archive(self, run_id: str, step: Optional[int], snapshot: Snapshot) -> None:
        if self.snapshot_store is None:
            return
        try:
            await self.snapshot_store.save(run_id, step, snapshot)
        except Exception as e:
            self.logger.warning(f"Snapshot archival failed for run {run_id}: {e}")

    async def run(
        self,
        goal: Union[Goal, str],
        start_url: Optional[str] = None,
    ) -> RunReport:
        """
        Run the loop until the goal is met or a budget is exhausted.

        Args:
            goal: Goal to pursue, or a bare task description
            start_url: Page to open before the first step

        Returns:
            The run report, also handed to MemoryStore.on_run_end
        """
        if isinstance(goal, str):
            goal = Goal(task=goal)

        run_id = uuid.uuid4().hex
        started = self._clock()
        steps: List[StepLog] = []
        last_error: Optional[Exception] = None

        self.logger.info(f"Run {run_id} started: {goal.task}")
        await self.memory.on_run_start(run_id, goal)

        if start_url:
            last_snapshot = await self.computer.open(start_url)
        else:
            last_snapshot = await self.computer.observe()
        await self._archive(run_id, None, last_snapshot)

        deadline = None
        if goal.timeout_ms is not None:
            deadline = started + goal.timeout_ms / 1000.0

        status = RunStatus.TIMEOUT
        message = "Step budget exceeded"

        for index in range(self.settings.max_steps):
            if deadline is not None and self._clock() >= deadline:
                status = RunStatus.TIMEOUT
                message = "Run budget exceeded"
                break

            timestamp_ms = self._elapsed_ms(started)
            try:
                goal_met = await self.reasoner.is_goal_met(goal, last_snapshot)
            except AgentError as e:
                outcome = _StepOutcome(hint=ResultHint.ERROR, error=e)
            else:
                if goal_met:
                    status = RunStatus.SUCCESS
                    message = "Goal met"
                    break
                outcome = await self._step(run_id, index, goal, last_snapshot, last_error)

            if outcome.hint == ResultHint.MESSAGE:
                pass
            elif outcome.error is not None:
                last_error = outcome.error
            else:
                last_error = None
            if outcome.snapshot is not None:
                last_snapshot = outcome.snapshot

            step_log = StepLog(
                step=index,
                plan=outcome.plan,
                action=outcome.action,
                approval=outcome.approval,
                result_hint=outcome.hint,
                snapshot_id=outcome.snapshot.id if outcome.snapshot else None,
                error=str(outcome.error) if outcome.error else None,
                timestamp_ms=timestamp_ms,
            )
            try:
                await self.memory.on_step(run_id, step_log)
            except Exception:
                steps.append(step_log)
                await self._abort(run_id, goal, steps, last_snapshot, started)
                raise
            steps.append(step_log)

        if status == RunStatus.SUCCESS:
            error_text = None
        else:
            error_text = str(last_error) if last_error else message

        report = RunReport(
            run_id=run_id,
            goal=goal,
            status=status,
            metrics=RunMetrics(
                steps=len(steps),
                time_ms=self._elapsed_ms(started),
                success=status == RunStatus.SUCCESS,
            ),
            steps=steps,
            last_snapshot=last_snapshot,
            message=message,
            error=error_text,
        )
        self.logger.info(
            f"Run {run_id} finished: {status.value} ({message}) after {len(steps)} steps"
        )
        await self.memory.on_run_end(run_id, report)
        return report

    async def _step(
        self,
        run_id: str,
        index: int,
        goal: Goal,
        snapshot: Snapshot,
        last_error: Optional[Exception],
    ) -> _StepOutcome:
        try:
            thought = await self.reasoner.decide(goal, snapshot, last_error)
        except AgentError as e:
            self.logger.warning(f"Step {index}: reasoning failed: {e}")
            return _StepOutcome(hint=ResultHint.ERROR, error=e)

        outcome = _StepOutcome(plan=thought.plan, action=thought.action)
        self.logger.info(
            f"Step {index}: plan={thought.plan[:120]!r} has_action={thought.action is not None}"
        )

        if thought.is_message:
            outcome.hint = ResultHint.MESSAGE
            return outcome

        action = thought.action
        if action is not None:
            try:
                approval = await self.policy.approve(self.settings.scopes, action)
            except AgentError as e:
                self.logger.warning(f"Step {index}: policy check failed: {e}")
                outcome.error = e
                return outcome
            outcome.approval = approval
            if not approval.granted:
                outcome.hint = ResultHint.DENIED
                outcome.error = PolicyDeniedError(
                    approval.scope or Scope.NAVIGATE, approval.reason
                )
                self.logger.warning(f"Step {index}: {describe_action(action)} denied: {approval.reason}")
                return outcome
            self.logger.info(f"Step {index}: {describe_action(action)} approved")

        try:
            result = await self._execute(action)
        except AgentError as e:
            self.logger.warning(f"Step {index}: execution failed: {e}")
            outcome.error = e
            return outcome

        outcome.snapshot = result.snapshot
        outcome.hint = ResultHint.CHANGED if result.changed else ResultHint.UNCHANGED
        await self._archive(run_id, index, result.snapshot)
        self.logger.info(
            f"Step {index}: {outcome.hint.value} url={result.snapshot.url}"
        )
        return outcome

    async def _execute(self, action: Optional[Action]) -> ActionResult:
        timeout = self.settings.step_timeout
        try:
            if action is None:
                snapshot = await asyncio.wait_for(self.computer.observe(), timeout)
                return ActionResult(snapshot=snapshot, changed=False, message="observe")
            return await asyncio.wait_for(self.computer.execute(action, timeout), timeout)
        except asyncio.TimeoutError as e:
            raise StepTimeoutError(
                self.settings.step_timeout_ms,
                action=describe_action(action) if action else "observe",
            ) from e

    async def _abort(
        self,
        run_id: str,
        goal: Goal,
        steps: List[StepLog],
        last_snapshot: Snapshot,
        started: float,
    ) -> None:
        """Try once to close the run with an error status after a step log failure."""
        report = RunReport(
            run_id=run_id,
            goal=goal,
            status=RunStatus.ERROR,
            metrics=RunMetrics(steps=len(steps), time_ms=self._elapsed_ms(started), success=False),
            steps=list(steps),
            last_snapshot=last_snapshot,
            message="Step log persistence failed",
            error="Step log persistence failed",
        )
        try:
            await self.memory.on_run_end(run_id, report)
        except Exception as e:
            self.logger.error(f"Run {run_id}: run end could not be recorded: {e}")
