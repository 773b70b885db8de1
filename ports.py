"""Collaborator interfaces the run controller is composed from."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Collection, Optional

from actions import Action, Locator
from run_types import (
    ActionResult,
    Approval,
    ElementDescriptor,
    Goal,
    RunReport,
    Scope,
    Snapshot,
    StepLog,
    Thought,
)


class Computer(ABC):
    """Perception/execution port for one exclusively owned device."""

    @abstractmethod
    async def open(self, url: str) -> Snapshot:
        """
        Navigate to a URL and observe the result.

        Raises:
            DeviceError: on any underlying fault
        """
        pass

    @abstractmethod
    async def observe(self) -> Snapshot:
        """Observe the current device state without acting."""
        pass

    @abstractmethod
    async def locate(self, locator: Locator, timeout: float) -> ElementDescriptor:
        """Resolve a locator to an element within `timeout` seconds."""
        pass

    @abstractmethod
    async def execute(self, action: Action, timeout: float) -> ActionResult:
        """
        Perform one action.

        Args:
            action: Device-agnostic action to perform
            timeout: Budget for the whole action in seconds

        Returns:
            The post-action snapshot and whether the device state changed
        """
        pass


class Reasoner(ABC):
    """Decision maker consulted once or twice per controller iteration."""

    @abstractmethod
    async def decide(
        self,
        goal: Goal,
        snapshot: Snapshot,
        last_error: Optional[Exception] = None,
    ) -> Thought:
        """
        Decide the next step.

        Args:
            goal: The run's goal
            snapshot: Latest observation
            last_error: Failure of the previous iteration, if any

        Raises:
            ReasoningError: on transport or protocol failure
        """
        pass

    @abstractmethod
    async def is_goal_met(self, goal: Goal, snapshot: Snapshot) -> bool:
        """Return True when the goal is considered satisfied."""
        pass


class PolicyEngine(ABC):
    """Approves or denies actions against the configured capability scopes."""

    @abstractmethod
    async def approve(self, scopes: Collection[Scope], action: Action) -> Approval:
        pass


class MemoryStore(ABC):
    """Receives run and step lifecycle events."""

    @abstractmethod
    async def on_run_start(self, run_id: str, goal: Goal) -> None:
        pass

    @abstractmethod
    async def on_step(self, run_id: str, step: StepLog) -> None:
        pass

    @abstractmethod
    async def on_run_end(self, run_id: str, report: RunReport) -> None:
        pass


class SnapshotStore(ABC):
    """Archives observation artifacts for a run."""

    @abstractmethod
    async def save(self, run_id: str, step: Optional[int], snapshot: Snapshot) -> None:
        """
        Archive a snapshot.

        Args:
            run_id: Run the snapshot belongs to
            step: Step index, or None for the initial observation
            snapshot: Observation to archive

        Raises:
            PersistenceError: when the artifact cannot be written
        """
        pass
