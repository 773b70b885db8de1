"""Typed objects shared by the run controller, the reasoner and the ports."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from actions import Action, Locator


@dataclass(frozen=True)
class Goal:
    """Natural-language objective for one run."""

    task: str
    constraints: List[str] = field(default_factory=list)
    success_criteria: List[str] = field(default_factory=list)
    # Relative budget from run start; a wall-clock deadline is derived per run.
    timeout_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": self.task,
            "constraints": list(self.constraints),
            "success_criteria": list(self.success_criteria),
            "timeout_ms": self.timeout_ms,
        }


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time observation of the controlled device."""

    id: str
    url: Optional[str] = None
    title: Optional[str] = None
    image_base64: Optional[str] = None
    dom_summary: Optional[str] = None
    captured_at_ms: int = 0

    @property
    def has_image(self) -> bool:
        return bool(self.image_base64)

    def to_dict(self, include_image: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "dom_summary": self.dom_summary,
            "captured_at_ms": self.captured_at_ms,
        }
        if include_image:
            data["image_base64"] = self.image_base64
        return data


@dataclass(frozen=True)
class ElementRect:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class ElementDescriptor:
    """Result of resolving a Locator against the device."""

    locator: Locator
    description: Optional[str] = None
    rect: Optional[ElementRect] = None


@dataclass(frozen=True)
class ActionResult:
    snapshot: Snapshot
    changed: bool
    message: Optional[str] = None


@dataclass(frozen=True)
class Thought:
    """The reasoner's decision for one controller iteration."""

    plan: str = ""
    action: Optional[Action] = None
    rationale: Optional[str] = None

    @property
    def is_message(self) -> bool:
        """The service spoke but issued no device action."""
        return self.action is None and bool(self.plan.strip())


class Scope(str, Enum):
    """Capability classes gating policy approval."""

    NAVIGATE = "navigate"
    CLIPBOARD_READ = "clipboard_read"
    CLIPBOARD_WRITE = "clipboard_write"
    FILE_ACCESS = "file_access"
    NETWORK = "network"


@dataclass(frozen=True)
class Approval:
    granted: bool
    scope: Optional[Scope] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "granted": self.granted,
            "scope": self.scope.value if self.scope else None,
            "reason": self.reason,
        }


class ResultHint(str, Enum):
    """Short classifier of what a step did."""

    MESSAGE = "message"
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    DENIED = "denied"
    ERROR = "error"


@dataclass(frozen=True)
class StepLog:
    """One loop iteration of the audit trail."""

    step: int
    plan: str
    action: Optional[Action] = None
    approval: Optional[Approval] = None
    result_hint: Optional[ResultHint] = None
    snapshot_id: Optional[str] = None
    error: Optional[str] = None
    timestamp_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "plan": self.plan,
            "action": self.action.to_dict() if self.action else None,
            "approval": self.approval.to_dict() if self.approval else None,
            "result_hint": self.result_hint.value if self.result_hint else None,
            "snapshot_id": self.snapshot_id,
            "error": self.error,
            "timestamp_ms": self.timestamp_ms,
        }


class RunStatus(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class RunMetrics:
    steps: int = 0
    time_ms: int = 0
    success: bool = False


@dataclass(frozen=True)
class RunReport:
    """Outcome of a run, assembled once at loop exit."""

    run_id: str
    goal: Goal
    status: RunStatus
    metrics: RunMetrics
    steps: List[StepLog] = field(default_factory=list)
    last_snapshot: Optional[Snapshot] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == RunStatus.SUCCESS

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "goal": self.goal.to_dict(),
            "status": self.status.value,
            "metrics": {
                "steps": self.metrics.steps,
                "time_ms": self.metrics.time_ms,
                "success": self.metrics.success,
            },
            "steps": [s.to_dict() for s in self.steps],
            "last_snapshot": self.last_snapshot.to_dict() if self.last_snapshot else None,
            "message": self.message,
            "error": self.error,
        }
