"""Typed objects for goal files and multi-goal runs."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set

from run_types import Goal, RunReport


@dataclass
class GoalDefinition:
    """One goal file: the goal plus how and whether to run it."""

    id: str
    goal: Goal
    start_url: Optional[str] = None
    max_steps: Optional[int] = None
    tags: Set[str] = field(default_factory=set)
    skip: bool = False
    skip_reason: Optional[str] = None
    priority: int = field(default=5)  # 1 = highest, 10 = lowest

    def has_any_tag(self, tags: Set[str]) -> bool:
        """Check if goal has any of the specified tags."""
        lower_tags = {t.lower() for t in tags}
        return bool(lower_tags & {t.lower() for t in self.tags})

    def matches_filter(
        self,
        include_tags: Optional[Set[str]] = None,
        exclude_tags: Optional[Set[str]] = None,
    ) -> bool:
        """Check if goal matches tag filters."""
        if include_tags and not self.has_any_tag(include_tags):
            return False
        if exclude_tags and self.has_any_tag(exclude_tags):
            return False
        return True


@dataclass
class GoalRunResult:
    """Outcome of running one goal definition."""

    definition: GoalDefinition
    started_at: datetime
    finished_at: datetime
    report: Optional[RunReport] = None
    # Set when the run failed outright and produced no report.
    error: Optional[str] = None
    browser_type: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.report is not None and self.report.success

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())

    @property
    def status(self) -> str:
        if self.report is None:
            return "error"
        return self.report.status.value

    @property
    def reason(self) -> str:
        if self.report is None:
            return self.error or "run failed"
        if self.report.success:
            return self.report.message or "Goal met"
        return self.report.error or self.report.message or self.report.status.value

    @property
    def step_count(self) -> int:
        return self.report.step_count if self.report else 0


@dataclass
class GoalSuiteResult:
    """Aggregated results for a batch of goals."""

    results: List[GoalRunResult]
    started_at: datetime
    finished_at: datetime

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def pass_rate(self) -> float:
        return (self.passed / self.total * 100) if self.total else 0.0

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())
