"""Shared plumbing for goal run reporters."""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Sequence

from goal_types import GoalRunResult


class ReportFormat(str, Enum):
    """Supported report formats."""
    JSON = "json"
    JUNIT = "junit"
    ALL = "all"

    def includes(self, other: "ReportFormat") -> bool:
        return self is other or self is ReportFormat.ALL


def summarize(results: Sequence[GoalRunResult]) -> Dict[str, Any]:
    """Counts shared by every report format."""
    total = len(results)
    passed = sum(1 for r in results if r.success)
    errored = sum(1 for r in results if r.report is None)
    duration = sum(r.duration_seconds for r in results)
    return {
        "total": total,
        "passed": passed,
        "failed": total - passed,
        "errored": errored,
        "pass_rate": round(passed / total * 100, 2) if total else 0.0,
        "total_duration_seconds": round(duration, 2),
        "avg_duration_seconds": round(duration / total, 2) if total else 0.0,
        "total_steps": sum(r.step_count for r in results),
    }


class BaseReporter(ABC):
    """
    Renders goal run results and writes them to a timestamped file.

    Single-goal reports are named after the goal id; suite reports after
    `suite_stem`.
    """

    extension: str = ""
    suite_stem: str = "suite"

    @property
    @abstractmethod
    def format(self) -> ReportFormat:
        """Return the report format this reporter generates."""

    @abstractmethod
    def render(self, results: List[GoalRunResult], generated_at: datetime) -> str:
        """Serialize results into the report body."""

    def _write(self, results: List[GoalRunResult], output_dir: Path, stem: str) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        generated_at = datetime.now(timezone.utc)
        safe_stem = re.sub(r"[^A-Za-z0-9_.-]+", "_", stem) or "goal"
        target = output_dir / f"{safe_stem}-{generated_at.strftime('%Y%m%d-%H%M%S')}.{self.extension}"
        target.write_text(self.render(results, generated_at), encoding="utf-8")
        return target

    def generate(self, result: GoalRunResult, output_dir: Path) -> Path:
        """Write a report for one goal run and return its path."""
        return self._write([result], output_dir, result.definition.id)

    def generate_suite(self, results: List[GoalRunResult], output_dir: Path) -> Path:
        """Write a combined report for a batch of goal runs and return its path."""
        return self._write(list(results), output_dir, self.suite_stem)
