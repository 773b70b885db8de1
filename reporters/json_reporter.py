"""JSON report generator for goal runs."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List

from goal_types import GoalRunResult
from reporters.base import BaseReporter, ReportFormat, summarize


class JSONReporter(BaseReporter):
    """Generate machine-readable JSON reports."""

    extension = "json"
    suite_stem = "suite"

    @property
    def format(self) -> ReportFormat:
        return ReportFormat.JSON

    def _result_to_dict(self, result: GoalRunResult) -> Dict[str, Any]:
        """Convert GoalRunResult to JSON-serializable dict."""
        definition = result.definition
        return {
            "goal": {
                "id": definition.id,
                "start_url": definition.start_url,
                "tags": sorted(definition.tags),
                **definition.goal.to_dict(),
            },
            "result": {
                "success": result.success,
                "status": result.status,
                "reason": result.reason,
                "started_at": result.started_at.isoformat(),
                "finished_at": result.finished_at.isoformat(),
                "duration_seconds": result.duration_seconds,
                "total_steps": result.step_count,
                "browser": result.browser_type,
            },
            "run": result.report.to_dict() if result.report else None,
        }

    def render(self, results: List[GoalRunResult], generated_at: datetime) -> str:
        report_data = {
            "generated_at": generated_at.isoformat(),
            "report_version": "1.0",
            "goals": [self._result_to_dict(r) for r in results],
            "summary": summarize(results),
            "failed_goals": [
                {"id": r.definition.id, "status": r.status, "reason": r.reason}
                for r in results if not r.success
            ],
        }
        return json.dumps(report_data, indent=2)
