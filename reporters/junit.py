"""JUnit XML report generator for CI integration."""
from __future__ import annotations

import html
from datetime import datetime
from typing import List

from actions import describe_action
from goal_types import GoalRunResult
from reporters.base import BaseReporter, ReportFormat, summarize


class JUnitReporter(BaseReporter):
    """Generate JUnit XML reports for CI/CD integration."""

    extension = "xml"
    suite_stem = "junit"

    @property
    def format(self) -> ReportFormat:
        return ReportFormat.JUNIT

    def _escape_xml(self, text: str) -> str:
        """Escape special XML characters."""
        return html.escape(str(text), quote=True)

    def _format_timestamp(self, dt: datetime) -> str:
        """Format datetime for JUnit XML."""
        return dt.strftime("%Y-%m-%dT%H:%M:%S")

    def _step_lines(self, result: GoalRunResult, limit: int) -> List[str]:
        if result.report is None:
            return []
        lines = []
        for step in result.report.steps[-limit:]:
            label = describe_action(step.action) if step.action else "-"
            hint = step.result_hint.value if step.result_hint else ""
            line = f"  [{step.step}] {hint} {label}"
            if step.error:
                line += f" error={step.error[:150]}"
            lines.append(line)
        return lines

    def _build_testcase_xml(self, result: GoalRunResult) -> str:
        """Build XML for a single goal run."""
        lines = []

        classname = "cua.goals"
        name = self._escape_xml(result.definition.id)
        time_sec = f"{result.duration_seconds:.3f}"
        goal = result.definition.goal

        lines.append(f'    <testcase classname="{classname}" name="{name}" time="{time_sec}">')
        if result.success:
            lines.append("      <system-out><![CDATA[")
            lines.append(f"Task: {goal.task}")
            lines.append(f"URL: {result.definition.start_url or 'N/A'}")
            lines.append(f"Steps: {result.step_count}")
            lines.append(f"Message: {result.reason}")
            lines.extend(self._step_lines(result, 5))
            lines.append("]]></system-out>")
        else:
            message = self._escape_xml(result.reason)
            if result.report is None:
                element = "error"
                failure_type = "RunError"
            else:
                element = "failure"
                failure_type = "GoalNotMet" if result.status == "timeout" else "RunError"

            lines.append(f'      <{element} message="{message}" type="{failure_type}"><![CDATA[')
            lines.append(f"Goal: {result.definition.id}")
            lines.append(f"Task: {goal.task}")
            lines.append(f"Status: {result.status}")
            lines.append(f"Reason: {result.reason}")
            if goal.success_criteria:
                lines.append("")
                lines.append("Success Criteria:")
                for criterion in goal.success_criteria:
                    lines.append(f"  - {criterion}")
            lines.append("")
            lines.append(f"Total Steps: {result.step_count}")
            step_lines = self._step_lines(result, 5)
            if step_lines:
                lines.append("")
                lines.append("Last Steps:")
                lines.extend(step_lines)
            lines.append(f"]]></{element}>")

        lines.append("    </testcase>")
        return "\n".join(lines)

    def render(self, results: List[GoalRunResult], generated_at: datetime) -> str:
        summary = summarize(results)
        errors = summary["errored"]
        failures = summary["failed"] - errors

        if results:
            timestamp_str = self._format_timestamp(min(r.started_at for r in results))
        else:
            timestamp_str = self._format_timestamp(generated_at)

        lines = ['<?xml version="1.0" encoding="UTF-8"?>']
        lines.append(
            f'<testsuite name="Computer-use goals" '
            f'tests="{summary["total"]}" '
            f'failures="{failures}" '
            f'errors="{errors}" '
            f'skipped="0" '
            f'time="{summary["total_duration_seconds"]:.3f}" '
            f'timestamp="{timestamp_str}">'
        )

        lines.append("  <properties>")
        lines.append('    <property name="reporter" value="cua-goals-junit"/>')
        lines.append(f'    <property name="generated_at" value="{generated_at.isoformat()}"/>')
        lines.append("  </properties>")

        for result in results:
            lines.append(self._build_testcase_xml(result))

        lines.append("</testsuite>")
        return "\n".join(lines)
