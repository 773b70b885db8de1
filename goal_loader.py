"""Filesystem-backed loader for goal definitions."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

import yaml

from exceptions import GoalLoadError, GoalValidationError
from goal_types import GoalDefinition
from run_types import Goal


def _as_list(value: Any) -> List[str]:
    """Convert value to list of strings."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, str):
        return [value]
    raise GoalLoadError(f"Expected string or list, got {type(value).__name__}")


def _as_set(value: Any) -> Set[str]:
    """Convert value to set of strings."""
    if value is None:
        return set()
    if isinstance(value, (list, set, tuple)):
        return {str(item) for item in value}
    if isinstance(value, str):
        return {value}
    raise GoalLoadError(f"Expected string, list, or set, got {type(value).__name__}")


def _timeout_ms(data: Dict[str, Any], goal_id: str) -> Optional[int]:
    try:
        if data.get("timeout_ms") is not None:
            return max(0, int(data["timeout_ms"]))
        if data.get("timeout_seconds") is not None:
            return max(0, int(float(data["timeout_seconds"]) * 1000))
    except (TypeError, ValueError) as exc:
        raise GoalValidationError(
            f"Invalid timeout: {exc}", goal_id=goal_id, field="timeout_ms"
        ) from exc
    return None


def parse_goal(data: Dict[str, Any], fallback_id: str) -> GoalDefinition:
    """Parse a dictionary into a GoalDefinition."""
    if not isinstance(data, dict):
        raise GoalLoadError("Goal payload must be a mapping")

    goal_id = str(data.get("id") or fallback_id)
    task = data.get("task") or data.get("objective") or ""
    if not str(task).strip():
        raise GoalValidationError("Goal is missing a 'task' field", goal_id=goal_id, field="task")

    max_steps = data.get("max_steps")
    if max_steps is not None:
        try:
            max_steps = int(max_steps)
        except (TypeError, ValueError) as exc:
            raise GoalValidationError(
                "max_steps must be an integer", goal_id=goal_id, field="max_steps"
            ) from exc
        if max_steps < 1:
            raise GoalValidationError(
                "max_steps must be at least 1", goal_id=goal_id, field="max_steps"
            )

    priority = int(data.get("priority", 5))
    priority = min(max(priority, 1), 10)

    goal = Goal(
        task=str(task),
        constraints=_as_list(data.get("constraints")),
        success_criteria=_as_list(data.get("success_criteria")),
        timeout_ms=_timeout_ms(data, goal_id),
    )
    return GoalDefinition(
        id=goal_id,
        goal=goal,
        start_url=data.get("start_url"),
        max_steps=max_steps,
        tags=_as_set(data.get("tags")),
        skip=bool(data.get("skip", False)),
        skip_reason=data.get("skip_reason"),
        priority=priority,
    )


def load_goal_file(path: Path) -> GoalDefinition:
    """Load a single goal file (YAML or JSON)."""
    try:
        raw = path.read_text(encoding="utf-8")
        if path.suffix.lower() in {".yml", ".yaml"}:
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
        return parse_goal(data, fallback_id=path.stem)
    except (GoalLoadError, GoalValidationError):
        raise
    except Exception as exc:
        raise GoalLoadError(f"Failed to load goal file: {exc}", file_path=str(path)) from exc


def discover_goals(
    goals_dir: Path,
    only_ids: Optional[Iterable[str]] = None,
    include_tags: Optional[Set[str]] = None,
    exclude_tags: Optional[Set[str]] = None,
    include_skipped: bool = False,
    sort_by_priority: bool = False,
) -> List[GoalDefinition]:
    """
    Discover and load goals from a directory.

    Args:
        goals_dir: Directory containing goal YAML/JSON files
        only_ids: If provided, only load goals with these IDs
        include_tags: If provided, only include goals with at least one of these tags
        exclude_tags: If provided, exclude goals with any of these tags
        include_skipped: If True, include goals marked as skip=true
        sort_by_priority: If True, sort goals by priority (1=highest first)

    Returns:
        List of GoalDefinition objects
    """
    goals_dir = goals_dir.expanduser().resolve()

    if not goals_dir.exists():
        raise GoalLoadError(f"Goals directory does not exist: {goals_dir}")

    id_filter = set(only_ids or [])
    found: List[GoalDefinition] = []

    yaml_files = sorted(goals_dir.glob("*.yaml")) + sorted(goals_dir.glob("*.yml"))
    json_files = sorted(goals_dir.glob("*.json"))

    for path in yaml_files + json_files:
        definition = load_goal_file(path)

        if id_filter and definition.id not in id_filter:
            continue
        if definition.skip and not include_skipped:
            continue
        if not definition.matches_filter(include_tags, exclude_tags):
            continue

        found.append(definition)

    if id_filter:
        missing = id_filter - {d.id for d in found}
        if missing:
            raise GoalLoadError(f"Goals not found: {', '.join(sorted(missing))}")

    if sort_by_priority:
        found.sort(key=lambda d: d.priority)

    return found
