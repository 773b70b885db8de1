"""Operator instructions for the computer-use reasoner."""
from typing import Optional

from run_types import Goal

DEFAULT_INSTRUCTIONS = """You are operating a real web browser on behalf of a user.

Rules:
- Look at the latest screenshot before every action and aim at the center of visible targets.
- Prefer minimal, high-signal actions; avoid loops, duplicate clicks and redundant scrolling.
- Never claim success you cannot see on the page.
- If you are blocked (login walls, captchas, missing elements), stop and describe the blocker in a message.
- When the goal is achieved, reply with a short message summarising the result instead of acting."""


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def compose_instructions(
    base: str,
    goal: Goal,
    last_error: Optional[str] = None,
) -> str:
    """
    Build the instruction text for a new conversation turn.

    The base instructions (when not blank) come first, followed by the goal,
    its constraints and success criteria, and finally the failure of the
    previous step when there is one.
    """
    parts: list[str] = []
    if base.strip():
        parts.append(base.strip())
        parts.append("")

    parts.append(f"Goal: {goal.task}")
    if goal.constraints:
        parts.append("Constraints:")
        parts.append(_bullets(goal.constraints))
    if goal.success_criteria:
        parts.append("Success criteria:")
        parts.append(_bullets(goal.success_criteria))
    if last_error:
        parts.append(f"Last step failed: {last_error}")

    return "\n".join(parts)
