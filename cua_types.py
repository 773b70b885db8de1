"""Wire payloads of the computer-use Responses API and their decoders."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from exceptions import ReasoningResponseError


# ─────────────────────────────────────────────────────────────────────────────
# Service actions (what the model asks the computer to do)
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ScreenshotRequest:
    pass


@dataclass(frozen=True)
class ClickRequest:
    x: int
    y: int
    button: Optional[str] = None


@dataclass(frozen=True)
class DoubleClickRequest:
    x: int
    y: int


@dataclass(frozen=True)
class MoveRequest:
    x: int
    y: int


@dataclass(frozen=True)
class ScrollRequest:
    dx: int
    dy: int


@dataclass(frozen=True)
class TypeRequest:
    text: str


@dataclass(frozen=True)
class KeypressRequest:
    key: str


@dataclass(frozen=True)
class DragPathRequest:
    points: List[Tuple[int, int]] = field(default_factory=list)


@dataclass(frozen=True)
class WaitRequest:
    ms: int = 300


@dataclass(frozen=True)
class UnknownRequest:
    kind: str
    raw: Dict[str, Any] = field(default_factory=dict)


CuaAction = Union[
    ScreenshotRequest,
    ClickRequest,
    DoubleClickRequest,
    MoveRequest,
    ScrollRequest,
    TypeRequest,
    KeypressRequest,
    DragPathRequest,
    WaitRequest,
    UnknownRequest,
]


# ─────────────────────────────────────────────────────────────────────────────
# Service outputs (one per turn)
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MessageOutput:
    text: str


@dataclass(frozen=True)
class ComputerCallOutput:
    call_id: str
    action: CuaAction
    requires_observation: bool
    response_id: str
    safety_checks: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class DoneOutput:
    response_id: str


CuaOutput = Union[MessageOutput, ComputerCallOutput, DoneOutput]


# ─────────────────────────────────────────────────────────────────────────────
# Decoding
# ─────────────────────────────────────────────────────────────────────────────


def _int(data: Dict[str, Any], *keys: str, default: int = 0) -> int:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return default


def _points(raw: Any) -> List[Tuple[int, int]]:
    points: List[Tuple[int, int]] = []
    if not isinstance(raw, list):
        return points
    for p in raw:
        if not isinstance(p, dict):
            continue
        try:
            points.append((int(p["x"]), int(p["y"])))
        except (KeyError, TypeError, ValueError):
            continue
    return points


def decode_action(data: Dict[str, Any]) -> CuaAction:
    """Decode one `action` object of a computer call."""
    kind = str(data.get("type") or "unknown")
    if kind == "screenshot":
        return ScreenshotRequest()
    if kind == "click":
        return ClickRequest(x=_int(data, "x"), y=_int(data, "y"), button=data.get("button"))
    if kind == "double_click":
        return DoubleClickRequest(x=_int(data, "x"), y=_int(data, "y"))
    if kind == "move":
        return MoveRequest(x=_int(data, "x"), y=_int(data, "y"))
    if kind == "scroll":
        return ScrollRequest(dx=_int(data, "scroll_x", "dx"), dy=_int(data, "scroll_y", "dy"))
    if kind == "type":
        return TypeRequest(text=str(data.get("text") or ""))
    if kind == "keypress":
        keys = data.get("keys")
        if isinstance(keys, list) and keys:
            return KeypressRequest(key="+".join(str(k) for k in keys))
        return KeypressRequest(key=str(data.get("key") or ""))
    if kind in ("drag", "drag_path"):
        return DragPathRequest(points=_points(data.get("path") or data.get("points")))
    if kind in ("wait", "wait_ms"):
        return WaitRequest(ms=_int(data, "ms", default=300))
    return UnknownRequest(kind=kind, raw=dict(data))


def _message_text(item: Dict[str, Any]) -> Optional[str]:
    content = item.get("content")
    if isinstance(content, list) and content and isinstance(content[0], dict):
        text = content[0].get("text")
        if isinstance(text, str):
            return text
    return None


def parse_response(payload: Dict[str, Any]) -> CuaOutput:
    """
    Classify one Responses API payload.

    A computer call wins over any message in the same response; a payload
    with no recognised output item is treated as completion.
    """
    response_id = payload.get("id")
    if not response_id:
        raise ReasoningResponseError("missing id in service response", response=str(payload))

    pending_message: Optional[str] = None
    for item in payload.get("output") or []:
        if not isinstance(item, dict):
            continue
        kind = item.get("type")
        if kind == "computer_call":
            call_id = item.get("call_id")
            if not call_id:
                raise ReasoningResponseError(
                    "computer call without call_id", response=str(payload)
                )
            action = item.get("action")
            requires = item.get("requires_screenshot")
            return ComputerCallOutput(
                call_id=str(call_id),
                action=decode_action(action) if isinstance(action, dict) else UnknownRequest(kind="unknown"),
                requires_observation=True if requires is None else bool(requires),
                response_id=str(response_id),
                safety_checks=list(item.get("pending_safety_checks") or []),
            )
        if kind == "message":
            text = _message_text(item)
            if text is not None:
                pending_message = text
        elif kind == "done":
            return DoneOutput(response_id=str(response_id))

    if pending_message is not None:
        return MessageOutput(text=pending_message)
    return DoneOutput(response_id=str(response_id))
