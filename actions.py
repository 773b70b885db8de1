"""Device-agnostic action vocabulary and element locator strategies."""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Optional, Union


class _Tagged:
    """Mixin serializing a dataclass variant with its discriminator field."""

    tag_field: ClassVar[str] = "type"
    tag: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {self.tag_field: self.tag}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = value.to_dict() if isinstance(value, _Tagged) else value
        return out


# ─────────────────────────────────────────────────────────────────────────────
# Locators
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CssLocator(_Tagged):
    selector: str

    tag_field: ClassVar[str] = "by"
    tag: ClassVar[str] = "css"


@dataclass(frozen=True)
class XPathLocator(_Tagged):
    expr: str

    tag_field: ClassVar[str] = "by"
    tag: ClassVar[str] = "xpath"


@dataclass(frozen=True)
class TextLocator(_Tagged):
    pattern: str

    tag_field: ClassVar[str] = "by"
    tag: ClassVar[str] = "text"


@dataclass(frozen=True)
class IdLocator(_Tagged):
    id: str

    tag_field: ClassVar[str] = "by"
    tag: ClassVar[str] = "id"


@dataclass(frozen=True)
class AriaLocator(_Tagged):
    role: Optional[str] = None
    name: Optional[str] = None

    tag_field: ClassVar[str] = "by"
    tag: ClassVar[str] = "aria"


@dataclass(frozen=True)
class CoordinatesLocator(_Tagged):
    x: int
    y: int

    tag_field: ClassVar[str] = "by"
    tag: ClassVar[str] = "coordinates"


Locator = Union[CssLocator, XPathLocator, TextLocator, IdLocator, AriaLocator, CoordinatesLocator]

# The active element is implied rather than addressed.
ACTIVE_ELEMENT = CssLocator(selector="*")

LOCATOR_TYPES: Dict[str, type] = {
    cls.tag: cls
    for cls in (CssLocator, XPathLocator, TextLocator, IdLocator, AriaLocator, CoordinatesLocator)
}


# ─────────────────────────────────────────────────────────────────────────────
# Actions
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Click(_Tagged):
    target: Locator
    button: str = "left"
    click_count: int = 1

    tag: ClassVar[str] = "click"


@dataclass(frozen=True)
class TypeText(_Tagged):
    text: str
    into: Locator = ACTIVE_ELEMENT

    tag: ClassVar[str] = "type"


@dataclass(frozen=True)
class Key(_Tagged):
    combo: str

    tag: ClassVar[str] = "key"


@dataclass(frozen=True)
class Hover(_Tagged):
    target: Locator

    tag: ClassVar[str] = "hover"


@dataclass(frozen=True)
class Scroll(_Tagged):
    target: Optional[Locator] = None
    dx: int = 0
    dy: int = 0

    tag: ClassVar[str] = "scroll"


@dataclass(frozen=True)
class Drag(_Tagged):
    source: Locator
    target: Locator

    tag: ClassVar[str] = "drag"


@dataclass(frozen=True)
class NavGoto(_Tagged):
    url: str

    tag: ClassVar[str] = "nav_goto"


@dataclass(frozen=True)
class Submit(_Tagged):
    target: Locator

    tag: ClassVar[str] = "submit"


@dataclass(frozen=True)
class FileUpload(_Tagged):
    target: Locator
    path: str

    tag: ClassVar[str] = "file_upload"


@dataclass(frozen=True)
class ClipboardRead(_Tagged):
    tag: ClassVar[str] = "clipboard_read"


@dataclass(frozen=True)
class ClipboardWrite(_Tagged):
    data: str

    tag: ClassVar[str] = "clipboard_write"


Action = Union[
    Click, TypeText, Key, Hover, Scroll, Drag, NavGoto, Submit, FileUpload, ClipboardRead, ClipboardWrite
]

ACTION_TYPES: Dict[str, type] = {
    cls.tag: cls
    for cls in (
        Click, TypeText, Key, Hover, Scroll, Drag, NavGoto, Submit, FileUpload, ClipboardRead, ClipboardWrite
    )
}

# Field names that hold a locator.
_LOCATOR_FIELDS = {"target", "into", "source"}


def locator_from_dict(data: Dict[str, Any]) -> Locator:
    """Build a Locator from its tagged dictionary form."""
    by = data.get("by")
    cls = LOCATOR_TYPES.get(str(by))
    if cls is None:
        raise ValueError(f"Unknown locator strategy: {by!r}")
    kwargs = {k: v for k, v in data.items() if k != "by"}
    return cls(**kwargs)


def action_from_dict(data: Dict[str, Any]) -> Action:
    """Build an Action from its tagged dictionary form."""
    kind = data.get("type")
    cls = ACTION_TYPES.get(str(kind))
    if cls is None:
        raise ValueError(f"Unknown action type: {kind!r}")
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        if key == "type":
            continue
        if key in _LOCATOR_FIELDS and isinstance(value, dict):
            value = locator_from_dict(value)
        kwargs[key] = value
    return cls(**kwargs)


def describe_action(action: Action) -> str:
    """Short human-readable label used in logs and reports."""
    target = getattr(action, "target", None) or getattr(action, "into", None)
    if isinstance(target, CoordinatesLocator):
        return f"{action.tag}@({target.x},{target.y})"
    if isinstance(action, Key):
        return f"key {action.combo}"
    if isinstance(action, NavGoto):
        return f"goto {action.url}"
    if isinstance(action, Scroll):
        return f"scroll ({action.dx},{action.dy})"
    return action.tag
