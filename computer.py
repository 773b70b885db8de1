"""Computer port implemented over a Playwright browser."""
from __future__ import annotations

import base64
import hashlib
import logging
import time
from typing import Optional, Tuple

from playwright.async_api import Locator as PageLocator
from playwright.async_api import TimeoutError as PlaywrightTimeout

from actions import (
    ACTIVE_ELEMENT,
    Action,
    AriaLocator,
    Click,
    ClipboardRead,
    ClipboardWrite,
    CoordinatesLocator,
    CssLocator,
    Drag,
    FileUpload,
    Hover,
    IdLocator,
    Key,
    Locator,
    NavGoto,
    Scroll,
    Submit,
    TextLocator,
    TypeText,
    XPathLocator,
)
from browser import SimpleBrowser
from defaults import new_snapshot_id
from exceptions import (
    ActionNotSupportedError,
    AgentError,
    DeviceError,
    ElementNotFoundError,
)
from ports import Computer
from run_types import ActionResult, ElementDescriptor, ElementRect, Snapshot

_SUBMIT_SCRIPT = """(el) => {
    const form = el.tagName === 'FORM' ? el : el.closest('form');
    if (!form) throw new Error('element is not inside a form');
    form.requestSubmit();
}"""

# Service key names that differ from Playwright's.
_KEY_NAMES = {
    "CTRL": "Control",
    "CONTROL": "Control",
    "ALT": "Alt",
    "OPTION": "Alt",
    "SHIFT": "Shift",
    "CMD": "Meta",
    "COMMAND": "Meta",
    "META": "Meta",
    "SUPER": "Meta",
    "WIN": "Meta",
    "ENTER": "Enter",
    "RETURN": "Enter",
    "ESC": "Escape",
    "ESCAPE": "Escape",
    "TAB": "Tab",
    "SPACE": "Space",
    "BACKSPACE": "Backspace",
    "DELETE": "Delete",
    "DEL": "Delete",
    "INSERT": "Insert",
    "HOME": "Home",
    "END": "End",
    "PAGEUP": "PageUp",
    "PAGEDOWN": "PageDown",
    "UP": "ArrowUp",
    "DOWN": "ArrowDown",
    "LEFT": "ArrowLeft",
    "RIGHT": "ArrowRight",
    "ARROWUP": "ArrowUp",
    "ARROWDOWN": "ArrowDown",
    "ARROWLEFT": "ArrowLeft",
    "ARROWRIGHT": "ArrowRight",
}


def _css_string(value: str) -> str:
    """Quote a value for use inside a CSS attribute selector."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def playwright_key(combo: str) -> str:
    """Translate a key combination such as `CTRL+L` to Playwright's `Control+l`."""
    parts = [p.strip() for p in combo.split("+") if p.strip()]
    if not parts:
        return combo
    names = []
    for part in parts:
        name = _KEY_NAMES.get(part.upper())
        if name is None:
            # Letters under a modifier are sent lowercase so Shift is not implied.
            name = part.lower() if len(part) == 1 and len(parts) > 1 else part
        names.append(name)
    return "+".join(names)


class PlaywrightComputer(Computer):
    """
    Observes and acts on a SimpleBrowser page.

    Snapshots carry a base64 PNG of the viewport, the URL, the title and a
    short excerpt of the body text. An action reports `changed` when the URL
    or the screenshot differs from the previous observation.
    """

    def __init__(
        self,
        browser: SimpleBrowser,
        settle_ms: int = 400,
        action_settle_ms: int = 150,
        logger: Optional[logging.Logger] = None,
    ):
        self.browser = browser
        self.settle_ms = settle_ms
        self.action_settle_ms = action_settle_ms
        self.logger = logger or logging.getLogger("computer")
        self._started = time.monotonic()
        self._last_url: Optional[str] = None
        self._last_digest: Optional[str] = None

    async def _capture(self) -> Snapshot:
        png = await self.browser.screenshot()
        url = self.browser.get_url()
        title = await self.browser.get_title()
        body = await self.browser.get_body_text()
        self._last_url = url
        self._last_digest = hashlib.sha256(png).hexdigest()
        return Snapshot(
            id=new_snapshot_id(),
            url=url,
            title=title or None,
            image_base64=base64.b64encode(png).decode("ascii"),
            dom_summary=body or None,
            captured_at_ms=int((time.monotonic() - self._started) * 1000),
        )

    async def open(self, url: str) -> Snapshot:
        self.logger.info(f"Opening {url}")
        await self.browser.goto(url)
        await self.browser.settle(self.settle_ms)
        return await self._capture()

    async def observe(self) -> Snapshot:
        return await self._capture()

    def _resolve(self, locator: Locator) -> PageLocator:
        """Map a locator strategy to a Playwright locator (first match)."""
        if isinstance(locator, CssLocator):
            return self.browser.locator(locator.selector).first
        if isinstance(locator, XPathLocator):
            return self.browser.locator(f"xpath={locator.expr}").first
        if isinstance(locator, TextLocator):
            return self.browser.get_by_text(locator.pattern).first
        if isinstance(locator, IdLocator):
            return self.browser.locator(f"[id={_css_string(locator.id)}]").first
        if isinstance(locator, AriaLocator):
            if not locator.role:
                if not locator.name:
                    raise ActionNotSupportedError("aria locator needs a role or a name", action="locate")
                return self.browser.get_by_label(locator.name).first
            return self.browser.get_by_role(locator.role, locator.name).first
        raise ActionNotSupportedError(
            f"locator '{locator.tag}' cannot be resolved to an element", action="locate"
        )

    async def locate(self, locator: Locator, timeout: float) -> ElementDescriptor:
        if isinstance(locator, CoordinatesLocator):
            return ElementDescriptor(
                locator=locator,
                description="point",
                rect=ElementRect(x=float(locator.x), y=float(locator.y), width=1.0, height=1.0),
            )
        try:
            element = self._resolve(locator)
            await element.wait_for(state="visible", timeout=timeout * 1000)
            box = await element.bounding_box()
            text = (await element.inner_text(timeout=timeout * 1000)).strip()
        except AgentError:
            raise
        except PlaywrightTimeout as e:
            raise ElementNotFoundError(
                f"No visible element for {locator.tag} locator", locator=locator.to_dict()
            ) from e
        except Exception as e:
            raise DeviceError(f"Locate failed: {e}") from e

        rect = None
        if box:
            rect = ElementRect(x=box["x"], y=box["y"], width=box["width"], height=box["height"])
        return ElementDescriptor(locator=locator, description=text[:200] or None, rect=rect)

    async def _point(self, locator: Locator, timeout: float) -> Tuple[float, float]:
        """Center of the element a locator designates."""
        if isinstance(locator, CoordinatesLocator):
            return float(locator.x), float(locator.y)
        element = await self.locate(locator, timeout)
        if element.rect is None:
            raise ElementNotFoundError(
                "Element has no bounding box", locator=locator.to_dict()
            )
        rect = element.rect
        return rect.x + rect.width / 2, rect.y + rect.height / 2

    async def execute(self, action: Action, timeout: float) -> ActionResult:
        before_url, before_digest = self._last_url, self._last_digest
        try:
            message = await self._perform(action, timeout)
            await self.browser.settle(self.action_settle_ms)
            snapshot = await self._capture()
        except AgentError:
            raise
        except PlaywrightTimeout as e:
            raise DeviceError(f"{action.tag} timed out: {e}", details={"action": action.tag}) from e
        except Exception as e:
            raise DeviceError(f"{action.tag} failed: {e}", details={"action": action.tag}) from e

        changed = snapshot.url != before_url or self._last_digest != before_digest
        return ActionResult(snapshot=snapshot, changed=changed, message=message)

    async def _perform(self, action: Action, timeout: float) -> Optional[str]:
        timeout_ms = timeout * 1000

        if isinstance(action, Click):
            x, y = await self._point(action.target, timeout)
            await self.browser.click(x, y, button=action.button, click_count=action.click_count)
            return None

        if isinstance(action, TypeText):
            if action.into != ACTIVE_ELEMENT:
                x, y = await self._point(action.into, timeout)
                await self.browser.click(x, y)
            await self.browser.type_text(action.text)
            return None

        if isinstance(action, Key):
            await self.browser.press_key(playwright_key(action.combo))
            return None

        if isinstance(action, Hover):
            x, y = await self._point(action.target, timeout)
            await self.browser.hover(x, y)
            return None

        if isinstance(action, Scroll):
            if action.target is not None:
                x, y = await self._point(action.target, timeout)
                await self.browser.hover(x, y)
            await self.browser.scroll(action.dx, action.dy)
            return None

        if isinstance(action, Drag):
            start_x, start_y = await self._point(action.source, timeout)
            end_x, end_y = await self._point(action.target, timeout)
            await self.browser.drag_and_drop(start_x, start_y, end_x, end_y)
            return None

        if isinstance(action, NavGoto):
            await self.browser.goto(action.url, timeout=timeout_ms)
            await self.browser.settle(self.settle_ms)
            return None

        if isinstance(action, Submit):
            if isinstance(action.target, CoordinatesLocator):
                raise ActionNotSupportedError("submit needs an element locator", action="submit")
            await self._resolve(action.target).evaluate(_SUBMIT_SCRIPT)
            return None

        if isinstance(action, FileUpload):
            if isinstance(action.target, CoordinatesLocator):
                raise ActionNotSupportedError("file upload needs an element locator", action="file_upload")
            await self._resolve(action.target).set_input_files(action.path, timeout=timeout_ms)
            return None

        if isinstance(action, ClipboardRead):
            return await self.browser.read_clipboard()

        if isinstance(action, ClipboardWrite):
            await self.browser.write_clipboard(action.data)
            return None

        raise ActionNotSupportedError(f"Unsupported action: {action!r}", action=getattr(action, "tag", None))
