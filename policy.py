"""Scope-based policy engine."""
from __future__ import annotations

import logging
from typing import Collection, Optional

from actions import Action, ClipboardRead, ClipboardWrite, FileUpload, NavGoto, Submit
from ports import PolicyEngine
from run_types import Approval, Scope


def required_scope(action: Action) -> Optional[Scope]:
    """Return the capability scope an action touches, or None if it needs none."""
    if isinstance(action, NavGoto):
        if action.url.lower().startswith("file:"):
            return Scope.FILE_ACCESS
        return Scope.NAVIGATE
    if isinstance(action, ClipboardRead):
        return Scope.CLIPBOARD_READ
    if isinstance(action, ClipboardWrite):
        return Scope.CLIPBOARD_WRITE
    if isinstance(action, FileUpload):
        return Scope.FILE_ACCESS
    if isinstance(action, Submit):
        return Scope.NETWORK
    return None


class ScopePolicy(PolicyEngine):
    """Grants an action only when the scope it touches was configured for the run."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("policy")

    async def approve(self, scopes: Collection[Scope], action: Action) -> Approval:
        scope = required_scope(action)
        if scope is None:
            return Approval(granted=True, scope=None, reason="no scope required")
        if scope in set(scopes):
            return Approval(granted=True, scope=scope, reason=f"scope '{scope.value}' granted")
        self.logger.debug(f"Denying {action.tag}: scope '{scope.value}' not configured")
        return Approval(granted=False, scope=scope, reason=f"scope '{scope.value}' not granted")
