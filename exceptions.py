"""Custom exception hierarchy for the computer-use agent."""
from __future__ import annotations

from typing import Any, Optional


class AgentError(Exception):
    """Base exception for all agent-related errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# Device (Computer port) exceptions
class DeviceError(AgentError):
    """Base exception for observation and execution failures on the device."""

    pass


class NavigationError(DeviceError):
    """Raised when page navigation fails."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        details = {}
        if url:
            details["url"] = url
        if timeout:
            details["timeout"] = timeout
        super().__init__(message, details)
        self.url = url
        self.timeout = timeout


class ElementNotFoundError(DeviceError):
    """Raised when a locator does not resolve to an element."""

    def __init__(self, message: str, locator: Optional[dict[str, Any]] = None):
        details = {"locator": locator} if locator else {}
        super().__init__(message, details)
        self.locator = locator


class BrowserNotStartedError(DeviceError):
    """Raised when attempting to use browser before starting."""

    def __init__(self):
        super().__init__("Browser has not been started. Call start() first.")


class ScreenshotError(DeviceError):
    """Raised when screenshot capture fails."""

    pass


class ActionNotSupportedError(DeviceError):
    """Raised when the device cannot perform an action or locator combination."""

    def __init__(self, message: str, action: Optional[str] = None):
        details = {"action": action} if action else {}
        super().__init__(message, details)
        self.action = action


# Reasoning service exceptions
class ReasoningError(AgentError):
    """Base exception for failures talking to the remote reasoning service."""

    pass


class ReasoningConnectionError(ReasoningError):
    """Raised when unable to reach the reasoning service."""

    def __init__(self, message: str, base_url: Optional[str] = None):
        details = {"base_url": base_url} if base_url else {}
        super().__init__(message, details)
        self.base_url = base_url


class ReasoningResponseError(ReasoningError):
    """Raised when the service returns an invalid or unparseable response."""

    def __init__(self, message: str, response: Optional[str] = None):
        details = {"response_preview": response[:200]} if response else {}
        super().__init__(message, details)
        self.response = response


class ObservationRequiredError(ReasoningError):
    """Raised when a pending tool call must be answered but no image is available."""

    def __init__(self, call_id: Optional[str] = None):
        details = {"call_id": call_id} if call_id else {}
        super().__init__("missing snapshot image for pending computer call", details)
        self.call_id = call_id


# Policy exceptions
class PolicyDeniedError(AgentError):
    """Raised (or recorded) when the policy engine refuses an action."""

    def __init__(self, scope: Any, reason: Optional[str] = None):
        scope_name = getattr(scope, "value", scope)
        details = {"reason": reason} if reason else {}
        super().__init__(f"policy denied: {scope_name}", details)
        self.scope = scope
        self.reason = reason


# Budget exceptions
class BudgetExceededError(AgentError):
    """Raised when a step or run budget is exhausted."""

    pass


class StepTimeoutError(BudgetExceededError):
    """Raised when a single device action exceeds its timeout."""

    def __init__(self, timeout_ms: float, action: Optional[str] = None):
        details: dict[str, Any] = {"timeout_ms": timeout_ms}
        if action:
            details["action"] = action
        super().__init__(f"Step timed out after {timeout_ms:.0f}ms", details)
        self.timeout_ms = timeout_ms
        self.action = action


# Persistence exceptions
class PersistenceError(AgentError):
    """Raised when archiving snapshots or writing run logs fails."""

    def __init__(self, message: str, path: Optional[str] = None):
        details = {"path": path} if path else {}
        super().__init__(message, details)
        self.path = path


# Goal definition exceptions
class GoalLoadError(AgentError):
    """Raised when a goal file cannot be loaded or parsed."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        details = {"file_path": file_path} if file_path else {}
        super().__init__(message, details)
        self.file_path = file_path


class GoalValidationError(AgentError):
    """Raised when a goal definition is invalid."""

    def __init__(self, message: str, goal_id: Optional[str] = None, field: Optional[str] = None):
        details = {}
        if goal_id:
            details["goal_id"] = goal_id
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.goal_id = goal_id
        self.field = field


# Configuration exceptions
class ConfigurationError(AgentError):
    """Raised when configuration is invalid."""

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """Raised when a required config file is not found."""

    def __init__(self, file_path: str):
        super().__init__(f"Configuration file not found: {file_path}", {"file_path": file_path})
        self.file_path = file_path
