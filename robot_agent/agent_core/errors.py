"""Exception hierarchy for the agent core.

Validation and permission errors are deterministic and are never retried by
the tool orchestrator. Timeouts and plain execution failures are retryable.
"""

from __future__ import annotations

from typing import Optional


class AgentCoreError(Exception):
    """Base class for all agent core errors."""


class ToolNotFoundError(AgentCoreError, KeyError):
    """Raised when a tool name is absent from the registry."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "tool not found"


class ToolValidationError(AgentCoreError):
    """Raised when tool parameters do not match the declared schema."""


class PermissionDeniedError(AgentCoreError):
    """Raised when the permission evaluator or the user refuses an action."""


class RateLimitedError(AgentCoreError):
    """Raised when a tool exceeded its sliding-window call budget."""

    def __init__(self, message: str, *, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ToolTimeoutError(AgentCoreError, TimeoutError):
    """Raised when a tool invocation does not finish within its timeout."""


class ToolExecutionError(AgentCoreError):
    """Raised when a tool reports a failure result."""


class PlanningError(AgentCoreError):
    """Raised when a plan cannot be produced or normalized."""


NON_RETRYABLE_ERRORS = (ToolValidationError, PermissionDeniedError)
