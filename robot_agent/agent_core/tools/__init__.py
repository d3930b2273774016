"""Tool system: registry, validation, rate limiting and orchestration.

Components
----------

- ``ToolRegistry``: name to implementation mapping.
- ``ToolValidator``: structural parameter checks against ``ToolParameters``.
- ``RateLimiter``: per-tool sliding-window budgets.
- ``ToolOrchestrator``: runs calls through validation, rate limiting,
  permission, timeout and retry.
- ``builtin``: file, shell and browser tools.
"""

from .base import Tool, ToolContext, ToolParameterProperty, ToolParameters, ToolResult, tool_definition
from .builtin import builtin_tools, register_builtin_tools
from .orchestrator import (
    ExecutionRequest,
    OrchestratorConfig,
    OrchestratorEvents,
    ToolExecutionResult,
    ToolOrchestrator,
)
from .rate_limiter import RateLimitConfig, RateLimiter, RateLimitResult
from .registry import ToolRegistry
from .validator import ToolValidator, ValidationResult

__all__ = [
    "ExecutionRequest",
    "OrchestratorConfig",
    "OrchestratorEvents",
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimiter",
    "Tool",
    "ToolContext",
    "ToolExecutionResult",
    "ToolOrchestrator",
    "ToolParameterProperty",
    "ToolParameters",
    "ToolRegistry",
    "ToolResult",
    "ToolValidator",
    "ValidationResult",
    "builtin_tools",
    "register_builtin_tools",
    "tool_definition",
]
