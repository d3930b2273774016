"""Agent core: routing, planning, policy, tools and the execution engine.

Design overview
---------------

The agent core separates *deciding* from *doing*:

- Routers classify input. Local system queries are answered on the fast path;
  everything else is handed to the planner.
- The planner emits ``PlanStep`` objects naming registered tools and their risk
  tiers. It never executes anything.
- ``runtime.ExecutionEngine`` walks the plan as a LangGraph state machine. It
  suspends for plan approval and for permission on DELETE and SYSTEM steps, and
  streams ``ExecutionEvent`` objects to the front end.
- ``tools.ToolOrchestrator`` performs each call: validation, rate limiting,
  permission evaluation, timeout and retry.

Typical usage
-------------

Most applications should use ``service.AgentService``:

1. ``AgentService.from_settings()`` wires the default components.
2. ``await service.handle(text)`` returns an ``AgentResponse``.
3. For executions, iterate ``response.stream`` and answer confirmations through
   ``response.engine``.
"""

from .errors import (
    AgentCoreError,
    PermissionDeniedError,
    PlanningError,
    RateLimitedError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
    ToolValidationError,
)
from .schemas.domain import (
    ExecutionEvent,
    ExecutionEventType,
    ExecutionPlan,
    ExecutionResult,
    PlanStatus,
    PlanStep,
    RiskLevel,
    StepResult,
)
from .service import AgentResponse, AgentService, AgentServiceDeps, OrchestratorStepExecutor

__all__ = [
    "AgentCoreError",
    "AgentResponse",
    "AgentService",
    "AgentServiceDeps",
    "ExecutionEvent",
    "ExecutionEventType",
    "ExecutionPlan",
    "ExecutionResult",
    "OrchestratorStepExecutor",
    "PermissionDeniedError",
    "PlanStatus",
    "PlanStep",
    "PlanningError",
    "RateLimitedError",
    "RiskLevel",
    "StepResult",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    "ToolValidationError",
]
