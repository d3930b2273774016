"""Engine configuration, collaborator signatures and LangGraph state types.

The runtime engine is dependency-injected:

- ``Planner``, ``StepExecutor`` and ``Formatter`` are plain async callables.
- ``EngineConfig`` switches on timeouts, sandbox forwarding and partial
  parallelism.
- ``_GraphState`` is the mutable state passed between LangGraph nodes.
"""

from __future__ import annotations

from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    List,
    NotRequired,
    Optional,
    Required,
    TypedDict,
)

from pydantic import Field

from ..schemas.base import BaseSchema
from ..schemas.domain import ExecutionPlan, ExecutionResult, PlanStep, StepResult

# Steps using these tools mutate shared state and never run concurrently.
DEPENDENT_TOOLS: FrozenSet[str] = frozenset({"file_write", "file_delete", "file_move", "shell_execute"})


class SandboxConfig(BaseSchema):
    """Execution limits forwarded to the step executor as its second argument."""

    timeout_seconds: float = Field(default=30.0, gt=0)
    max_memory_mb: int = Field(default=512, gt=0)
    allowed_commands: List[str] = Field(default_factory=list)
    allowed_paths: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)


class ParallelConfig(BaseSchema):
    enabled: bool = False
    max_concurrent: int = Field(default=3, ge=1)
    fail_fast: bool = False


class EngineConfig(BaseSchema):
    """
    Engine behaviour switches.

    Attributes:
        timeout_seconds: Hard limit for each planner and executor call. ``None``
            disables timeouts.
        sandbox: When set, passed to the executor as ``executor(step, sandbox)``.
        parallel: Partial parallelism for independent steps.
    """

    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    sandbox: Optional[SandboxConfig] = None
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)


Planner = Callable[[str], Awaitable[List[Any]]]
StepExecutor = Callable[..., Awaitable[Any]]
Formatter = Callable[[str, List[StepResult]], Awaitable[str]]


class _GraphState(TypedDict):
    """Mutable LangGraph state for a single engine run.

    Required keys:

    - ``goal``: the user goal.
    - ``task_id``: identifier reported in plan events.

    Optional keys:

    - ``plan``: the ``ExecutionPlan`` once planning succeeded.
    - ``batches``: step indices grouped into execution batches.
    - ``results``: per-step results aligned with ``plan.steps``.
    - ``data``: formatted output or raw step results for the final event.
    - ``_terminal_status`` / ``_error``: set to end the run early or mark its outcome.
    - ``_result``: the final ``ExecutionResult``.
    """

    goal: Required[str]
    task_id: Required[str]
    plan: NotRequired[ExecutionPlan]
    batches: NotRequired[List[List[int]]]
    results: NotRequired[List[Optional[StepResult]]]
    data: NotRequired[Any]
    _terminal_status: NotRequired[str]
    _error: NotRequired[Optional[str]]
    _result: NotRequired[ExecutionResult]


def schedule_batches(steps: List[PlanStep], parallel: ParallelConfig) -> List[List[int]]:
    """
    Group step indices into execution batches.

    Serial mode yields one batch per step in plan order. In parallel mode the
    independent steps run first in chunks of ``max_concurrent`` (only when more
    than one is independent), then every dependent step runs on its own.
    """
    if not parallel.enabled:
        return [[i] for i in range(len(steps))]

    independent = [i for i, s in enumerate(steps) if s.tool_name not in DEPENDENT_TOOLS]
    dependent = [i for i, s in enumerate(steps) if s.tool_name in DEPENDENT_TOOLS]

    batches: List[List[int]] = []
    if len(independent) > 1:
        size = parallel.max_concurrent
        batches.extend(independent[off : off + size] for off in range(0, len(independent), size))
    else:
        batches.extend([i] for i in independent)
    batches.extend([i] for i in dependent)
    return batches
