"""LangGraph execution engine.

``ExecutionEngine`` turns a goal into a plan, asks for plan approval, asks for
per-step permission on dangerous steps, executes the steps and streams typed
events to any front end.

Execution model
---------------

- ``run(goal)`` starts a LangGraph state machine on the running event loop and
  returns an ``ExecutionStream``. Iterating the stream yields
  ``ExecutionEvent`` objects; ``await stream.result()`` returns the final
  ``ExecutionResult``.
- Graph nodes: ``planning -> confirm -> execute -> formatting -> finish``. Any
  node can route straight to ``finish`` to end the run as failed or cancelled.
- ``execute`` runs the batches one after another, so the graph has a fixed
  number of super-steps whatever the plan length. Serial mode has one step
  per batch; partial parallelism groups independent steps (see
  ``schedule_batches``).

Suspension points
-----------------

The run pauses at two points until the caller answers:

- plan confirmation, answered by ``confirm_plan(bool)``,
- permission for DELETE and SYSTEM steps, answered by ``confirm_permission(bool)``.

Each is an ``asyncio`` future. Confirmations are serialized by a lock, so at
most one is outstanding even inside a parallel batch. Answering the wrong kind
is a no-op. ``cancel()`` resolves the pending confirmation as denied and stops
new steps from starting; a tool call already in flight is not interrupted.

An executor may call ``report_progress(progress, message)`` while it runs to
emit ``step_progress`` events for its step.

Every run ends with exactly one ``result`` event.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import uuid4

from langgraph.graph import END, StateGraph

from ..errors import ToolTimeoutError
from ..planning.steps import normalize_plan
from ..schemas.domain import (
    ExecutionEvent,
    ExecutionEventType,
    ExecutionPhase,
    ExecutionPlan,
    ExecutionResult,
    PlanStatus,
    PlanStep,
    StepResult,
)
from ..tools.orchestrator import permission_target
from .models import (
    EngineConfig,
    Formatter,
    ParallelConfig,
    Planner,
    SandboxConfig,
    StepExecutor,
    _GraphState,
    schedule_batches,
)

logger = logging.getLogger(__name__)

PLANNING_FAILED = "planning failed"
PLANNING_TIMED_OUT = "planning timed out"
USER_CANCELLED = "user cancelled"
USER_DENIED = "user denied"
CANCELLED = "cancelled"
SKIPPED_AFTER_FAILURE = "skipped after earlier failure"

_END_OF_STREAM = object()

_PROGRESS: ContextVar[Optional[Callable[[float, Optional[str]], None]]] = ContextVar("step_progress", default=None)


def report_progress(progress: float, message: Optional[str] = None) -> bool:
    """
    Emit a ``step_progress`` event for the step whose executor is running.

    Executors call this from inside ``executor(step)``. ``progress`` is clamped
    to ``0.0 .. 1.0``. Returns ``False`` (and emits nothing) when called outside
    a step run by ``ExecutionEngine``.
    """
    reporter = _PROGRESS.get()
    if reporter is None:
        return False
    reporter(min(max(float(progress), 0.0), 1.0), message)
    return True


class ExecutionStream:
    """Async iterator over the events of one run, plus its final result."""

    def __init__(self, queue: asyncio.Queue, task: asyncio.Task) -> None:
        self._queue = queue
        self._task = task

    def __aiter__(self) -> "ExecutionStream":
        return self

    async def __anext__(self) -> ExecutionEvent:
        item = await self._queue.get()
        if item is _END_OF_STREAM:
            # Keep the stream exhausted for repeated iteration.
            self._queue.put_nowait(_END_OF_STREAM)
            raise StopAsyncIteration
        return item

    @property
    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> ExecutionResult:
        """Wait for the run to finish and return its ``ExecutionResult``."""
        return await self._task


class ExecutionEngine:
    """Plan, confirm, execute and format a goal while streaming events.

    Args:
        planner: ``async (goal) -> list`` of ``PlanStep`` objects or step dicts.
        executor: ``async (step)`` or, with a sandbox configured,
            ``async (step, sandbox)``; its return value becomes the step result.
        formatter: Optional ``async (goal, step_results) -> str``.
        config: Timeouts, sandbox and parallelism. Defaults to a plain serial
            engine without timeouts.
    """

    def __init__(
        self,
        planner: Planner,
        executor: StepExecutor,
        formatter: Optional[Formatter] = None,
        *,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self._planner = planner
        self._executor = executor
        self._formatter = formatter
        self._config = config or EngineConfig()
        self._graph = self._build_graph()

        self._active = False
        self._cancelled = False
        self._queue: Optional[asyncio.Queue] = None
        self._confirm_lock: Optional[asyncio.Lock] = None
        self._pending: Optional[Tuple[str, asyncio.Future]] = None

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_GraphState)
        g.add_node("planning", self._node_plan)
        g.add_node("confirm", self._node_confirm_plan)
        g.add_node("execute", self._node_execute)
        g.add_node("formatting", self._node_format)
        g.add_node("finish", self._node_finish)

        g.set_entry_point("planning")
        g.add_conditional_edges("planning", self._route_unless_terminal, {"next": "confirm", "finish": "finish"})
        g.add_conditional_edges("confirm", self._route_unless_terminal, {"next": "execute", "finish": "finish"})
        g.add_conditional_edges("execute", self._route_unless_terminal, {"next": "formatting", "finish": "finish"})
        g.add_edge("formatting", "finish")
        g.add_edge("finish", END)
        return g.compile()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._active

    @property
    def pending_confirmation(self) -> Optional[str]:
        """``"plan"``, ``"permission"`` or ``None``."""
        return self._pending[0] if self._pending is not None else None

    def update_sandbox_config(self, **changes: Any) -> SandboxConfig:
        base = self._config.sandbox.model_dump() if self._config.sandbox is not None else {}
        sandbox = SandboxConfig(**{**base, **changes})
        self._config = self._config.model_copy(update={"sandbox": sandbox})
        return sandbox

    def update_parallel_config(self, **changes: Any) -> ParallelConfig:
        parallel = ParallelConfig(**{**self._config.parallel.model_dump(), **changes})
        self._config = self._config.model_copy(update={"parallel": parallel})
        return parallel

    def run(self, goal: str) -> ExecutionStream:
        """
        Start executing ``goal`` on the running event loop.

        Raises:
            RuntimeError: If a run is already active or no event loop is running.
        """
        loop = asyncio.get_running_loop()
        if self._active:
            raise RuntimeError("an execution is already in progress")

        self._active = True
        self._cancelled = False
        self._pending = None
        self._queue = asyncio.Queue()
        self._confirm_lock = asyncio.Lock()
        task = loop.create_task(self._drive(goal, self._queue))
        return ExecutionStream(self._queue, task)

    def confirm_plan(self, approved: bool) -> bool:
        """Answer a pending plan confirmation. Returns whether one was pending."""
        return self._resolve("plan", approved)

    def confirm_permission(self, approved: bool) -> bool:
        """Answer a pending step permission. Returns whether one was pending."""
        return self._resolve("permission", approved)

    def cancel(self) -> None:
        """Stop the active run at the next step boundary. No-op when idle."""
        if not self._active:
            return
        logger.info("Cancelling execution")
        self._cancelled = True
        pending, self._pending = self._pending, None
        if pending is not None and not pending[1].done():
            pending[1].set_result(False)

    def _resolve(self, kind: str, approved: bool) -> bool:
        pending = self._pending
        if pending is None or pending[0] != kind or pending[1].done():
            return False
        self._pending = None
        pending[1].set_result(bool(approved))
        return True

    async def _drive(self, goal: str, queue: asyncio.Queue) -> ExecutionResult:
        state: _GraphState = {"goal": goal, "task_id": f"task_{uuid4().hex[:12]}"}
        try:
            final = await self._graph.ainvoke(state)
            return final["_result"]
        except Exception as exc:
            logger.exception(f"Execution of goal {goal!r} aborted")
            message = str(exc) or type(exc).__name__
            self._emit(ExecutionEventType.error, {"message": message})
            self._emit(ExecutionEventType.result, {"success": False, "error": message})
            return ExecutionResult(success=False, error=message)
        finally:
            self._active = False
            self._pending = None
            queue.put_nowait(_END_OF_STREAM)

    def _emit(self, event_type: ExecutionEventType, payload: Dict[str, Any]) -> None:
        logger.debug(f"event {event_type.value}: {payload}")
        self._queue.put_nowait(ExecutionEvent(type=event_type, payload=payload))

    def _status(self, message: str, phase: ExecutionPhase) -> None:
        self._emit(ExecutionEventType.status, {"message": message, "phase": phase.value})

    async def _call(self, fn: Callable[..., Any], args: Tuple[Any, ...], timeout_message: str) -> Any:
        value = fn(*args)
        if not inspect.isawaitable(value):
            return value
        timeout = self._config.timeout_seconds
        if timeout is None:
            return await value
        try:
            return await asyncio.wait_for(value, timeout=timeout)
        except asyncio.TimeoutError:
            raise ToolTimeoutError(timeout_message) from None

    async def _wait_for_confirmation(self, kind: str, event_type: ExecutionEventType, payload: Dict[str, Any]) -> bool:
        async with self._confirm_lock:
            if self._cancelled:
                return False
            future = asyncio.get_running_loop().create_future()
            self._pending = (kind, future)
            self._emit(event_type, payload)
            try:
                return await future
            finally:
                if self._pending is not None and self._pending[1] is future:
                    self._pending = None

    @staticmethod
    def _terminate(state: _GraphState, status: PlanStatus, error: Optional[str]) -> _GraphState:
        state["_terminal_status"] = status.value
        state["_error"] = error
        return state

    async def _node_plan(self, state: _GraphState) -> _GraphState:
        """Ask the planner for steps and announce the plan."""
        goal = state["goal"]
        self._status("planning", ExecutionPhase.planning)

        try:
            raw = await self._call(self._planner, (goal,), PLANNING_TIMED_OUT)
            steps = normalize_plan(raw or [])
        except ToolTimeoutError as exc:
            logger.warning(f"Planner timed out for goal {goal!r}")
            self._emit(ExecutionEventType.error, {"message": str(exc), "code": "timeout"})
            return self._terminate(state, PlanStatus.failed, PLANNING_TIMED_OUT)
        except Exception as exc:
            logger.warning(f"Planner failed for goal {goal!r}: {exc}")
            self._emit(ExecutionEventType.error, {"message": str(exc) or type(exc).__name__})
            return self._terminate(state, PlanStatus.failed, PLANNING_FAILED)

        plan = ExecutionPlan(task_id=state["task_id"], goal=goal, steps=steps)
        state["plan"] = plan
        state["results"] = [None] * len(steps)

        if self._cancelled:
            return self._terminate(state, PlanStatus.cancelled, CANCELLED)

        self._emit(
            ExecutionEventType.plan,
            {"task_id": plan.task_id, "goal": goal, "steps": [s.model_dump(mode="json") for s in steps]},
        )
        if not steps:
            self._status("nothing to execute", ExecutionPhase.executing)
            return self._terminate(state, PlanStatus.completed, None)
        return state

    async def _node_confirm_plan(self, state: _GraphState) -> _GraphState:
        """Suspend until the plan is approved, then schedule the batches."""
        plan = state["plan"]
        approved = await self._wait_for_confirmation(
            "plan",
            ExecutionEventType.confirm_plan,
            {
                "task_id": plan.task_id,
                "goal": plan.goal,
                "steps": [s.model_dump(mode="json") for s in plan.steps],
                "high_risk_steps": [s.model_dump(mode="json") for s in plan.high_risk_steps],
            },
        )
        if self._cancelled:
            return self._terminate(state, PlanStatus.cancelled, CANCELLED)
        if not approved:
            logger.info(f"Plan {plan.id} rejected by user")
            return self._terminate(state, PlanStatus.cancelled, USER_CANCELLED)

        state["batches"] = schedule_batches(plan.steps, self._config.parallel)
        plan.transition(PlanStatus.running)
        self._status("executing", ExecutionPhase.executing)
        return state

    async def _node_execute(self, state: _GraphState) -> _GraphState:
        """Run every batch in order.

        Results are stored at their plan index, so ordering inside a parallel
        batch does not affect alignment.
        """
        plan = state["plan"]
        batches = state["batches"]
        results = state["results"]
        total = len(plan.steps)

        for idx, batch in enumerate(batches):
            if self._cancelled:
                return self._terminate(state, PlanStatus.cancelled, CANCELLED)

            if len(batch) == 1:
                outcomes = [await self._run_step(plan.steps[batch[0]], batch[0], total)]
            else:
                outcomes = await asyncio.gather(*(self._run_step(plan.steps[i], i, total) for i in batch))
            for i, outcome in zip(batch, outcomes):
                results[i] = outcome

            if self._cancelled:
                return self._terminate(state, PlanStatus.cancelled, CANCELLED)

            if self._config.parallel.fail_fast and any(o is not None and not o.success for o in outcomes):
                for later in batches[idx + 1 :]:
                    for i in later:
                        results[i] = self._complete(i, StepResult(step_id=plan.steps[i].id, success=False, error=SKIPPED_AFTER_FAILURE))
                break
        return state

    async def _run_step(self, step: PlanStep, index: int, total: int) -> Optional[StepResult]:
        if self._cancelled:
            return None

        self._emit(
            ExecutionEventType.step_start,
            {"step_index": index, "total_steps": total, "step_id": step.id, "tool_name": step.tool_name, "description": step.description},
        )

        if step.risk_level.requires_confirmation:
            approved = await self._wait_for_confirmation(
                "permission",
                ExecutionEventType.confirm_permission,
                {
                    "step_index": index,
                    "tool_name": step.tool_name,
                    "action": step.description or f"execute {step.tool_name}",
                    "target": permission_target(step.params),
                    "risk_level": step.risk_level.value,
                    "description": step.description or "",
                },
            )
            if self._cancelled:
                return self._complete(index, StepResult(step_id=step.id, success=False, error=CANCELLED))
            if not approved:
                return self._complete(index, StepResult(step_id=step.id, success=False, error=USER_DENIED))

        sandbox = self._config.sandbox
        args = (step,) if sandbox is None else (step, sandbox)
        token = _PROGRESS.set(lambda progress, message: self._progress(index, step, progress, message))
        try:
            output = await self._call(self._executor, args, f"executing {step.tool_name} timed out")
        except Exception as exc:
            logger.warning(f"Step {step.id} ({step.tool_name}) failed: {exc}")
            return self._complete(index, StepResult(step_id=step.id, success=False, error=str(exc) or type(exc).__name__))
        finally:
            _PROGRESS.reset(token)
        return self._complete(index, StepResult(step_id=step.id, success=True, result=output))

    def _progress(self, index: int, step: PlanStep, progress: float, message: Optional[str]) -> None:
        payload: Dict[str, Any] = {"step_index": index, "step_id": step.id, "progress": progress}
        if message is not None:
            payload["message"] = message
        self._emit(ExecutionEventType.step_progress, payload)

    def _complete(self, index: int, outcome: StepResult) -> StepResult:
        payload: Dict[str, Any] = {"step_index": index, "step_id": outcome.step_id, "success": outcome.success}
        if outcome.success:
            payload["result"] = outcome.result
        else:
            payload["error"] = outcome.error
        self._emit(ExecutionEventType.step_complete, payload)
        return outcome

    async def _node_format(self, state: _GraphState) -> _GraphState:
        """Format the step results, falling back to the raw results on error."""
        results = [r for r in state["results"] if r is not None]
        data: Any = [r.model_dump() for r in results]

        if self._formatter is not None and any(r.success for r in results):
            self._status("formatting", ExecutionPhase.formatting)
            try:
                data = await self._call(self._formatter, (state["goal"], results), "formatting timed out")
            except Exception as exc:
                logger.warning(f"Formatter failed, returning raw step results: {exc}")

        state["data"] = data
        all_ok = all(r.success for r in results)
        return self._terminate(state, PlanStatus.completed if all_ok else PlanStatus.failed, None)

    async def _node_finish(self, state: _GraphState) -> _GraphState:
        """Settle the plan status and emit the single ``result`` event."""
        status = PlanStatus(state.get("_terminal_status") or PlanStatus.completed.value)
        error = state.get("_error")
        results = [r for r in state.get("results") or [] if r is not None]
        success = status == PlanStatus.completed and all(r.success for r in results)

        plan = state.get("plan")
        if plan is not None:
            plan.transition(status, error=error)

        data = state.get("data")
        payload: Dict[str, Any] = {"success": success}
        if data is not None:
            payload["data"] = data
        if error is not None:
            payload["error"] = error
        self._emit(ExecutionEventType.result, payload)

        state["_result"] = ExecutionResult(success=success, steps=results, data=data, error=error)
        return state

    @staticmethod
    def _route_unless_terminal(state: _GraphState) -> str:
        return "finish" if state.get("_terminal_status") else "next"


class EnhancedExecutionEngine(ExecutionEngine):
    """``ExecutionEngine`` with a 30 s call timeout, a sandbox and partial parallelism on."""

    def __init__(
        self,
        planner: Planner,
        executor: StepExecutor,
        formatter: Optional[Formatter] = None,
        *,
        timeout_seconds: float = 30.0,
        sandbox: Optional[SandboxConfig] = None,
        parallel: Optional[ParallelConfig] = None,
    ) -> None:
        config = EngineConfig(
            timeout_seconds=timeout_seconds,
            sandbox=sandbox or SandboxConfig(),
            parallel=parallel or ParallelConfig(enabled=True),
        )
        super().__init__(planner, executor, formatter, config=config)
