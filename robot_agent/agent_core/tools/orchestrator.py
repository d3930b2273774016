"""Tool orchestration: validation, rate limiting, permission, retry and timeout.

``ToolOrchestrator.execute`` runs one tool call through a fixed pipeline:

1. tool lookup in the ``ToolRegistry``,
2. parameter validation (``ToolValidator``),
3. rate-limit check (``RateLimiter``), firing ``on_rate_limited`` when blocked,
4. permission evaluation (``PermissionEvaluator``), with one escalation through
   ``on_permission_required`` when denied,
5. the ``on_before_execute`` veto hook,
6. the tool call itself, raced against ``timeout_seconds`` and retried with a
   fixed delay when it raises.

Every step before the tool call short-circuits with a failed
``ToolExecutionResult`` and ``retries=0``. ``on_after_execute`` fires with the
final outcome of every call that reached the tool.

Validation and permission failures are deterministic and are never retried.
Rate-limit failures are not retried either; callers get ``retry_after``
through the hook and the error message.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from pydantic import Field

from ..errors import NON_RETRYABLE_ERRORS, PermissionDeniedError, ToolTimeoutError
from ..policy.models import PermissionRequest
from ..policy.permission_guard import PermissionEvaluator
from ..schemas.base import BaseSchema
from .base import Tool, ToolContext, ToolResult
from .rate_limiter import RateLimiter
from .registry import ToolRegistry
from .validator import ToolValidator

logger = logging.getLogger(__name__)

TARGET_PARAM_KEYS = ("path", "target", "command", "url")


class OrchestratorConfig(BaseSchema):
    max_parallel_calls: int = Field(default=5, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    retry_count: int = Field(default=2, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)


@dataclass(frozen=True)
class ExecutionRequest:
    tool_name: str
    params: Dict[str, Any]
    context: ToolContext


@dataclass(frozen=True)
class ToolExecutionResult:
    """
    Final outcome of one orchestrated tool call.

    ``duration`` is in seconds and ``retries`` counts the extra attempts made
    after the first one.
    """

    success: bool
    result: Optional[ToolResult] = None
    error: Optional[str] = None
    duration: float = 0.0
    retries: int = 0


@dataclass
class OrchestratorEvents:
    """Optional lifecycle hooks. Each hook may be a plain function or a coroutine function."""

    on_before_execute: Optional[Callable[[ExecutionRequest], Union[bool, Awaitable[bool]]]] = None
    on_after_execute: Optional[
        Callable[[ExecutionRequest, ToolExecutionResult], Union[None, Awaitable[None]]]
    ] = None
    on_permission_required: Optional[Callable[[PermissionRequest], Union[bool, Awaitable[bool]]]] = None
    on_rate_limited: Optional[Callable[[str, float], Union[None, Awaitable[None]]]] = None


async def _call_hook(hook: Callable[..., Any], *args: Any) -> Any:
    value = hook(*args)
    if inspect.isawaitable(value):
        value = await value
    return value


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, NON_RETRYABLE_ERRORS):
        return False
    message = str(exc)
    return "Permission" not in message and "Validation" not in message


def permission_target(params: Dict[str, Any]) -> Optional[str]:
    """Return the first string among the ``path``, ``target``, ``command`` and ``url`` params."""
    for key in TARGET_PARAM_KEYS:
        value = params.get(key)
        if isinstance(value, str):
            return value
    return None


class ToolOrchestrator:
    """
    Compose validator, rate limiter and permission evaluator around tool calls.

    Args:
        config: Timeouts, retries and batch size. Defaults to ``OrchestratorConfig()``.
        registry: Tool registry to resolve names against. A new empty one by default.
        rate_limiter: Shared rate limiter. A new default one by default.
        permission_guard: Optional evaluator; without one every call is permitted.
        events: Optional lifecycle hooks.
    """

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        *,
        registry: Optional[ToolRegistry] = None,
        rate_limiter: Optional[RateLimiter] = None,
        permission_guard: Optional[PermissionEvaluator] = None,
        events: Optional[OrchestratorEvents] = None,
    ) -> None:
        self._cfg = config or OrchestratorConfig()
        self._registry = registry if registry is not None else ToolRegistry()
        self._validator = ToolValidator(self._registry)
        self._rate_limiter = rate_limiter or RateLimiter()
        self._guard = permission_guard
        self._events = events or OrchestratorEvents()

    @property
    def config(self) -> OrchestratorConfig:
        return self._cfg

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    def register_tool(self, tool: Tool) -> None:
        self._registry.register(tool, replace=True)

    def get_tool_definitions(self) -> List[Dict[str, Any]]:
        return self._registry.definitions()

    def set_permission_guard(self, guard: Optional[PermissionEvaluator]) -> None:
        self._guard = guard

    def set_events(self, events: OrchestratorEvents) -> None:
        """Merge ``events`` into the current hooks; hooks left as ``None`` are kept."""
        updates = {f.name: getattr(events, f.name) for f in fields(events) if getattr(events, f.name) is not None}
        self._events = replace(self._events, **updates)

    async def execute(self, request: ExecutionRequest) -> ToolExecutionResult:
        """
        Run one tool call through the full pipeline.

        Args:
            request: Tool name, parameters and execution context.

        Returns:
            ToolExecutionResult: Never raises for tool failures; they are reported
            through ``success``/``error``.
        """
        started = time.perf_counter()

        def failed(error: str) -> ToolExecutionResult:
            return ToolExecutionResult(success=False, error=error, duration=time.perf_counter() - started)

        tool = self._registry.find(request.tool_name)
        if tool is None:
            return failed(f"Tool not found: {request.tool_name}")

        validation = self._validator.validate(request.tool_name, request.params)
        if not validation.valid:
            logger.info(f"Validation failed for {request.tool_name}: {validation.errors}")
            return failed(f"Validation failed: {', '.join(validation.errors)}")

        rate = self._rate_limiter.check(request.tool_name)
        if not rate.allowed:
            retry_after = rate.retry_after if rate.retry_after is not None else 1.0
            if self._events.on_rate_limited is not None:
                await _call_hook(self._events.on_rate_limited, request.tool_name, retry_after)
            return failed(f"Rate limited. Retry after {retry_after:.3f}s")

        try:
            await self._check_permission(tool, request)
        except PermissionDeniedError as exc:
            return failed(str(exc))

        if self._events.on_before_execute is not None:
            proceed = await _call_hook(self._events.on_before_execute, request)
            if not proceed:
                return failed("Execution cancelled by callback")

        outcome = await self._execute_with_retry(tool, request, started)
        if self._events.on_after_execute is not None:
            await _call_hook(self._events.on_after_execute, request, outcome)
        return outcome

    async def execute_parallel(self, requests: Sequence[ExecutionRequest]) -> List[ToolExecutionResult]:
        """
        Execute ``requests`` in concurrent batches of ``max_parallel_calls``.

        Batch N completes before batch N+1 starts. Results are returned in
        request order.
        """
        size = self._cfg.max_parallel_calls
        results: List[ToolExecutionResult] = []
        for offset in range(0, len(requests), size):
            batch = requests[offset : offset + size]
            results.extend(await asyncio.gather(*(self.execute(r) for r in batch)))
        return results

    async def _check_permission(self, tool: Tool, request: ExecutionRequest) -> None:
        if self._guard is None:
            return

        target = permission_target(request.params)
        permission_request = PermissionRequest(
            tool_name=tool.name,
            action=getattr(tool, "action", tool.name),
            target=target,
            risk_level=tool.risk_level,
            description=tool.description,
            data=dict(request.params),
        )
        decision = await self._guard.evaluate(permission_request)

        if not decision.granted:
            escalate = self._events.on_permission_required
            if escalate is None or not await _call_hook(escalate, permission_request):
                reason = f": {decision.reason}" if decision.reason else ""
                raise PermissionDeniedError(f"Permission denied{reason}")
            return

        if decision.requires_backup and target and not request.context.dry_run:
            self._backup_if_exists(target, request.context)

    def _backup_if_exists(self, target: str, context: ToolContext) -> None:
        path = Path(target)
        if not path.is_absolute() and context.working_directory:
            path = Path(context.working_directory) / path
        if not path.is_file():
            return
        try:
            self._guard.create_backup(path)
        except OSError as exc:
            raise PermissionDeniedError(f"Permission denied: backup failed for {target}: {exc}") from exc

    async def _execute_with_retry(self, tool: Tool, request: ExecutionRequest, started: float) -> ToolExecutionResult:
        attempt = 0
        while True:
            try:
                self._rate_limiter.record(request.tool_name)
                result = await self._invoke(tool, request)
                return ToolExecutionResult(
                    success=result.success,
                    result=result,
                    error=result.error if not result.success else None,
                    duration=time.perf_counter() - started,
                    retries=attempt,
                )
            except Exception as exc:
                message = str(exc) or type(exc).__name__
                if attempt < self._cfg.retry_count and _is_retryable(exc):
                    attempt += 1
                    logger.warning(
                        f"{request.tool_name} failed ({message}); retry {attempt}/{self._cfg.retry_count} "
                        f"in {self._cfg.retry_delay_seconds}s"
                    )
                    await asyncio.sleep(self._cfg.retry_delay_seconds)
                    continue
                logger.error(f"{request.tool_name} failed after {attempt} retries: {message}")
                return ToolExecutionResult(
                    success=False,
                    error=message,
                    duration=time.perf_counter() - started,
                    retries=attempt,
                )

    async def _invoke(self, tool: Tool, request: ExecutionRequest) -> ToolResult:
        timeout = self._cfg.timeout_seconds
        try:
            return await asyncio.wait_for(tool.execute(dict(request.params), request.context), timeout=timeout)
        except asyncio.TimeoutError:
            raise ToolTimeoutError(f"Timeout after {timeout}s executing {request.tool_name}") from None
