"""Convenience factories for wiring the agent core.

This module contains small helpers that turn ``Settings`` into the default
tool registry, permission evaluator, tool orchestrator, planner and execution
engine.

The intent is to keep application wiring and tests concise, while still
allowing callers to pass their own registry, guard or hooks.
"""

from __future__ import annotations

from typing import Optional

from ..core.config import Settings, get_settings
from .planning.planner import StructuredPlanner
from .policy.models import PermissionCallback, PermissionConfig
from .policy.permission_guard import PermissionEvaluator
from .runtime.engine import ExecutionEngine
from .runtime.models import EngineConfig, Formatter, ParallelConfig, Planner, StepExecutor
from .tools.builtin import register_builtin_tools
from .tools.orchestrator import OrchestratorConfig, OrchestratorEvents, ToolOrchestrator
from .tools.registry import ToolRegistry


def build_default_registry() -> ToolRegistry:
    """Build a ``ToolRegistry`` holding the built-in file, shell and browser tools."""
    return register_builtin_tools(ToolRegistry())


def build_permission_evaluator(
    settings: Optional[Settings] = None,
    *,
    callback: Optional[PermissionCallback] = None,
) -> PermissionEvaluator:
    settings = settings or get_settings()
    evaluator = PermissionEvaluator(PermissionConfig(**settings.permissions.model_dump()))
    evaluator.set_callback(callback)
    return evaluator


def build_tool_orchestrator(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[ToolRegistry] = None,
    permission_guard: Optional[PermissionEvaluator] = None,
    events: Optional[OrchestratorEvents] = None,
) -> ToolOrchestrator:
    """Construct a ``ToolOrchestrator`` from settings.

    Without an explicit ``permission_guard`` a ``PermissionEvaluator`` built from
    the permission settings is installed (it has no confirmation callback).
    """
    settings = settings or get_settings()
    return ToolOrchestrator(
        OrchestratorConfig(**settings.orchestrator.model_dump()),
        registry=registry if registry is not None else build_default_registry(),
        permission_guard=permission_guard if permission_guard is not None else build_permission_evaluator(settings),
        events=events,
    )


def build_planner(settings: Optional[Settings] = None, *, registry: Optional[ToolRegistry] = None) -> StructuredPlanner:
    settings = settings or get_settings()
    return StructuredPlanner(model=settings.llm.model, registry=registry)


def build_engine_config(settings: Optional[Settings] = None) -> EngineConfig:
    engine = (settings or get_settings()).engine
    return EngineConfig(
        timeout_seconds=engine.timeout_seconds,
        parallel=ParallelConfig(
            enabled=engine.parallel_enabled,
            max_concurrent=engine.max_concurrent,
            fail_fast=engine.fail_fast,
        ),
    )


def build_engine(
    *,
    planner: Planner,
    executor: StepExecutor,
    formatter: Optional[Formatter] = None,
    settings: Optional[Settings] = None,
) -> ExecutionEngine:
    """Construct an ``ExecutionEngine`` from collaborators and engine settings."""
    return ExecutionEngine(planner, executor, formatter, config=build_engine_config(settings))
