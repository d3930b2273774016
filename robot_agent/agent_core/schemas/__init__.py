"""Shared pydantic schemas for the agent core."""

from .base import BaseSchema, FrozenSchema
from .domain import (
    RISK_LEVEL_PRIORITY,
    ExecutionEvent,
    ExecutionEventType,
    ExecutionPhase,
    ExecutionPlan,
    ExecutionResult,
    PlanStatus,
    PlanStep,
    RiskLevel,
    StepResult,
)

__all__ = [
    "BaseSchema",
    "FrozenSchema",
    "RISK_LEVEL_PRIORITY",
    "ExecutionEvent",
    "ExecutionEventType",
    "ExecutionPhase",
    "ExecutionPlan",
    "ExecutionResult",
    "PlanStatus",
    "PlanStep",
    "RiskLevel",
    "StepResult",
]
