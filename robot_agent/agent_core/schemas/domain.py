from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema, FrozenSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RiskLevel(str, Enum):
    READ = "READ"
    MODIFY = "MODIFY"
    DELETE = "DELETE"
    SYSTEM = "SYSTEM"

    @property
    def priority(self) -> int:
        return RISK_LEVEL_PRIORITY[self]

    @property
    def requires_confirmation(self) -> bool:
        """DELETE and SYSTEM steps always need an explicit per-step confirmation."""
        return self in (RiskLevel.DELETE, RiskLevel.SYSTEM)


RISK_LEVEL_PRIORITY: Dict[RiskLevel, int] = {
    RiskLevel.READ: 1,
    RiskLevel.MODIFY: 2,
    RiskLevel.DELETE: 3,
    RiskLevel.SYSTEM: 4,
}


class PlanStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


_PLAN_STATUS_RANK = {
    PlanStatus.pending: 0,
    PlanStatus.running: 1,
    PlanStatus.completed: 2,
    PlanStatus.failed: 2,
    PlanStatus.cancelled: 2,
}


class ExecutionPhase(str, Enum):
    planning = "planning"
    executing = "executing"
    formatting = "formatting"


class ExecutionEventType(str, Enum):
    status = "status"
    plan = "plan"
    confirm_plan = "confirm_plan"
    confirm_permission = "confirm_permission"
    step_start = "step_start"
    step_progress = "step_progress"
    step_complete = "step_complete"
    result = "result"
    error = "error"


class PlanStep(FrozenSchema):
    id: str
    tool_name: str
    params: Dict[str, Any] = Field(default_factory=dict)
    risk_level: RiskLevel
    description: Optional[str] = None


class ExecutionPlan(BaseSchema):
    """
    An ordered list of plan steps for one goal.

    ``status`` only moves forward: ``pending -> running -> {completed, failed,
    cancelled}``. ``transition`` enforces this and stamps the timestamps.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    task_id: str
    goal: str
    steps: List[PlanStep] = Field(default_factory=list)

    status: PlanStatus = PlanStatus.pending
    created_at: datetime = Field(default_factory=_utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def high_risk_steps(self) -> List[PlanStep]:
        return [s for s in self.steps if s.risk_level.requires_confirmation]

    @property
    def is_terminal(self) -> bool:
        return _PLAN_STATUS_RANK[self.status] == 2

    def transition(self, status: PlanStatus, *, error: Optional[str] = None) -> None:
        """
        Move the plan to ``status``.

        Raises:
            ValueError: If the move would go backwards or leave a terminal status.
        """
        if status == self.status:
            return
        if self.is_terminal or _PLAN_STATUS_RANK[status] < _PLAN_STATUS_RANK[self.status]:
            raise ValueError(f"invalid plan status transition: {self.status.value} -> {status.value}")
        now = _utc_now()
        if status == PlanStatus.running:
            self.started_at = now
        else:
            self.completed_at = now
        self.status = status
        if error is not None:
            self.error = error


class StepResult(FrozenSchema):
    step_id: str
    success: bool
    result: Any = None
    error: Optional[str] = None


class ExecutionResult(BaseSchema):
    success: bool
    steps: List[StepResult] = Field(default_factory=list)
    data: Any = None
    error: Optional[str] = None


class ExecutionEvent(BaseSchema):
    """One item of the engine's event stream. Consumers ignore types they do not know."""

    type: ExecutionEventType
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utc_now)
