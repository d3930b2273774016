from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import Field

from ..errors import PlanningError
from ..schemas.base import BaseSchema
from ..schemas.domain import PlanStep, RiskLevel
from ..tools.registry import ToolRegistry


class PlannedStep(BaseSchema):
    """One step as proposed by a planner, before ids and risk tiers are settled."""

    tool_name: str
    params: Dict[str, Any] = Field(default_factory=dict)
    risk_level: Optional[RiskLevel] = None
    description: Optional[str] = None
    id: Optional[str] = None


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _coerce(raw: Union[PlannedStep, PlanStep, Mapping[str, Any]], index: int) -> PlannedStep:
    if isinstance(raw, PlannedStep):
        return raw
    if isinstance(raw, PlanStep):
        return PlannedStep(**raw.model_dump())
    if not isinstance(raw, Mapping):
        raise PlanningError(f"plan step {index} is not an object: {raw!r}")

    tool_name = _pick(raw, "tool_name", "toolName")
    if not tool_name:
        raise PlanningError(f"plan step {index} has no tool name")

    risk = _pick(raw, "risk_level", "riskLevel")
    try:
        risk_level = RiskLevel(str(risk).upper()) if risk is not None else None
    except ValueError:
        raise PlanningError(f"plan step {index} has unknown risk level: {risk}") from None

    return PlannedStep(
        tool_name=str(tool_name),
        params=dict(_pick(raw, "params", "args") or {}),
        risk_level=risk_level,
        description=raw.get("description"),
        id=_pick(raw, "id", "step_id", "stepId"),
    )


def normalize_plan(
    raw_steps: Iterable[Union[PlannedStep, PlanStep, Mapping[str, Any]]],
    *,
    registry: Optional[ToolRegistry] = None,
) -> List[PlanStep]:
    """
    Turn planner output into immutable ``PlanStep`` objects.

    Accepts snake_case or camelCase keys. Missing ids become ``step_<n>``
    (1-based). A registered tool never runs below its own risk tier: the step
    gets the higher of the planned tier and the tool tier. Unregistered tools
    keep the planned tier, or MODIFY when none was given.

    Raises:
        PlanningError: On a malformed step, an unknown risk tier or a duplicate id.
    """
    out: List[PlanStep] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_steps, start=1):
        planned = _coerce(raw, index)
        step_id = planned.id or f"step_{index}"
        if step_id in seen:
            raise PlanningError(f"duplicate plan step id: {step_id}")
        seen.add(step_id)

        risk = planned.risk_level
        tool = registry.find(planned.tool_name) if registry is not None else None
        if tool is not None and (risk is None or tool.risk_level.priority > risk.priority):
            risk = tool.risk_level
        elif risk is None:
            risk = RiskLevel.MODIFY

        out.append(
            PlanStep(
                id=step_id,
                tool_name=planned.tool_name,
                params=planned.params,
                risk_level=risk,
                description=planned.description,
            )
        )
    return out
