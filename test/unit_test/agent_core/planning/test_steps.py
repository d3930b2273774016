from __future__ import annotations

import pytest

from robot_agent.agent_core.errors import PlanningError
from robot_agent.agent_core.planning.steps import PlannedStep, normalize_plan
from robot_agent.agent_core.schemas.domain import PlanStep, RiskLevel
from robot_agent.agent_core.tools.builtin import register_builtin_tools
from robot_agent.agent_core.tools.registry import ToolRegistry


def test_normalize_plan_accepts_camel_case_and_assigns_ids() -> None:
    out = normalize_plan(
        [
            {"toolName": "file_read", "args": {"path": "a.txt"}, "riskLevel": "read"},
            {"tool_name": "file_write", "params": {"path": "b.txt", "content": "x"}, "risk_level": "MODIFY"},
        ]
    )

    assert [s.id for s in out] == ["step_1", "step_2"]
    assert out[0] == PlanStep(id="step_1", tool_name="file_read", params={"path": "a.txt"}, risk_level=RiskLevel.READ)
    assert out[1].risk_level == RiskLevel.MODIFY


def test_normalize_plan_keeps_explicit_ids() -> None:
    out = normalize_plan([{"tool_name": "file_list", "stepId": "scan", "risk_level": "READ"}])
    assert out[0].id == "scan"


def test_missing_risk_comes_from_registry_then_defaults_to_modify() -> None:
    registry = register_builtin_tools(ToolRegistry())
    out = normalize_plan(
        [
            {"tool_name": "file_delete", "params": {"path": "x"}},
            {"tool_name": "not_registered"},
        ],
        registry=registry,
    )
    assert [s.risk_level for s in out] == [RiskLevel.DELETE, RiskLevel.MODIFY]


def test_registered_tool_risk_is_a_floor_for_the_planned_tier() -> None:
    registry = register_builtin_tools(ToolRegistry())
    out = normalize_plan(
        [
            {"toolName": "file_delete", "params": {"path": "x"}, "riskLevel": "READ"},
            {"toolName": "shell_execute", "params": {"command": "ls"}, "riskLevel": "modify"},
            {"toolName": "file_read", "params": {"path": "a"}, "riskLevel": "SYSTEM"},
            {"toolName": "not_registered", "riskLevel": "READ"},
        ],
        registry=registry,
    )
    assert [s.risk_level for s in out] == [RiskLevel.DELETE, RiskLevel.SYSTEM, RiskLevel.SYSTEM, RiskLevel.READ]


def test_normalize_plan_accepts_schema_objects() -> None:
    existing = PlanStep(id="a", tool_name="file_read", risk_level=RiskLevel.READ)
    planned = PlannedStep(tool_name="shell_execute", params={"command": "ls"}, risk_level=RiskLevel.SYSTEM)

    out = normalize_plan([existing, planned])

    assert out[0] == existing
    assert (out[1].id, out[1].risk_level) == ("step_2", RiskLevel.SYSTEM)


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        (["not a dict"], "plan step 1 is not an object"),
        ([{"params": {}}], "plan step 1 has no tool name"),
        ([{"tool_name": "x", "risk_level": "DANGEROUS"}], "unknown risk level: DANGEROUS"),
        ([{"tool_name": "x", "id": "s"}, {"tool_name": "y", "id": "s"}], "duplicate plan step id: s"),
    ],
)
def test_normalize_plan_rejects_malformed_steps(raw, message: str) -> None:
    with pytest.raises(PlanningError, match=message):
        normalize_plan(raw)


def test_plan_steps_are_immutable() -> None:
    (step,) = normalize_plan([{"tool_name": "file_read", "risk_level": "READ"}])
    with pytest.raises(Exception):
        step.tool_name = "file_delete"  # type: ignore[misc]
