from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pytest

from robot_agent.agent_core.errors import ToolExecutionError
from robot_agent.agent_core.factory import (
    build_default_registry,
    build_engine,
    build_engine_config,
    build_permission_evaluator,
    build_planner,
    build_tool_orchestrator,
)
from robot_agent.agent_core.planning.planner import StructuredPlanner
from robot_agent.agent_core.policy.models import PermissionRequest
from robot_agent.agent_core.routing.fast_path import FastPathExecutor
from robot_agent.agent_core.routing.router import IntentRouter
from robot_agent.agent_core.routing.semantic import SemanticRouter
from robot_agent.agent_core.schemas.domain import ExecutionEventType, ExecutionResult, PlanStep, RiskLevel
from robot_agent.agent_core.service import (
    CONFIRMED_RISK,
    NO_MODEL_CHAT_REPLY,
    AgentResponse,
    AgentService,
    AgentServiceDeps,
    OrchestratorStepExecutor,
    confirmed_by_engine,
)
from robot_agent.core.config import Settings

CPU_SAMPLE = {"usage": 7.5, "cores": 8, "model": "test-cpu", "load_average": [0.5, 0.25, 0.1]}
MEMORY_SAMPLE = {"total": 4 * 1024**3, "used": 1024**3, "free": 3 * 1024**3, "usage_percent": 25.0}


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        ROBOT_AGENT_WORKING_DIRECTORY=str(tmp_path),
        ROBOT_AGENT_BACKUP_DIR=str(tmp_path / "backups"),
        ROBOT_AGENT_TOOL_RETRY_DELAY=0,
    )


@pytest.fixture
def service(settings: Settings) -> AgentService:
    orchestrator = build_tool_orchestrator(
        settings,
        permission_guard=build_permission_evaluator(settings, callback=confirmed_by_engine),
    )
    deps = AgentServiceDeps(
        orchestrator=orchestrator,
        planner=build_planner(settings, registry=orchestrator.registry),
        fast_path=FastPathExecutor(collectors={"cpu": lambda: CPU_SAMPLE, "memory": lambda: MEMORY_SAMPLE}),
        intent_router=IntentRouter(),
        semantic_router=SemanticRouter(),
    )
    return AgentService(deps=deps, settings=settings)


async def _drive(response: AgentResponse, *, permissions: Sequence[bool] = ()) -> tuple[List[Any], ExecutionResult]:
    assert response.kind == "execution"
    engine, stream = response.engine, response.stream
    answers = list(permissions)
    events = []
    async for event in stream:
        events.append(event)
        if event.type == ExecutionEventType.confirm_plan:
            engine.confirm_plan(True)
        elif event.type == ExecutionEventType.confirm_permission:
            engine.confirm_permission(answers.pop(0) if answers else True)
    return events, await stream.result()


def test_build_default_registry_registers_all_builtin_tools() -> None:
    reg = build_default_registry()
    assert sorted(reg.names()) == [
        "browser_open",
        "file_delete",
        "file_list",
        "file_move",
        "file_read",
        "file_write",
        "shell_execute",
    ]


def test_factories_follow_settings() -> None:
    settings = Settings(
        ROBOT_AGENT_PARALLEL_ENABLED=True,
        ROBOT_AGENT_MAX_CONCURRENT=5,
        ROBOT_AGENT_ENGINE_TIMEOUT=12.5,
        ROBOT_AGENT_MAX_PARALLEL_CALLS=7,
        ROBOT_AGENT_MAX_APPROVALS=4,
    )

    config = build_engine_config(settings)
    assert config.timeout_seconds == 12.5
    assert (config.parallel.enabled, config.parallel.max_concurrent) == (True, 5)

    orchestrator = build_tool_orchestrator(settings)
    assert orchestrator.config.max_parallel_calls == 7
    assert len(orchestrator.registry) == 7

    evaluator = build_permission_evaluator(settings)
    assert evaluator.config.max_approvals_per_session == 4


def test_build_engine_uses_engine_settings() -> None:
    async def planner(goal: str) -> list:
        return []

    engine = build_engine(planner=planner, executor=lambda step: None, settings=Settings(ROBOT_AGENT_FAIL_FAST=True))
    assert engine.config.parallel.fail_fast is True
    assert engine.config.timeout_seconds == 30.0


def test_build_planner_without_model_is_deterministic() -> None:
    planner = build_planner(Settings())
    assert planner._model is None


def test_confirmed_by_engine_denies_outside_an_engine_step() -> None:
    request = PermissionRequest(tool_name="file_delete", action="delete", target="x", risk_level=RiskLevel.DELETE)
    assert confirmed_by_engine(request) is False


@pytest.mark.parametrize(
    ("approved", "tool_risk", "granted"),
    [
        (RiskLevel.DELETE, RiskLevel.DELETE, True),
        (RiskLevel.SYSTEM, RiskLevel.MODIFY, True),
        (RiskLevel.MODIFY, RiskLevel.MODIFY, True),
        (RiskLevel.READ, RiskLevel.DELETE, False),
        (RiskLevel.MODIFY, RiskLevel.SYSTEM, False),
    ],
)
def test_confirmed_by_engine_grants_up_to_the_approved_tier(
    approved: RiskLevel, tool_risk: RiskLevel, granted: bool
) -> None:
    request = PermissionRequest(tool_name="t", action="t", risk_level=tool_risk)
    token = CONFIRMED_RISK.set(approved)
    try:
        assert confirmed_by_engine(request) is granted
    finally:
        CONFIRMED_RISK.reset(token)


@pytest.mark.asyncio
async def test_step_executor_returns_tool_data(settings: Settings, tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("hello", encoding="utf-8")
    executor = OrchestratorStepExecutor(build_tool_orchestrator(settings), working_directory=str(tmp_path))

    data = await executor(PlanStep(id="s1", tool_name="file_read", params={"path": "a.txt"}, risk_level=RiskLevel.READ))

    assert data["content"] == "hello"
    assert executor.task_id.startswith("task_")


@pytest.mark.asyncio
async def test_step_executor_raises_on_failed_call(settings: Settings) -> None:
    executor = OrchestratorStepExecutor(build_tool_orchestrator(settings), task_id="t-1")
    step = PlanStep(id="s1", tool_name="teleport", risk_level=RiskLevel.READ)

    with pytest.raises(ToolExecutionError, match="Tool not found: teleport"):
        await executor(step)
    assert executor.task_id == "t-1"


@pytest.mark.asyncio
@pytest.mark.parametrize(("text", "command"), [("/help", "help"), ("/?", "help"), ("/quit", "exit"), ("/model", "model")])
async def test_front_end_commands(service: AgentService, text: str, command: str) -> None:
    response = await service.handle(text)
    assert (response.kind, response.command) == ("command", command)


@pytest.mark.asyncio
async def test_unknown_slash_command(service: AgentService) -> None:
    response = await service.handle("/teleport now")
    assert (response.kind, response.command, response.text) == ("command", "unknown", "/teleport")


@pytest.mark.asyncio
async def test_slash_alias_answers_on_fast_path(service: AgentService) -> None:
    response = await service.handle("/cpu")
    assert response.kind == "fast_path"
    assert response.text.splitlines()[0] == "CPU"
    assert "Model: test-cpu" in response.text


@pytest.mark.asyncio
async def test_intent_router_fast_path(service: AgentService) -> None:
    response = await service.handle("how much memory is used")
    assert response.kind == "fast_path"
    assert "Usage: 25.0%" in response.text


@pytest.mark.asyncio
async def test_failed_system_query_is_reported(service: AgentService) -> None:
    response = await service.answer_system_query("disk")
    assert response.text == "Query failed: Unknown query type: disk"


@pytest.mark.asyncio
async def test_chat_without_model(service: AgentService) -> None:
    response = await service.handle("hello")
    assert (response.kind, response.text) == ("chat", NO_MODEL_CHAT_REPLY)


@pytest.mark.asyncio
async def test_chat_with_test_model(settings: Settings, service: AgentService, monkeypatch: pytest.MonkeyPatch) -> None:
    pytest.importorskip("pydantic_ai")
    from pydantic_ai import models
    from pydantic_ai.models.test import TestModel

    models.ALLOW_MODEL_REQUESTS = False
    service._settings = settings.model_copy(update={"llm_model": "test"})

    import robot_agent.agent_core.service as service_mod

    created: List[Dict[str, Any]] = []
    real_agent = service_mod.Agent

    def _agent(model: Any, **kwargs: Any):
        created.append({"model": model, **kwargs})
        return real_agent(TestModel(custom_output_text="hi there"), **kwargs)

    monkeypatch.setattr(service_mod, "Agent", _agent)
    assert await service.chat("hello") == "hi there"
    assert created[0]["model"] == "test"


@pytest.mark.asyncio
async def test_file_goal_runs_through_engine_and_orchestrator(service: AgentService, tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("remember the milk", encoding="utf-8")

    response = await service.handle("cat notes.txt")
    events, result = await _drive(response)

    assert result.success is True
    assert result.steps[0].result["content"] == "remember the milk"
    assert not any(e.type == ExecutionEventType.confirm_permission for e in events)


@pytest.mark.asyncio
async def test_denied_delete_leaves_file(service: AgentService, tmp_path: Path) -> None:
    target = tmp_path / "old.txt"
    target.write_text("keep", encoding="utf-8")

    events, result = await _drive(await service.handle("delete file old.txt"), permissions=[False])

    asks = [e.payload for e in events if e.type == ExecutionEventType.confirm_permission]
    assert [(a["tool_name"], a["target"]) for a in asks] == [("file_delete", "old.txt")]
    assert result.success is False
    assert target.exists()


@pytest.mark.asyncio
async def test_approved_delete_removes_file(service: AgentService, tmp_path: Path) -> None:
    target = tmp_path / "old.txt"
    target.write_text("bye", encoding="utf-8")

    _, result = await _drive(await service.handle("delete file old.txt"), permissions=[True])

    assert result.success is True
    assert not target.exists()


@pytest.mark.asyncio
async def test_unplannable_goal_completes_with_empty_plan(service: AgentService) -> None:
    _, result = await _drive(await service.handle("organize my photos by year and then upload them"))
    assert result.success is True
    assert result.steps == []


def test_from_settings_wires_default_deps(settings: Settings) -> None:
    service = AgentService.from_settings(settings)
    assert len(service.orchestrator.registry) == 7


class _MislabellingPlanner(StructuredPlanner):
    def _deterministic(self, goal: str) -> List[Dict[str, Any]]:
        return [{"toolName": "file_delete", "params": {"path": "old.txt"}, "riskLevel": "READ"}]


@pytest.mark.asyncio
async def test_understated_risk_still_asks_before_deleting(service: AgentService, tmp_path: Path) -> None:
    target = tmp_path / "old.txt"
    target.write_text("keep", encoding="utf-8")
    service._deps = dataclasses.replace(
        service._deps, planner=_MislabellingPlanner(registry=service.orchestrator.registry)
    )

    events, result = await _drive(service.start_execution("clean up old files"), permissions=[False])

    asks = [e.payload for e in events if e.type == ExecutionEventType.confirm_permission]
    assert [(a["tool_name"], a["risk_level"]) for a in asks] == [("file_delete", "DELETE")]
    assert result.success is False
    assert target.exists()


@pytest.mark.asyncio
async def test_step_executor_refuses_tool_above_the_approved_tier(settings: Settings, tmp_path: Path) -> None:
    target = tmp_path / "old.txt"
    target.write_text("keep", encoding="utf-8")
    orchestrator = build_tool_orchestrator(
        settings,
        permission_guard=build_permission_evaluator(settings, callback=confirmed_by_engine),
    )
    executor = OrchestratorStepExecutor(orchestrator, working_directory=str(tmp_path))
    step = PlanStep(id="s1", tool_name="file_delete", params={"path": "old.txt"}, risk_level=RiskLevel.READ)

    with pytest.raises(ToolExecutionError, match="User denied permission"):
        await executor(step)
    assert target.exists()
    assert CONFIRMED_RISK.get() is None
