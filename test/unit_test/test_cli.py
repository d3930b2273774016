from __future__ import annotations

from typing import Any, Dict, List

import pytest

from robot_agent import __version__, cli
from robot_agent.agent_core.runtime import ExecutionEngine
from robot_agent.agent_core.schemas.domain import ExecutionEvent, ExecutionEventType
from robot_agent.agent_core.service import AgentResponse

E = ExecutionEventType


def _event(event_type: ExecutionEventType, **payload: Any) -> ExecutionEvent:
    return ExecutionEvent(type=event_type, payload=payload)


def test_render_plan_lists_steps_with_risk() -> None:
    text = cli.render_event(
        _event(
            E.plan,
            steps=[
                {"tool_name": "file_read", "risk_level": "READ", "description": "read notes"},
                {"tool_name": "shell_execute", "risk_level": "SYSTEM", "description": None},
            ],
        )
    )
    assert text.splitlines() == [
        "Plan:",
        "  1. [READ] file_read: read notes",
        "  2. [SYSTEM] shell_execute: shell_execute",
    ]
    assert cli.render_event(_event(E.plan, steps=[])) == "Plan: no steps"


@pytest.mark.parametrize(
    ("event", "expected"),
    [
        (_event(E.status, message="planning", phase="planning"), "... planning"),
        (_event(E.step_start, step_index=0, total_steps=2, tool_name="file_read"), "-> [1/2] file_read"),
        (_event(E.step_progress, step_index=0, progress=0.5, message="halfway"), "   halfway"),
        (_event(E.step_complete, success=True, result=1), "   ok"),
        (_event(E.step_complete, success=False, error="boom"), "   failed: boom"),
        (_event(E.confirm_permission, tool_name="file_delete", risk_level="DELETE", target="x"), "Permission required: file_delete (DELETE) on x"),
        (_event(E.confirm_plan, high_risk_steps=[]), None),
        (_event(E.error, message="bad"), "Error: bad"),
        (_event(E.result, success=False, error="user cancelled"), "Failed: user cancelled"),
        (_event(E.result, success=False), "Failed: one or more steps failed"),
        (_event(E.result, success=True), "Done."),
        (_event(E.result, success=True, data="formatted"), "formatted"),
    ],
)
def test_render_event(event: ExecutionEvent, expected: str) -> None:
    assert cli.render_event(event) == expected


def test_render_raw_results_shows_successful_steps_only() -> None:
    data = [
        {"step_id": "step_1", "success": True, "result": "hello", "error": None},
        {"step_id": "step_2", "success": False, "result": None, "error": "denied"},
        {"step_id": "step_3", "success": True, "result": {"n": 1}, "error": None},
    ]
    assert cli.render_event(_event(E.result, success=True, data=data)) == 'hello\n{\n  "n": 1\n}'


def _engine() -> ExecutionEngine:
    async def planner(goal: str) -> List[Dict[str, Any]]:
        return [
            {"tool_name": "file_read", "params": {"path": "a"}, "risk_level": "READ"},
            {"tool_name": "file_delete", "params": {"path": "x"}, "risk_level": "DELETE"},
        ]

    async def executor(step: Any) -> str:
        return step.id

    return ExecutionEngine(planner, executor)


@pytest.mark.asyncio
async def test_drive_execution_asks_for_plan_and_dangerous_steps() -> None:
    questions: List[str] = []
    answers = [True, False]
    printed: List[str] = []

    async def ask(question: str) -> bool:
        questions.append(question)
        return answers.pop(0)

    engine = _engine()
    result = await cli.drive_execution(engine, engine.run("tidy"), ask=ask, out=printed.append)

    assert questions == ["Execute this plan? [y/N] ", "Allow this step? [y/N] "]
    assert "Permission required: file_delete (DELETE) on x" in printed
    assert printed[-1] == "Failed: one or more steps failed"
    assert [s.success for s in result.steps] == [True, False]


@pytest.mark.asyncio
async def test_drive_execution_auto_approve_never_asks() -> None:
    async def ask(question: str) -> bool:
        raise AssertionError("should not ask")

    engine = _engine()
    result = await cli.drive_execution(engine, engine.run("tidy"), auto_approve=True, ask=ask, out=lambda _: None)
    assert result.success is True


class _FakeService:
    def __init__(self, response: AgentResponse) -> None:
        self.response = response
        self.lines: List[str] = []

    async def handle(self, line: str) -> AgentResponse:
        self.lines.append(line)
        return self.response


@pytest.mark.asyncio
async def test_handle_line_prints_text_and_keeps_running(capsys: pytest.CaptureFixture[str]) -> None:
    service = _FakeService(AgentResponse(kind="fast_path", text="CPU\n..."))
    assert await cli.handle_line(service, "cpu") is True  # type: ignore[arg-type]
    assert capsys.readouterr().out == "CPU\n...\n"


@pytest.mark.asyncio
async def test_handle_line_commands(capsys: pytest.CaptureFixture[str]) -> None:
    assert await cli.handle_line(_FakeService(AgentResponse(kind="command", command="exit")), "/exit") is False  # type: ignore[arg-type]

    await cli.handle_line(_FakeService(AgentResponse(kind="command", command="help")), "/help")  # type: ignore[arg-type]
    assert cli.HELP_TEXT in capsys.readouterr().out

    await cli.handle_line(
        _FakeService(AgentResponse(kind="command", command="unknown", text="/nope")), "/nope"  # type: ignore[arg-type]
    )
    assert capsys.readouterr().out == "Unknown command: /nope. Type /help for the list.\n"

    await cli.handle_line(_FakeService(AgentResponse(kind="command", command="model")), "/model")  # type: ignore[arg-type]
    assert capsys.readouterr().out == "none (deterministic planning)\n"


def test_main_single_prompt(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["-p", "/help"]) == 0
    assert cli.HELP_TEXT in capsys.readouterr().out


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--version"])
    assert exc.value.code == 0
    assert capsys.readouterr().out.strip() == f"robot-agent {__version__}"
