"""``robot-agent`` console front end.

Reads one request per line, hands it to ``AgentService`` and prints the
response. Executions are rendered event by event; plan approval and step
permissions are answered with a ``[y/N]`` prompt.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Awaitable, Callable, Optional

from . import __version__
from .agent_core.runtime.engine import ExecutionEngine, ExecutionStream
from .agent_core.schemas.domain import ExecutionEvent, ExecutionEventType, ExecutionResult
from .agent_core.service import AgentResponse, AgentService
from .agent_core.tools.orchestrator import OrchestratorEvents
from .core.config import get_settings
from .core.logging_config import setup_logging


PROMPT = "robot> "

HELP_TEXT = """\
Type a request in plain language, for example:
  cpu usage                 answered locally
  read ./notes.txt          planned, confirmed, executed
  run git status            shell commands ask for permission

Commands:
  /cpu /memory /disk /ps /net /time /pwd /env   system queries
  /model    show the configured language model
  /config   show the effective settings
  /clear    clear the screen
  /help     show this help
  /exit     quit"""

Ask = Callable[[str], Awaitable[bool]]


async def ask_yes_no(question: str) -> bool:
    """Prompt on stdin; anything but y/yes (including EOF) is a no."""
    try:
        reply = await asyncio.to_thread(input, question)
    except (EOFError, KeyboardInterrupt):
        print()
        return False
    return reply.strip().lower() in ("y", "yes")


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def render_event(event: ExecutionEvent) -> Optional[str]:
    """Plain-text rendering of one engine event, or ``None`` to print nothing."""
    p = event.payload

    if event.type == ExecutionEventType.status:
        return f"... {p.get('message', '')}"

    if event.type == ExecutionEventType.plan:
        steps = p.get("steps") or []
        if not steps:
            return "Plan: no steps"
        lines = ["Plan:"]
        for n, step in enumerate(steps, start=1):
            description = step.get("description") or step.get("tool_name")
            lines.append(f"  {n}. [{step.get('risk_level')}] {step.get('tool_name')}: {description}")
        return "\n".join(lines)

    if event.type == ExecutionEventType.confirm_plan:
        high_risk = p.get("high_risk_steps") or []
        if high_risk:
            return f"{len(high_risk)} step(s) will ask for permission before running."
        return None

    if event.type == ExecutionEventType.confirm_permission:
        target = f" on {p['target']}" if p.get("target") else ""
        return f"Permission required: {p.get('tool_name')} ({p.get('risk_level')}){target}"

    if event.type == ExecutionEventType.step_start:
        return f"-> [{p.get('step_index', 0) + 1}/{p.get('total_steps', '?')}] {p.get('tool_name')}"

    if event.type == ExecutionEventType.step_progress:
        return f"   {p.get('message', '')}"

    if event.type == ExecutionEventType.step_complete:
        if p.get("success"):
            return "   ok"
        return f"   failed: {p.get('error')}"

    if event.type == ExecutionEventType.error:
        return f"Error: {p.get('message')}"

    if event.type == ExecutionEventType.result:
        if not p.get("success"):
            return f"Failed: {p.get('error') or 'one or more steps failed'}"
        data = p.get("data")
        if isinstance(data, list):
            return "\n".join(_render_value(item.get("result")) for item in data if item.get("success"))
        return _render_value(data) if data is not None else "Done."

    return None


async def drive_execution(
    engine: ExecutionEngine,
    stream: ExecutionStream,
    *,
    auto_approve: bool = False,
    ask: Ask = ask_yes_no,
    out: Callable[[str], None] = print,
) -> ExecutionResult:
    """Render ``stream`` and answer its confirmations until the run ends."""
    try:
        async for event in stream:
            text = render_event(event)
            if text is not None:
                out(text)
            if event.type == ExecutionEventType.confirm_plan:
                engine.confirm_plan(auto_approve or await ask("Execute this plan? [y/N] "))
            elif event.type == ExecutionEventType.confirm_permission:
                engine.confirm_permission(auto_approve or await ask("Allow this step? [y/N] "))
    except asyncio.CancelledError:
        engine.cancel()
        raise
    return await stream.result()


async def handle_line(service: AgentService, line: str, *, auto_approve: bool = False) -> bool:
    """Process one input line. Returns ``False`` when the session should end."""
    response: AgentResponse = await service.handle(line)

    if response.kind == "command":
        return _run_command(response)

    if response.kind == "execution":
        await drive_execution(response.engine, response.stream, auto_approve=auto_approve)
        return True

    print(response.text or "")
    return True


def _run_command(response: AgentResponse) -> bool:
    command = response.command
    if command == "exit":
        return False
    if command == "help":
        print(HELP_TEXT)
    elif command == "clear":
        print("\033[2J\033[H", end="")
    elif command == "model":
        print(get_settings().llm.model or "none (deterministic planning)")
    elif command == "config":
        print(json.dumps(get_settings().model_dump(by_alias=True), indent=2, default=str))
    else:
        print(f"Unknown command: {response.text}. Type /help for the list.")
    return True


def _on_rate_limited(tool_name: str, retry_after: float) -> None:
    print(f"{tool_name} is rate limited; retry in {retry_after:.1f}s")


async def repl(service: AgentService, *, auto_approve: bool = False) -> None:
    print(f"robot-agent {__version__}. Type /help for help, /exit to quit.")
    while True:
        try:
            line = await asyncio.to_thread(input, PROMPT)
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not line.strip():
            continue
        try:
            if not await handle_line(service, line, auto_approve=auto_approve):
                return
        except KeyboardInterrupt:
            print("Interrupted.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="robot-agent",
        description="Local command-line assistant with confirmed tool execution",
    )
    parser.add_argument("-p", "--prompt", help="Handle a single request and exit")
    parser.add_argument("-y", "--yes", action="store_true", help="Approve plans and step permissions without asking")
    parser.add_argument("--log-level", default="WARNING", help="Console log level (default: WARNING)")
    parser.add_argument("--version", action="version", version=f"robot-agent {__version__}")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level, log_format="simple")

    service = AgentService.from_settings(events=OrchestratorEvents(on_rate_limited=_on_rate_limited))
    if args.prompt:
        asyncio.run(handle_line(service, args.prompt, auto_approve=args.yes))
    else:
        asyncio.run(repl(service, auto_approve=args.yes))
    return 0


if __name__ == "__main__":
    sys.exit(main())
