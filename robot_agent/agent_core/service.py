"""High-level service turning one line of user input into a response.

``AgentService`` provides an application-friendly API so front ends never wire
routers, the planner, the engine and the tool orchestrator by hand.

Workflow
--------

``handle(text)``:

1. Slash commands and keyword hits are resolved by the ``SemanticRouter``.
   Front-end commands (``/help``, ``/exit`` ...) come back as ``command``
   responses; system aliases are answered on the fast path.
2. Otherwise the ``IntentRouter`` classifies the input. System queries that
   need no model are answered locally by ``FastPathExecutor``.
3. Chat is answered by the configured language model, if any.
4. Everything else starts a fresh ``ExecutionEngine`` whose executor dispatches
   each step to the ``ToolOrchestrator``. The response carries the engine (for
   confirmations and cancellation) and its event stream.

The user approves the whole plan and then every DELETE and SYSTEM step. The
orchestrator's permission evaluator still applies the allow/deny lists and the
session quota. Its confirmation callback grants a tool call only up to the
risk tier the user approved for the step being executed.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic_ai import Agent

from ..core.config import Settings, get_settings
from .errors import ToolExecutionError
from .factory import build_engine, build_permission_evaluator, build_planner, build_tool_orchestrator
from .planning.planner import StructuredPlanner
from .policy.models import PermissionRequest
from .routing.fast_path import FastPathExecutor, format_system_info
from .routing.router import IntentRouter, IntentType
from .routing.semantic import SemanticRouter
from .runtime.engine import ExecutionEngine, ExecutionStream
from .runtime.models import Formatter, SandboxConfig
from .schemas.domain import PlanStep, RiskLevel
from .tools.base import ToolContext
from .tools.orchestrator import ExecutionRequest, OrchestratorEvents, ToolOrchestrator

logger = logging.getLogger(__name__)

ResponseKind = Literal["fast_path", "command", "chat", "execution"]

NO_MODEL_CHAT_REPLY = "No language model is configured. Set ROBOT_AGENT_LLM_MODEL to enable chat."

CHAT_SYSTEM_PROMPT = "You are a concise local command-line assistant. Answer briefly and in plain text."


CONFIRMED_RISK: ContextVar[Optional[RiskLevel]] = ContextVar("confirmed_risk", default=None)


def confirmed_by_engine(request: PermissionRequest) -> bool:
    """Permission callback for tools driven by ``ExecutionEngine``.

    ``OrchestratorStepExecutor`` records the tier the user approved for the
    running step in ``CONFIRMED_RISK``: the plan approval covers READ and
    MODIFY steps, a per-step prompt covers DELETE and SYSTEM. A tool whose own
    tier is higher than that, or a call made outside an engine step, is denied.
    """
    confirmed = CONFIRMED_RISK.get()
    if confirmed is None or request.risk_level.priority > confirmed.priority:
        approved = confirmed.value if confirmed is not None else "nothing"
        logger.warning(f"Denying {request.tool_name} ({request.risk_level.value}); user approved {approved}")
        return False
    logger.debug(f"{request.tool_name} ({request.risk_level.value}) covered by the {confirmed.value} confirmation")
    return True


class OrchestratorStepExecutor:
    """Engine step executor that dispatches each ``PlanStep`` to a ``ToolOrchestrator``.

    A failed orchestrated call raises ``ToolExecutionError`` so the engine
    records it against the step. On success the tool's ``data`` is returned.
    """

    def __init__(
        self,
        orchestrator: ToolOrchestrator,
        *,
        task_id: Optional[str] = None,
        working_directory: Optional[str] = None,
        dry_run: bool = False,
    ) -> None:
        self._orchestrator = orchestrator
        self._task_id = task_id or f"task_{uuid4().hex[:12]}"
        self._working_directory = working_directory
        self._dry_run = dry_run

    @property
    def task_id(self) -> str:
        return self._task_id

    async def __call__(self, step: PlanStep, sandbox: Optional[SandboxConfig] = None) -> Any:
        context = ToolContext(task_id=self._task_id, working_directory=self._working_directory, dry_run=self._dry_run)
        token = CONFIRMED_RISK.set(step.risk_level)
        try:
            outcome = await self._orchestrator.execute(ExecutionRequest(step.tool_name, dict(step.params), context))
        finally:
            CONFIRMED_RISK.reset(token)
        if not outcome.success:
            raise ToolExecutionError(outcome.error or f"{step.tool_name} failed")
        return outcome.result.data if outcome.result is not None else None


@dataclass(frozen=True)
class AgentResponse:
    """What the front end should do with one line of input.

    - ``fast_path``/``chat``: print ``text``.
    - ``command``: a front-end command such as ``help`` or ``exit``.
    - ``execution``: drive ``engine`` while iterating ``stream``.
    """

    kind: ResponseKind
    text: Optional[str] = None
    command: Optional[str] = None
    engine: Optional[ExecutionEngine] = None
    stream: Optional[ExecutionStream] = None


@dataclass(frozen=True)
class AgentServiceDeps:
    """Dependency bundle for ``AgentService``.

    This allows applications and tests to inject routers, the fast-path
    executor, the planner and the tool orchestrator.
    """

    orchestrator: ToolOrchestrator
    planner: StructuredPlanner
    fast_path: FastPathExecutor
    intent_router: IntentRouter
    semantic_router: Optional[SemanticRouter] = None


class AgentService:
    """Route input to the fast path, chat or a confirmed plan execution."""

    def __init__(
        self,
        *,
        deps: AgentServiceDeps,
        settings: Optional[Settings] = None,
        formatter: Optional[Formatter] = None,
    ) -> None:
        self._deps = deps
        self._settings = settings or get_settings()
        self._formatter = formatter

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        events: Optional[OrchestratorEvents] = None,
    ) -> "AgentService":
        """Wire the default service: built-in tools, both routers and the settings-driven planner."""
        settings = settings or get_settings()
        orchestrator = build_tool_orchestrator(
            settings,
            permission_guard=build_permission_evaluator(settings, callback=confirmed_by_engine),
            events=events,
        )
        intent_router = IntentRouter()
        deps = AgentServiceDeps(
            orchestrator=orchestrator,
            planner=build_planner(settings, registry=orchestrator.registry),
            fast_path=FastPathExecutor(),
            intent_router=intent_router,
            semantic_router=SemanticRouter(),
        )
        return cls(deps=deps, settings=settings)

    @property
    def orchestrator(self) -> ToolOrchestrator:
        return self._deps.orchestrator

    async def handle(self, text: str) -> AgentResponse:
        trimmed = text.strip()

        semantic = self._deps.semantic_router
        if semantic is not None:
            routed = semantic.route(trimmed)
            if SemanticRouter.is_fast_path(routed):
                if routed.tool is not None and routed.tool.startswith("__"):
                    return AgentResponse(kind="command", command=routed.tool.strip("_"))
                if routed.query_type is not None:
                    return await self.answer_system_query(routed.query_type)
            elif routed.source == "command":
                return AgentResponse(kind="command", command="unknown", text=trimmed.split()[0])

        intent = self._deps.intent_router.detect(trimmed)
        logger.debug(f"Input classified as {intent.type.value} ({intent.confidence:.2f})")

        if IntentRouter.is_fast_path(intent) and intent.query_type is not None:
            return await self.answer_system_query(intent.query_type)

        if intent.type == IntentType.chat:
            return AgentResponse(kind="chat", text=await self.chat(trimmed))

        return self.start_execution(trimmed)

    async def answer_system_query(self, query_type: str) -> AgentResponse:
        result = await self._deps.fast_path.execute(query_type)
        if not result.success:
            return AgentResponse(kind="fast_path", text=f"Query failed: {result.error}")
        return AgentResponse(kind="fast_path", text=format_system_info(query_type, result.data))

    async def chat(self, text: str) -> str:
        model = self._settings.llm.model
        if model is None:
            return NO_MODEL_CHAT_REPLY
        agent: Agent = Agent(model, system_prompt=CHAT_SYSTEM_PROMPT)
        result = await agent.run(text)
        return str(result.output)

    def start_execution(self, goal: str) -> AgentResponse:
        """Start an engine run for ``goal``; must be called on the running event loop."""
        executor = OrchestratorStepExecutor(
            self._deps.orchestrator,
            working_directory=self._settings.working_directory,
        )
        engine = build_engine(
            planner=self._deps.planner.plan,
            executor=executor,
            formatter=self._formatter,
            settings=self._settings,
        )
        logger.info(f"Starting execution {executor.task_id} for goal {goal!r}")
        return AgentResponse(kind="execution", engine=engine, stream=engine.run(goal))
