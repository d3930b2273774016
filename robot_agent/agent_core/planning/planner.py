"""Structured planning for agent goals.

This module defines the default planner used by ``AgentService`` and handed to
the execution engine as its planner collaborator.

Responsibilities
----------------

- Convert a goal into a list of ``PlanStep`` objects naming registered tools.
- Settle step ids and risk tiers through ``normalize_plan``.

The planner is intentionally constrained:

- It does not execute tools.
- It does not decide approvals; risk tiers drive that later.
"""

from __future__ import annotations

import logging
import re
from typing import Any, List, Optional

from pydantic_ai import Agent

from ..schemas.domain import PlanStep
from ..tools.registry import ToolRegistry
from ..routing.router import IntentRouter, IntentType
from .steps import PlannedStep, normalize_plan

logger = logging.getLogger(__name__)

_SHELL_PREFIX = re.compile(r"^(run|exec|执行|运行)\s*", re.IGNORECASE)

_FILE_TOOLS = {
    "read": "file_read",
    "delete": "file_delete",
    "list": "file_list",
}

SYSTEM_PROMPT = (
    "You are the planner of a local command-line assistant. "
    "Break the user's goal into a minimal, safe sequence of tool calls. "
    "Use only the tools listed below and give every step a risk level: "
    "READ for inspection, MODIFY for writes, DELETE for removals, SYSTEM for shell commands."
)


class StructuredPlanner:
    """Planner that produces ``PlanStep`` lists.

    The planner supports two modes:

    - ``model=None``: deterministic mapping of the intent router result. File
      reads, deletes and listings with a recognizable path and explicit shell
      commands become a single step; anything else yields an empty plan.
    - ``model!=None``: uses Pydantic AI with ``output_type=list[PlannedStep]``
      and the registry's tool list in the system prompt.
    """

    def __init__(
        self,
        *,
        model: Any | None = None,
        registry: Optional[ToolRegistry] = None,
        router: Optional[IntentRouter] = None,
    ) -> None:
        self._model = model
        self._registry = registry
        self._router = router or IntentRouter()

    async def plan(self, goal: str) -> List[PlanStep]:
        """Generate a plan for ``goal``."""
        if self._model is None:
            return normalize_plan(self._deterministic(goal), registry=self._registry)

        agent: Agent = Agent(self._model, output_type=List[PlannedStep], system_prompt=self._system_prompt())
        result = await agent.run(f"Create a plan for this goal.\n\ngoal={goal}\n")
        logger.debug(f"Planner returned {len(result.output)} steps for goal {goal!r}")
        return normalize_plan(result.output, registry=self._registry)

    def _system_prompt(self) -> str:
        if self._registry is None or not len(self._registry):
            return SYSTEM_PROMPT
        lines = [f"- {t.name} ({t.risk_level.value}): {t.description}" for t in self._registry.all()]
        return SYSTEM_PROMPT + "\n\nTools:\n" + "\n".join(lines)

    def _deterministic(self, goal: str) -> List[PlannedStep]:
        intent = self._router.detect(goal)

        if intent.type == IntentType.file_operation:
            tool_name = _FILE_TOOLS.get(intent.operation or "")
            path = intent.target_path or ("." if intent.operation == "list" else None)
            if tool_name is not None and path is not None:
                return [PlannedStep(tool_name=tool_name, params={"path": path}, description=goal)]

        if intent.type == IntentType.shell_command:
            command = _SHELL_PREFIX.sub("", goal.strip(), count=1).strip()
            if command:
                return [PlannedStep(tool_name="shell_execute", params={"command": command}, description=goal)]

        logger.info(f"No deterministic plan for {intent.type.value} goal; configure a model for full planning")
        return []
