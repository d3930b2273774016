"""Tool protocol, parameter schemas and execution data models.

A tool is the concrete execution unit behind a plan step. The orchestrator
resolves ``PlanStep.tool_name`` through a ``ToolRegistry``, validates the
parameters against ``Tool.parameters`` and then awaits ``Tool.execute``.

Tools should:

- report expected failures through ``ToolResult(success=False, error=...)``,
- raise only for unexpected conditions (those are retried by the orchestrator),
- avoid performing policy decisions themselves (policy is enforced by the
  orchestrator before invocation),
- honour ``ToolContext.dry_run`` by describing what they would do.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Protocol

from pydantic import Field

from ..schemas.base import BaseSchema
from ..schemas.domain import RiskLevel

ParameterType = Literal["string", "number", "boolean", "array", "object"]


class ToolParameterProperty(BaseSchema):
    """JSON-schema-like description of a single parameter."""

    type: ParameterType
    description: str = ""
    enum: Optional[List[str]] = None
    items: Optional["ToolParameterProperty"] = None
    properties: Optional[Dict[str, "ToolParameterProperty"]] = None
    default: Any = None


class ToolParameters(BaseSchema):
    type: Literal["object"] = "object"
    properties: Dict[str, ToolParameterProperty] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)


ToolParameterProperty.model_rebuild()


@dataclass(frozen=True)
class ToolContext:
    """Execution context passed to tool implementations.

    Attributes
    ----------
    task_id:
        Identifier of the task the call belongs to, for logging.
    working_directory:
        Base directory relative paths are resolved against. ``None`` means the
        process working directory.
    dry_run:
        When set, tools must not mutate anything.
    """

    task_id: str
    working_directory: Optional[str] = None
    dry_run: bool = False


@dataclass(frozen=True)
class ToolResult:
    """Structured tool execution result."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class Tool(Protocol):
    """Protocol for tool implementations."""

    name: str
    description: str
    parameters: ToolParameters
    risk_level: RiskLevel
    action: str

    async def execute(self, params: Dict[str, Any], context: ToolContext) -> ToolResult: ...


def tool_definition(tool: Tool) -> Dict[str, Any]:
    """Render ``tool`` as an OpenAI-style function tool definition."""
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters.model_dump(exclude_none=True),
        },
    }
