"""Tool registry.

The registry maps a tool name to an executable tool implementation. The
orchestrator, the validator and the planner all resolve tools through it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import ToolNotFoundError
from .base import Tool, tool_definition


class ToolRegistry:
    """
    In-memory mapping of tool names to implementations.

    Notes:
        - ``register`` refuses a second tool with the same name unless
          ``replace=True`` is passed.
        - ``get`` raises ``ToolNotFoundError`` (a ``KeyError``) if the tool is missing;
          ``find`` returns ``None`` instead.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool, *, replace: bool = False) -> None:
        """
        Register a tool implementation.

        Args:
            tool: The tool instance to register. It must expose a ``name`` attribute.
            replace: Overwrite an existing registration instead of raising.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if not replace and tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(f"Tool not found: {name}") from None

    def find(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def all(self) -> List[Tool]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def definitions(self) -> List[Dict[str, Any]]:
        """Return OpenAI-style function definitions for every registered tool."""
        return [tool_definition(t) for t in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
