"""Input routing: decide between the local fast path and the language model.

Two interchangeable strategies share the same split contract
(``is_fast_path``):

- ``IntentRouter``: ordered, data-driven regex rules.
- ``SemanticRouter``: slash-command aliases plus keyword scoring.

``FastPathExecutor`` answers the fast-path queries locally.
"""

from .cache import QUERY_TTL_SECONDS, TTLCache
from .fast_path import FastPathExecutor, FastPathResult, format_system_info
from .router import (
    CHAT_RULES,
    COMPLEX_TASK_RULES,
    DEFAULT_RULES,
    FILE_OPERATION_RULES,
    SHELL_RULES,
    SYSTEM_QUERY_RULES,
    IntentResult,
    IntentRouter,
    IntentRule,
    IntentType,
    RuleSet,
    extract_path,
)
from .semantic import COMMAND_ALIASES, SYSTEM_TOOLS, RoutingResult, SemanticRouter, ToolMeta

__all__ = [
    "CHAT_RULES",
    "COMMAND_ALIASES",
    "COMPLEX_TASK_RULES",
    "DEFAULT_RULES",
    "FILE_OPERATION_RULES",
    "QUERY_TTL_SECONDS",
    "SHELL_RULES",
    "SYSTEM_QUERY_RULES",
    "SYSTEM_TOOLS",
    "FastPathExecutor",
    "FastPathResult",
    "IntentResult",
    "IntentRouter",
    "IntentRule",
    "IntentType",
    "RoutingResult",
    "RuleSet",
    "SemanticRouter",
    "TTLCache",
    "ToolMeta",
    "extract_path",
    "format_system_info",
]
