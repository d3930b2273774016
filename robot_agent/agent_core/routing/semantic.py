"""Keyword-scored router for slash commands and fuzzy system-tool matching.

``SemanticRouter.route`` resolves input in four steps:

1. ``/command`` aliases map straight to a tool (confidence 1.0).
2. Input with a multi-step or analytical indicator goes to the LLM.
3. Every known tool is scored by keyword hits, example overlap and token
   overlap; the best one is accepted at ``CONFIDENCE_THRESHOLD`` or above.
4. Otherwise the input goes to the LLM as ``chat`` or ``complex_task``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

from .cache import TTLCache
from .router import CHAT_PATTERNS

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.75
SHORT_INPUT_THRESHOLD = 15

RouteSource = Literal["command", "keyword", "llm"]
RouteType = Literal["system", "chat", "complex_task"]


@dataclass(frozen=True)
class ToolMeta:
    name: str
    description: str
    keywords: Tuple[str, ...]
    examples: Tuple[str, ...]
    category: Literal["system", "file", "shell", "process", "network"] = "system"
    risk_level: int = 1
    query_type: Optional[str] = None


@dataclass(frozen=True)
class RoutingResult:
    matched: bool
    confidence: float
    source: RouteSource
    type: RouteType
    tool: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    query_type: Optional[str] = None


SYSTEM_TOOLS: Tuple[ToolMeta, ...] = (
    ToolMeta(
        name="get_cpu_usage",
        description="Retrieve current CPU utilization percentage from the system",
        keywords=("cpu", "processor", "usage", "load", "占用", "使用率", "负载"),
        examples=("cpu usage", "cpu占用", "查看cpu", "cpu使用率", "processor load"),
        query_type="cpu",
    ),
    ToolMeta(
        name="get_memory_usage",
        description="Retrieve current memory/RAM utilization from the system",
        keywords=("memory", "ram", "内存", "使用率", "占用"),
        examples=("memory usage", "内存占用", "查看内存", "ram usage"),
        query_type="memory",
    ),
    ToolMeta(
        name="get_disk_usage",
        description="Retrieve disk storage usage and available space",
        keywords=("disk", "storage", "硬盘", "磁盘", "空间"),
        examples=("disk usage", "磁盘空间", "硬盘使用", "storage"),
        query_type="disk",
    ),
    ToolMeta(
        name="get_process_list",
        description="List all running processes with their resource usage",
        keywords=("process", "进程", "running", "运行", "program"),
        examples=("process list", "进程列表", "running processes", "查看进程"),
        category="process",
        query_type="process",
    ),
    ToolMeta(
        name="get_network_info",
        description="Get network interfaces and IP addresses",
        keywords=("network", "ip", "网络", "网卡", "interface"),
        examples=("network info", "ip地址", "网络信息", "网卡"),
        category="network",
        query_type="network",
    ),
    ToolMeta(
        name="get_time",
        description="Get current system time and date",
        keywords=("time", "date", "时间", "日期", "几点"),
        examples=("what time", "当前时间", "几点了", "date"),
        query_type="time",
    ),
    ToolMeta(
        name="get_current_directory",
        description="Get current working directory path",
        keywords=("pwd", "directory", "目录", "路径", "cwd"),
        examples=("current directory", "当前目录", "pwd", "工作目录"),
        query_type="path",
    ),
    ToolMeta(
        name="get_environment",
        description="Get environment variables information",
        keywords=("env", "environment", "环境变量"),
        examples=("env", "环境变量", "environment"),
        query_type="env",
    ),
)

COMMAND_ALIASES: Dict[str, str] = {
    "/cpu": "get_cpu_usage",
    "/memory": "get_memory_usage",
    "/mem": "get_memory_usage",
    "/ram": "get_memory_usage",
    "/disk": "get_disk_usage",
    "/storage": "get_disk_usage",
    "/process": "get_process_list",
    "/processes": "get_process_list",
    "/ps": "get_process_list",
    "/network": "get_network_info",
    "/net": "get_network_info",
    "/ip": "get_network_info",
    "/time": "get_time",
    "/date": "get_time",
    "/pwd": "get_current_directory",
    "/cwd": "get_current_directory",
    "/dir": "get_current_directory",
    "/env": "get_environment",
    "/help": "__help__",
    "/?": "__help__",
    "/clear": "__clear__",
    "/model": "__model__",
    "/config": "__config__",
    "/exit": "__exit__",
    "/quit": "__exit__",
    "/q": "__exit__",
}

COMPLEX_INDICATORS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"找出",
        r"查找",
        r"搜索",
        r"前[0-9一二三四五]+",
        r"最高",
        r"最低",
        r"最大",
        r"最小",
        r"排序",
        r"过滤",
        r"筛选",
        r"然后",
        r"之后",
        r"如果",
        r"否则",
        r"循环",
        r"多次",
        r"批量",
        r"自动",
        r"监控",
        r"定时",
        r"整理",
        r"删除",
        r"创建",
        r"修改",
        r"分析",
        r"比较",
        r"统计",
        r"and then",
        r"after that",
        r"if",
        r"otherwise",
        r"loop",
        r"batch",
        r"automate",
        r"monitor",
        r"top\s+\d",
        r"find",
        r"search",
    )
)

_NON_WORD = re.compile(r"[^\w一-龥\s]")


def tokenize(text: str) -> List[str]:
    return [t for t in _NON_WORD.sub(" ", text.lower()).split() if t]


def is_complex_query(text: str) -> bool:
    trimmed = text.strip()
    lowered = trimmed.lower()
    return any(p.search(trimmed) or p.search(lowered) for p in COMPLEX_INDICATORS)


def keyword_score(text: str, tool: ToolMeta) -> float:
    """
    Score how well ``text`` matches ``tool``, in ``[0, 1]``.

    +0.3 per keyword found in the input, +0.5 per example that contains or is
    contained by the input, +0.1 per token/keyword substring overlap, plus 0.3
    times the ratio of matched keywords.
    """
    lowered = text.lower()
    keywords = [k.lower() for k in tool.keywords]
    score = 0.0
    matched = 0

    for keyword in keywords:
        if keyword in lowered:
            matched += 1
            score += 0.3

    for example in tool.examples:
        example = example.lower()
        if example in lowered or lowered in example:
            score += 0.5

    for token in tokenize(text):
        for keyword in keywords:
            if token in keyword or keyword in token:
                matched += 1
                score += 0.1

    if keywords:
        score += matched / len(keywords) * 0.3
    return min(score, 1.0)


def detect_input_type(text: str) -> RouteType:
    trimmed = text.strip()
    lowered = trimmed.lower()
    if any(p.search(trimmed) or p.search(lowered) for p in CHAT_PATTERNS):
        return "chat"
    if len(trimmed) < SHORT_INPUT_THRESHOLD:
        return "chat"
    return "complex_task"


class SemanticRouter:
    """Slash-command aliasing and keyword-scored tool matching."""

    def __init__(
        self,
        tools: Optional[Tuple[ToolMeta, ...]] = None,
        *,
        aliases: Optional[Dict[str, str]] = None,
        threshold: float = CONFIDENCE_THRESHOLD,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self._tools: Dict[str, ToolMeta] = {t.name: t for t in (SYSTEM_TOOLS if tools is None else tools)}
        self._aliases = dict(COMMAND_ALIASES if aliases is None else aliases)
        self._threshold = threshold
        self.cache = cache if cache is not None else TTLCache()

    def register_tool(self, meta: ToolMeta) -> None:
        self._tools[meta.name] = meta

    def clear_cache(self) -> None:
        self.cache.clear()

    def _query_type(self, tool_name: str) -> Optional[str]:
        meta = self._tools.get(tool_name)
        return meta.query_type if meta is not None else None

    def route(self, text: str) -> RoutingResult:
        trimmed = text.strip()

        if trimmed.startswith("/"):
            command, *args = trimmed.split()
            tool = self._aliases.get(command.lower())
            if tool is None:
                return RoutingResult(matched=False, confidence=0.0, source="command", type="chat")
            return RoutingResult(
                matched=True,
                confidence=1.0,
                source="command",
                type="system",
                tool=tool,
                params={"args": args},
                query_type=self._query_type(tool),
            )

        if not trimmed:
            return RoutingResult(matched=False, confidence=0.0, source="llm", type="chat")

        if is_complex_query(trimmed):
            return RoutingResult(matched=False, confidence=0.0, source="llm", type="complex_task")

        best: Optional[ToolMeta] = None
        best_score = 0.0
        for tool in self._tools.values():
            score = keyword_score(trimmed, tool)
            if score > best_score:
                best, best_score = tool, score

        if best is not None and best_score >= self._threshold:
            logger.debug(f"Keyword route {trimmed!r} -> {best.name} ({best_score:.2f})")
            return RoutingResult(
                matched=True,
                confidence=best_score,
                source="keyword",
                type="system",
                tool=best.name,
                query_type=best.query_type,
            )

        return RoutingResult(matched=False, confidence=best_score, source="llm", type=detect_input_type(trimmed))

    @staticmethod
    def is_fast_path(result: RoutingResult) -> bool:
        return result.matched and result.source != "llm"
