"""Rule-based intent router.

``IntentRouter.detect`` classifies raw user input so the agent can decide
whether a language model is needed at all. Classification walks an ordered
``RuleSet`` and the first match wins:

1. chat greetings and help requests (``chat``, needs the LLM),
2. system queries in Chinese and English (``system_query``, local fast path),
3. file operations with a light path extractor (``file_operation``),
4. shell command shapes (``shell_command``, needs the LLM),
5. multi-step indicators (``complex_task``, needs the LLM),
6. a length-based fallback: short input is ``chat``, the rest ``complex_task``.

Rules are plain data, so a router can be built with a localized or reduced
``RuleSet`` for tests.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Pattern, Tuple


class IntentType(str, Enum):
    system_query = "system_query"
    file_operation = "file_operation"
    shell_command = "shell_command"
    chat = "chat"
    complex_task = "complex_task"


@dataclass(frozen=True)
class IntentResult:
    type: IntentType
    confidence: float
    needs_llm: bool
    query_type: Optional[str] = None
    operation: Optional[str] = None
    target_path: Optional[str] = None


@dataclass(frozen=True)
class IntentRule:
    """
    One prioritized classification rule.

    Attributes:
        intent: Intent produced when any pattern matches.
        patterns: Compiled regexes; each is tried against the trimmed and the
            lower-cased input.
        confidence: Confidence reported for a match.
        needs_llm: Whether the produced intent needs the language model.
        query_type: System query family (``cpu``, ``memory``, ...), if any.
        operation: File operation (``read``, ``write``, ...), if any.
        extract_path: Run the path extractor over the input on match.
    """

    intent: IntentType
    patterns: Tuple[Pattern[str], ...]
    confidence: float
    needs_llm: bool = True
    query_type: Optional[str] = None
    operation: Optional[str] = None
    extract_path: bool = False

    def matches(self, text: str, lowered: str) -> bool:
        return any(p.search(text) or p.search(lowered) for p in self.patterns)


def _rx(*patterns: str, flags: int = re.IGNORECASE) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


PATH_PATTERN = re.compile(r"[\"']([^\"']+)[\"']|([^\s]+\.[a-zA-Z]+)")

CHAT_PATTERNS = _rx(
    r"^你[是谁]",
    r"^你[能会]做什么",
    r"^hello",
    r"^hi[!\s]?$",
    r"^你好",
    r"^谢谢",
    r"^thanks",
    r"^帮助",
    r"^help",
    r"介绍[一下]?你自己",
    r"[怎么]?使用",
)

CHAT_RULES: Tuple[IntentRule, ...] = (
    IntentRule(intent=IntentType.chat, patterns=CHAT_PATTERNS, confidence=0.9),
)


def _system(query_type: str, *patterns: str) -> IntentRule:
    return IntentRule(
        intent=IntentType.system_query,
        patterns=_rx(*patterns),
        confidence=0.95,
        needs_llm=False,
        query_type=query_type,
    )


SYSTEM_QUERY_RULES: Tuple[IntentRule, ...] = (
    _system("cpu", r"cpu[占用使用率情况]", r"[查看检查看一下]cpu", r"cpu\s*usage", r"processor", r"cpu\s*负载", r"cpu\s*load"),
    _system("memory", r"内存[占用使用率情况]", r"[查看检查看一下]内存", r"memory", r"ram\s*usage", r"内存\s*情况"),
    _system("disk", r"磁盘[占用使用空间情况]", r"[查看检查看一下]磁盘", r"disk", r"硬盘", r"storage", r"磁盘\s*情况"),
    _system(
        "process",
        r"[查看列出看一下]进程",
        r"process(es)?",
        r"运行[的]?程序",
        r"[当前正在]运行",
        r"进程\s*情况",
        r"进程\s*列表",
    ),
    _system("time", r"[当前现在]?时间", r"what\s*time", r"几点", r"date", r"今天"),
    _system("path", r"[当前]?目录", r"current\s*dir", r"pwd", r"[在哪]?路径", r"工作目录", r"working\s*dir"),
    _system("env", r"环境变量", r"env", r"environment"),
    _system("network", r"网络", r"network", r"ip", r"连接", r"网卡"),
)


def _file(operation: str, *patterns: str, extract_path: bool = True) -> IntentRule:
    return IntentRule(
        intent=IntentType.file_operation,
        patterns=_rx(*patterns),
        confidence=0.85,
        needs_llm=False,
        operation=operation,
        extract_path=extract_path,
    )


FILE_OPERATION_RULES: Tuple[IntentRule, ...] = (
    _file("read", r"[读取查看看一下]文件", r"read\s*file", r"cat\s+"),
    _file("write", r"[写入创建]文件", r"write\s*file", r"create\s*file"),
    _file("delete", r"[删除]文件", r"delete\s*file", r"remove\s*file"),
    _file("list", r"[列出查看看一下]目录", r"list\s*dir", r"ls\s+", extract_path=False),
)

SHELL_RULES: Tuple[IntentRule, ...] = (
    IntentRule(
        intent=IntentType.shell_command,
        patterns=_rx(r"^(run|exec|执行|运行)") + _rx(r"^[a-z]+\s+-", flags=0),
        confidence=0.8,
    ),
)

COMPLEX_TASK_RULES: Tuple[IntentRule, ...] = (
    IntentRule(
        intent=IntentType.complex_task,
        patterns=_rx(
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
            r"and then",
            r"after that",
            r"if",
            r"otherwise",
            r"loop",
            r"multiple",
            r"batch",
            r"automate",
            r"monitor",
            r"schedule",
        ),
        confidence=0.9,
    ),
)


@dataclass(frozen=True)
class RuleSet:
    """Ordered rule groups plus the length-based fallback settings."""

    chat: Tuple[IntentRule, ...] = CHAT_RULES
    system_query: Tuple[IntentRule, ...] = SYSTEM_QUERY_RULES
    file_operation: Tuple[IntentRule, ...] = FILE_OPERATION_RULES
    shell: Tuple[IntentRule, ...] = SHELL_RULES
    complex_task: Tuple[IntentRule, ...] = COMPLEX_TASK_RULES
    short_input_threshold: int = 20
    short_fallback_confidence: float = 0.6
    long_fallback_confidence: float = 0.7

    def ordered(self) -> Tuple[IntentRule, ...]:
        return self.chat + self.system_query + self.file_operation + self.shell + self.complex_task


DEFAULT_RULES = RuleSet()


def extract_path(text: str) -> Optional[str]:
    """Return the first quoted string or dotted file-like token in ``text``."""
    match = PATH_PATTERN.search(text)
    if match is None:
        return None
    return match.group(1) or match.group(2)


@dataclass
class IntentRouter:
    rules: RuleSet = field(default_factory=lambda: DEFAULT_RULES)

    def detect(self, text: str) -> IntentResult:
        trimmed = text.strip()
        lowered = trimmed.lower()

        for rule in self.rules.ordered():
            if rule.matches(trimmed, lowered):
                return IntentResult(
                    type=rule.intent,
                    confidence=rule.confidence,
                    needs_llm=rule.needs_llm,
                    query_type=rule.query_type,
                    operation=rule.operation,
                    target_path=extract_path(trimmed) if rule.extract_path else None,
                )

        if len(trimmed) < self.rules.short_input_threshold:
            return IntentResult(type=IntentType.chat, confidence=self.rules.short_fallback_confidence, needs_llm=True)
        return IntentResult(type=IntentType.complex_task, confidence=self.rules.long_fallback_confidence, needs_llm=True)

    @staticmethod
    def is_fast_path(intent: IntentResult) -> bool:
        """Only system queries that need no model round-trip are answered locally."""
        return intent.type == IntentType.system_query and not intent.needs_llm
