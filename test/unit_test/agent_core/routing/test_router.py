from __future__ import annotations

import pytest

from robot_agent.agent_core.routing.router import (
    IntentRouter,
    IntentRule,
    IntentType,
    RuleSet,
    _rx,
    extract_path,
)


@pytest.fixture
def router() -> IntentRouter:
    return IntentRouter()


@pytest.mark.parametrize(
    ("text", "intent", "confidence"),
    [
        ("hello there", IntentType.chat, 0.9),
        ("hi", IntentType.chat, 0.9),
        ("你好", IntentType.chat, 0.9),
        ("cpu usage", IntentType.system_query, 0.95),
        ("查看内存", IntentType.system_query, 0.95),
        ("read file notes.txt", IntentType.file_operation, 0.85),
        ("run git status", IntentType.shell_command, 0.8),
        ("download logs and then archive them", IntentType.complex_task, 0.9),
        ("xyz", IntentType.chat, 0.6),
        ("please organize my photos by year", IntentType.complex_task, 0.7),
    ],
)
def test_classification_and_confidence(router: IntentRouter, text: str, intent: IntentType, confidence: float) -> None:
    result = router.detect(text)
    assert result.type == intent
    assert result.confidence == pytest.approx(confidence)


@pytest.mark.parametrize(
    ("text", "query_type"),
    [
        ("cpu usage", "cpu"),
        ("how much memory is used", "memory"),
        ("disk space", "disk"),
        ("list processes", "process"),
        ("what time is it", "time"),
        ("pwd", "path"),
        ("环境变量", "env"),
        ("network interfaces", "network"),
    ],
)
def test_system_queries_are_fast_path(router: IntentRouter, text: str, query_type: str) -> None:
    result = router.detect(text)
    assert result.query_type == query_type
    assert result.needs_llm is False
    assert IntentRouter.is_fast_path(result) is True


def test_chat_wins_over_later_groups(router: IntentRouter) -> None:
    # "help" is chat even though a longer sentence could look like a system query.
    assert router.detect("help me check memory").type == IntentType.chat


def test_file_operations_extract_target(router: IntentRouter) -> None:
    read = router.detect("cat notes.txt")
    assert (read.operation, read.target_path) == ("read", "notes.txt")

    delete = router.detect('delete file "old report.docx"')
    assert (delete.operation, delete.target_path) == ("delete", "old report.docx")

    listing = router.detect("ls -la")
    assert listing.operation == "list"
    assert listing.target_path is None
    assert IntentRouter.is_fast_path(listing) is False


def test_extract_path_prefers_quoted() -> None:
    assert extract_path("open 'my file.txt' please") == "my file.txt"
    assert extract_path("show config.yaml") == "config.yaml"
    assert extract_path("nothing here") is None


def test_custom_rules_replace_defaults() -> None:
    rules = RuleSet(
        chat=(),
        system_query=(
            IntentRule(
                intent=IntentType.system_query,
                patterns=_rx(r"battery"),
                confidence=0.99,
                needs_llm=False,
                query_type="battery",
            ),
        ),
        file_operation=(),
        shell=(),
        complex_task=(),
        short_input_threshold=5,
    )
    router = IntentRouter(rules=rules)

    assert router.detect("battery level").query_type == "battery"
    assert router.detect("hello").type == IntentType.complex_task
    assert router.detect("hey").type == IntentType.chat
