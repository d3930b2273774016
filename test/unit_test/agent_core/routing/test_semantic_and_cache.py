from __future__ import annotations

import pytest

from robot_agent.agent_core.routing.cache import TTLCache
from robot_agent.agent_core.routing.semantic import (
    SemanticRouter,
    ToolMeta,
    detect_input_type,
    is_complex_query,
    keyword_score,
)


@pytest.fixture
def router() -> SemanticRouter:
    return SemanticRouter()


def test_slash_alias_routes_with_full_confidence(router: SemanticRouter) -> None:
    result = router.route("/mem")
    assert result.matched is True
    assert result.source == "command"
    assert result.tool == "get_memory_usage"
    assert result.query_type == "memory"
    assert result.confidence == 1.0
    assert SemanticRouter.is_fast_path(result)


def test_slash_alias_passes_arguments(router: SemanticRouter) -> None:
    result = router.route("/ps --all")
    assert result.tool == "get_process_list"
    assert result.params == {"args": ["--all"]}


def test_front_end_commands_have_no_query_type(router: SemanticRouter) -> None:
    result = router.route("/exit")
    assert result.tool == "__exit__"
    assert result.query_type is None


def test_unknown_slash_command_is_unmatched(router: SemanticRouter) -> None:
    result = router.route("/bogus")
    assert result.matched is False
    assert result.source == "command"


def test_keyword_match_above_threshold(router: SemanticRouter) -> None:
    result = router.route("cpu usage")
    assert result.matched is True
    assert result.source == "keyword"
    assert result.tool == "get_cpu_usage"
    assert result.confidence >= 0.75


def test_complex_queries_go_to_the_model(router: SemanticRouter) -> None:
    result = router.route("find the top 5 processes by memory")
    assert result.matched is False
    assert result.source == "llm"
    assert result.type == "complex_task"
    assert SemanticRouter.is_fast_path(result) is False


def test_low_score_falls_back_by_input_type(router: SemanticRouter) -> None:
    assert router.route("tell me a joke").type == "chat"
    assert router.route("write a short poem about the sea please").type == "complex_task"


def test_empty_input_is_chat(router: SemanticRouter) -> None:
    result = router.route("   ")
    assert result.matched is False
    assert result.type == "chat"


def test_registered_tool_can_be_matched(router: SemanticRouter) -> None:
    router.register_tool(
        ToolMeta(
            name="get_battery",
            description="Battery status",
            keywords=("battery", "charge"),
            examples=("battery status",),
            query_type="battery",
        )
    )
    result = router.route("battery status")
    assert result.tool == "get_battery"
    assert result.query_type == "battery"


def test_threshold_is_configurable() -> None:
    strict = SemanticRouter(threshold=1.01)
    assert strict.route("cpu usage").matched is False


def test_keyword_score_is_capped() -> None:
    meta = ToolMeta(name="x", description="", keywords=("cpu", "usage"), examples=("cpu usage",))
    assert keyword_score("cpu usage cpu usage", meta) == 1.0
    assert keyword_score("weather", meta) == 0.0


def test_input_type_helpers() -> None:
    assert is_complex_query("monitor the logs") is True
    assert is_complex_query("cpu") is False
    assert detect_input_type("hello, how are you doing today?") == "chat"
    assert detect_input_type("short one") == "chat"


def test_ttl_cache_expiry(clock) -> None:
    cache = TTLCache(clock=clock)
    cache.set("cpu", {"usage": 10})
    assert cache.get("cpu") == {"usage": 10}

    clock.advance(1.0)
    assert cache.has("cpu") is True
    clock.advance(0.5)
    assert cache.get("cpu") is None
    assert cache.size() == 0


def test_ttl_zero_is_never_cached(clock) -> None:
    cache = TTLCache(clock=clock)
    cache.set("time", "12:00")
    assert cache.has("time") is False
    assert cache.get_ttl("time") == 0.0
    assert cache.get_ttl("unknown") == 5.0


def test_ttl_cache_explicit_ttl_remove_and_eviction(clock) -> None:
    cache = TTLCache(max_size=2, clock=clock)
    cache.set("a", 1, ttl=30)
    cache.set("b", 2, ttl=30)
    cache.set("c", 3, ttl=30)
    assert cache.has("a") is False
    assert cache.get("c") == 3

    cache.remove("b")
    assert cache.size() == 1
    cache.clear()
    assert cache.size() == 0


def test_router_cache_can_be_cleared(router: SemanticRouter) -> None:
    router.cache.set("cpu", 1, ttl=60)
    router.clear_cache()
    assert router.cache.size() == 0
