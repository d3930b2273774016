from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import psutil
import pytest

from robot_agent.agent_core.routing.cache import TTLCache
from robot_agent.agent_core.routing.fast_path import (
    SYSTEM_COLLECTORS,
    FastPathExecutor,
    format_bytes,
    format_system_info,
)


class _CountingCollector:
    def __init__(self, value: Any) -> None:
        self.value = value
        self.calls = 0

    def __call__(self) -> Any:
        self.calls += 1
        return self.value


def test_all_query_types_have_collectors() -> None:
    assert set(SYSTEM_COLLECTORS) == {"cpu", "memory", "disk", "process", "network", "time", "env", "path"}


@pytest.mark.asyncio
async def test_volatile_queries_are_cached(clock) -> None:
    cpu = _CountingCollector({"usage": 12.5, "cores": 4, "model": "x", "load_average": []})
    executor = FastPathExecutor(cache=TTLCache(clock=clock), collectors={"cpu": cpu})

    first = await executor.execute("cpu")
    second = await executor.execute("cpu")

    assert first.success is True and first.cached is False
    assert second.cached is True
    assert second.data == first.data
    assert cpu.calls == 1

    clock.advance(2.0)
    third = await executor.execute("cpu")
    assert third.cached is False
    assert cpu.calls == 2


@pytest.mark.asyncio
async def test_time_is_never_cached(clock) -> None:
    now = _CountingCollector({"now": "t", "timezone": "UTC", "uptime": 3600.0})
    executor = FastPathExecutor(cache=TTLCache(clock=clock), collectors={"time": now})

    await executor.execute("time")
    result = await executor.execute("time")

    assert result.cached is False
    assert now.calls == 2


@pytest.mark.asyncio
async def test_unknown_query_type() -> None:
    result = await FastPathExecutor(collectors={}).execute("weather")
    assert result.success is False
    assert result.error == "Unknown query type: weather"


@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [OSError("no access"), psutil.AccessDenied()])
async def test_collector_errors_become_failed_results(exc: Exception) -> None:
    def broken() -> Dict[str, Any]:
        raise exc

    executor = FastPathExecutor(collectors={"disk": broken})
    result = await executor.execute("disk")

    assert result.success is False
    assert result.error == str(exc)
    assert executor.cache.size() == 0


@pytest.mark.asyncio
async def test_real_path_collector_reports_cwd(tmp_path: Path) -> None:
    result = await FastPathExecutor().execute("path")
    assert result.success is True
    assert Path(result.data["cwd"]).resolve() == tmp_path.resolve()


def test_format_bytes_units() -> None:
    assert format_bytes(512 * 1024**2) == "512.00 MB"
    assert format_bytes(3 * 1024**3) == "3.00 GB"


def test_format_system_info_memory() -> None:
    text = format_system_info(
        "memory",
        {"total": 8 * 1024**3, "used": 2 * 1024**3, "free": 6 * 1024**3, "usage_percent": 25.0},
    )
    lines = text.splitlines()
    assert lines[0] == "Memory"
    assert "Total: 8.00 GB" in lines
    assert "Usage: 25.0%" in lines


def test_format_system_info_cpu_without_load_average() -> None:
    text = format_system_info("cpu", {"usage": 3.0, "cores": 2, "model": "arm", "load_average": []})
    assert "Load: n/a" in text.splitlines()


def test_format_system_info_unknown_type_falls_back_to_str() -> None:
    assert format_system_info("weather", {"sunny": True}) == "{'sunny': True}"
