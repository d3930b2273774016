"""Deterministic local answers for system queries.

The fast path answers ``system_query`` intents without a model round-trip.
Measurements come from ``psutil`` and the standard library and are memoized
per query type through ``TTLCache``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import platform
import socket
import sys
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import psutil

from .cache import TTLCache

logger = logging.getLogger(__name__)

RULE = "─" * 32


@dataclass(frozen=True)
class FastPathResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    duration: float = 0.0
    cached: bool = False


def get_cpu_info() -> Dict[str, Any]:
    load = list(os.getloadavg()) if hasattr(os, "getloadavg") else []
    return {
        "usage": psutil.cpu_percent(interval=0.1),
        "cores": psutil.cpu_count(logical=True) or 0,
        "model": platform.processor() or platform.machine() or "Unknown",
        "load_average": load,
    }


def get_memory_info() -> Dict[str, Any]:
    mem = psutil.virtual_memory()
    return {"total": mem.total, "free": mem.available, "used": mem.total - mem.available, "usage_percent": mem.percent}


def get_disk_info() -> List[Dict[str, Any]]:
    disks = []
    for part in psutil.disk_partitions(all=False):
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except OSError:
            logger.debug(f"Skipping unreadable mount point {part.mountpoint}")
            continue
        disks.append(
            {
                "drive": part.mountpoint,
                "total": usage.total,
                "free": usage.free,
                "used": usage.used,
                "usage_percent": usage.percent,
            }
        )
    return disks


def get_process_info(limit: int = 10) -> List[Dict[str, Any]]:
    procs = []
    for proc in psutil.process_iter(["pid", "name", "cpu_percent", "memory_info"]):
        info = proc.info
        memory = info.get("memory_info")
        procs.append(
            {
                "pid": info["pid"],
                "name": info.get("name") or "?",
                "cpu": info.get("cpu_percent") or 0.0,
                "memory": memory.rss if memory is not None else 0,
            }
        )
    procs.sort(key=lambda p: p["cpu"], reverse=True)
    return procs[:limit]


def get_network_info() -> Dict[str, Any]:
    return {
        "hostname": socket.gethostname(),
        "interfaces": [
            {"name": name, "addresses": [a.address for a in addrs]} for name, addrs in psutil.net_if_addrs().items()
        ],
    }


def get_time_info() -> Dict[str, Any]:
    now = datetime.now().astimezone()
    return {"now": now.isoformat(), "timezone": now.tzname(), "uptime": time.time() - psutil.boot_time()}


def get_env_info() -> Dict[str, Any]:
    return {
        "python_version": platform.python_version(),
        "platform": sys.platform,
        "arch": platform.machine(),
        "homedir": str(Path.home()),
        "tmpdir": tempfile.gettempdir(),
    }


def get_path_info() -> Dict[str, Any]:
    return {"cwd": os.getcwd(), "homedir": str(Path.home()), "tmpdir": tempfile.gettempdir()}


SYSTEM_COLLECTORS: Dict[str, Callable[[], Any]] = {
    "cpu": get_cpu_info,
    "memory": get_memory_info,
    "disk": get_disk_info,
    "process": get_process_info,
    "network": get_network_info,
    "time": get_time_info,
    "env": get_env_info,
    "path": get_path_info,
}


class FastPathExecutor:
    """
    Run one system query, answering from the cache when possible.

    Args:
        cache: Result cache keyed by query type. A new ``TTLCache`` by default.
        collectors: Query type to blocking collector function. Collectors run in
            a worker thread.
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        collectors: Optional[Dict[str, Callable[[], Any]]] = None,
    ) -> None:
        self.cache = cache if cache is not None else TTLCache()
        self._collectors = dict(SYSTEM_COLLECTORS if collectors is None else collectors)

    @property
    def query_types(self) -> List[str]:
        return list(self._collectors)

    async def execute(self, query_type: str) -> FastPathResult:
        started = time.perf_counter()
        collector = self._collectors.get(query_type)
        if collector is None:
            return FastPathResult(success=False, error=f"Unknown query type: {query_type}")

        if self.cache.has(query_type):
            return FastPathResult(
                success=True,
                data=self.cache.get(query_type),
                duration=time.perf_counter() - started,
                cached=True,
            )

        try:
            data = await asyncio.to_thread(collector)
        except (OSError, psutil.Error) as exc:
            logger.warning(f"Fast path query {query_type} failed: {exc}")
            return FastPathResult(success=False, error=str(exc), duration=time.perf_counter() - started)

        self.cache.set(query_type, data)
        return FastPathResult(success=True, data=data, duration=time.perf_counter() - started)


def format_bytes(size: float) -> str:
    gb = size / (1024**3)
    if gb >= 1:
        return f"{gb:.2f} GB"
    return f"{size / (1024 ** 2):.2f} MB"


def format_system_info(query_type: str, data: Any) -> str:
    """Render a fast-path result as plain terminal text."""
    if query_type == "cpu":
        load = ", ".join(f"{v:.2f}" for v in data["load_average"]) or "n/a"
        body = [f"Cores: {data['cores']}", f"Model: {data['model']}", f"Usage: {data['usage']:.1f}%", f"Load: {load}"]
        title = "CPU"
    elif query_type == "memory":
        body = [
            f"Total: {format_bytes(data['total'])}",
            f"Used: {format_bytes(data['used'])}",
            f"Free: {format_bytes(data['free'])}",
            f"Usage: {data['usage_percent']:.1f}%",
        ]
        title = "Memory"
    elif query_type == "disk":
        body = [
            f"{d['drive']} total: {format_bytes(d['total'])} | used: {format_bytes(d['used'])} | "
            f"free: {format_bytes(d['free'])} | usage: {d['usage_percent']:.1f}%"
            for d in data
        ]
        title = "Disks"
    elif query_type == "process":
        body = ["PID\tNAME\t\t\tCPU\tMEMORY"] + [
            f"{p['pid']}\t{p['name'][:15]:<15}\t{p['cpu']:.1f}%\t{format_bytes(p['memory'])}" for p in data
        ]
        title = f"Processes (top {len(data)} by CPU)"
    elif query_type == "network":
        body = [f"Hostname: {data['hostname']}"] + [
            f"{i['name']}: {', '.join(i['addresses'])}" for i in data["interfaces"]
        ]
        title = "Network"
    elif query_type == "time":
        body = [f"Now: {data['now']}", f"Timezone: {data['timezone']}", f"Uptime: {data['uptime'] / 3600:.1f} h"]
        title = "Time"
    elif query_type == "env":
        body = [f"{key}: {value}" for key, value in data.items()]
        title = "Environment"
    elif query_type == "path":
        body = [f"Working directory: {data['cwd']}", f"Home: {data['homedir']}", f"Temp: {data['tmpdir']}"]
        title = "Paths"
    else:
        return str(data)
    return "\n".join([title, RULE, *body, RULE])
