"""Per-tool sliding-window rate limiting.

Each tool owns an ordered list of call timestamps. On every ``check`` the
timestamps that fell out of the window are dropped, and the call is allowed
while fewer than ``max_calls`` remain. This is a sliding window rather than a
fixed bucket, so bursts across a bucket boundary are still counted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    max_calls: int
    window_seconds: float


@dataclass(frozen=True)
class RateLimitResult:
    """
    Outcome of a rate-limit check.

    ``reset_time`` is on the limiter's clock: the moment the oldest recorded call
    leaves the window. ``retry_after`` (seconds) is only set when blocked.
    """

    allowed: bool
    remaining: int
    reset_time: float
    retry_after: Optional[float] = None


DEFAULT_RATE_LIMIT = RateLimitConfig(max_calls=100, window_seconds=60.0)

TOOL_RATE_LIMITS: Dict[str, RateLimitConfig] = {
    "shell_execute": RateLimitConfig(max_calls=20, window_seconds=60.0),
    "powershell_execute": RateLimitConfig(max_calls=20, window_seconds=60.0),
    "file_read": RateLimitConfig(max_calls=200, window_seconds=60.0),
    "file_write": RateLimitConfig(max_calls=50, window_seconds=60.0),
    "file_delete": RateLimitConfig(max_calls=20, window_seconds=60.0),
}


@dataclass
class _ToolWindow:
    config: RateLimitConfig
    calls: List[float] = field(default_factory=list)


class RateLimiter:
    """Sliding-window call budget, one window per tool name."""

    def __init__(
        self,
        *,
        default: RateLimitConfig = DEFAULT_RATE_LIMIT,
        overrides: Optional[Dict[str, RateLimitConfig]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default = default
        self._overrides = dict(TOOL_RATE_LIMITS if overrides is None else overrides)
        self._clock = clock
        self._windows: Dict[str, _ToolWindow] = {}

    def _window(self, tool_name: str) -> _ToolWindow:
        window = self._windows.get(tool_name)
        if window is None:
            window = _ToolWindow(config=self._overrides.get(tool_name, self._default))
            self._windows[tool_name] = window
        return window

    def check(self, tool_name: str) -> RateLimitResult:
        now = self._clock()
        window = self._window(tool_name)
        cfg = window.config

        start = now - cfg.window_seconds
        window.calls = [t for t in window.calls if t > start]

        first = window.calls[0] if window.calls else None
        reset_time = first + cfg.window_seconds if first is not None else now + cfg.window_seconds

        if len(window.calls) >= cfg.max_calls:
            retry_after = first + cfg.window_seconds - now if first is not None else cfg.window_seconds
            logger.debug(f"Rate limit hit for {tool_name}; retry after {retry_after:.3f}s")
            return RateLimitResult(allowed=False, remaining=0, reset_time=reset_time, retry_after=retry_after)

        return RateLimitResult(allowed=True, remaining=cfg.max_calls - len(window.calls), reset_time=reset_time)

    def record(self, tool_name: str) -> None:
        self._window(tool_name).calls.append(self._clock())

    def get_config(self, tool_name: str) -> RateLimitConfig:
        return self._window(tool_name).config

    def set_config(self, tool_name: str, config: RateLimitConfig) -> None:
        """Replace the budget of ``tool_name``; recorded calls are kept."""
        self._window(tool_name).config = config
