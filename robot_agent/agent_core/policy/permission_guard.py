"""Risk and permission evaluation for tool actions.

``PermissionEvaluator`` is the runtime authority that decides whether a single
action may run. It is consulted by the tool orchestrator before every tool
invocation.

Evaluation order
----------------

Checks run in order and stop at the first denial:

1. Shell command patterns (``action == "shell"``).
2. Filesystem path prefixes (targets not starting with ``http``).
3. URL domains (targets starting with ``http``).
4. Risk-tier approval policy (auto-approve / require confirmation / default).
5. Session approval quota for tiers that require confirmation.
6. The interactive confirmation callback. Without one the request is denied.

The evaluator owns the session approval counters. They are only touched from
the event loop thread, so no locking is needed.
"""

from __future__ import annotations

import inspect
import logging
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional
from urllib.parse import urlparse

from ..schemas.domain import RiskLevel
from .models import (
    BackupInfo,
    PermissionCallback,
    PermissionConfig,
    PermissionRequest,
    PermissionResult,
    SessionState,
)

logger = logging.getLogger(__name__)

NO_CALLBACK_REASON = "No permission callback configured for interactive confirmation"
USER_DENIED_REASON = "User denied permission"
POLICY_DENIED_REASON = "Denied by policy"

_RISK_ICONS = {
    RiskLevel.READ: "📖",
    RiskLevel.MODIFY: "✏️",
    RiskLevel.DELETE: "🗑️",
    RiskLevel.SYSTEM: "⚡",
}


def _denied(reason: Optional[str]) -> PermissionResult:
    return PermissionResult(granted=False, reason=reason, requires_backup=False)


class PermissionEvaluator:
    """Grant or deny actions against allow/deny lists, risk policy and user confirmation.

    Args:
        config: The permission configuration. Defaults to ``PermissionConfig()``.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        config: Optional[PermissionConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = config or PermissionConfig()
        self._clock = clock
        self._callback: Optional[PermissionCallback] = None
        self._session = SessionState(approvals={}, last_activity=clock())

    @property
    def config(self) -> PermissionConfig:
        """Return the underlying configuration object."""
        return self._cfg

    @property
    def session(self) -> SessionState:
        return self._session

    def set_callback(self, callback: Optional[PermissionCallback]) -> None:
        """Register the interactive confirmation callback (sync or async)."""
        self._callback = callback

    async def evaluate(self, request: PermissionRequest) -> PermissionResult:
        """
        Decide whether ``request`` may proceed.

        Args:
            request: The permission request to evaluate.

        Returns:
            A PermissionResult; ``reason`` names the cause of any denial.
        """
        target = request.target

        if request.action == "shell" and target:
            reason = self._check_command(target)
            if reason is not None:
                logger.info(f"Denied shell command for {request.tool_name}: {reason}")
                return _denied(reason)

        if target and not target.startswith("http"):
            reason = self._check_path(target)
            if reason is not None:
                logger.info(f"Denied path for {request.tool_name}: {reason}")
                return _denied(reason)

        if target and target.startswith("http"):
            reason = self._check_domain(target)
            if reason is not None:
                logger.info(f"Denied domain for {request.tool_name}: {reason}")
                return _denied(reason)

        risk = request.risk_level
        policy = self._cfg.approval_policy

        if risk in policy.auto_approve:
            return PermissionResult(granted=True, requires_backup=risk == RiskLevel.MODIFY)

        if risk not in policy.require_confirmation:
            if policy.deny_by_default:
                return _denied(POLICY_DENIED_REASON)
            return PermissionResult(granted=True, requires_backup=False)

        if not self._check_session_limit(request.tool_name):
            return _denied(f"Session approval limit reached for {request.tool_name}")

        if self._callback is None:
            logger.warning(f"No confirmation callback registered; denying {request.tool_name} ({risk.value})")
            return _denied(NO_CALLBACK_REASON)

        answer = self._callback(request)
        if inspect.isawaitable(answer):
            answer = await answer
        approved = bool(answer)
        return PermissionResult(
            granted=approved,
            reason=None if approved else USER_DENIED_REASON,
            requires_backup=approved and risk == RiskLevel.MODIFY,
        )

    def _check_command(self, command: str) -> Optional[str]:
        wl = self._cfg.whitelist
        cmd = command.lower().strip()
        for denied in wl.denied_commands:
            if denied.lower() in cmd:
                return f"Command contains denied pattern: {denied}"
        if wl.allowed_commands and not any(a.lower() in cmd for a in wl.allowed_commands):
            return "Command not in allowed list"
        return None

    def _check_path(self, target_path: str) -> Optional[str]:
        wl = self._cfg.whitelist
        lowered = target_path.lower()
        for denied in wl.denied_paths:
            if lowered.startswith(denied.lower()):
                return f"Path is in denied list: {denied}"
        if wl.allowed_paths and not any(lowered.startswith(a.lower()) for a in wl.allowed_paths):
            return "Path not in allowed list"
        return None

    def _check_domain(self, url: str) -> Optional[str]:
        wl = self._cfg.whitelist
        try:
            hostname = urlparse(url).hostname
        except ValueError:
            hostname = None
        if not hostname:
            # Unparseable URLs are let through; see DESIGN.md open questions.
            logger.warning(f"Could not parse URL target {url!r}; skipping domain checks")
            return None

        domain = hostname.lower()
        for denied in wl.denied_domains:
            if denied.lower() in domain:
                return f"Domain is in denied list: {denied}"
        if wl.allowed_domains and not any(a.lower() in domain for a in wl.allowed_domains):
            return "Domain not in allowed list"
        return None

    def _check_session_limit(self, tool_name: str) -> bool:
        now = self._clock()
        if now - self._session.last_activity > self._cfg.session_timeout_seconds:
            logger.debug("Permission session expired; resetting approval counters")
            self._session.approvals.clear()
        self._session.last_activity = now

        count = self._session.approvals.get(tool_name, 0)
        if count >= self._cfg.max_approvals_per_session:
            return False
        self._session.approvals[tool_name] = count + 1
        return True

    def create_backup(self, file_path: str | Path) -> Path:
        """
        Copy ``file_path`` into the backup directory before it is modified.

        Returns:
            The path of the created ``.bak`` file.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        source = Path(file_path).resolve()
        if not source.is_file():
            raise FileNotFoundError(f"Cannot backup: file does not exist: {source}")

        backup_dir = Path(self._cfg.backup_dir).resolve()
        backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        backup_path = backup_dir / f"{source.name}.{stamp}.bak"
        shutil.copy2(source, backup_path)
        logger.info(f"Backed up {source} to {backup_path}")
        return backup_path

    def list_backups(self) -> List[BackupInfo]:
        """List backups in the backup directory, newest first."""
        backup_dir = Path(self._cfg.backup_dir).resolve()
        if not backup_dir.is_dir():
            return []
        backups: List[BackupInfo] = []
        for path in backup_dir.glob("*.bak"):
            stat = path.stat()
            backups.append(
                BackupInfo(
                    original_name=".".join(path.name.split(".")[:-2]),
                    backup_path=path,
                    timestamp=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    size=stat.st_size,
                )
            )
        return sorted(backups, key=lambda b: b.timestamp, reverse=True)


def format_permission_request(request: PermissionRequest) -> str:
    """Render a permission request for a terminal confirmation prompt."""
    lines = [
        f"{_RISK_ICONS[request.risk_level]} Permission request",
        f"Tool: {request.tool_name}",
        f"Risk level: {request.risk_level.value}",
    ]
    if request.target:
        lines.append(f"Target: {request.target}")
    lines.append(f"Description: {request.description}")
    return "\n".join(lines)
