from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from pydantic import Field

from ..schemas.base import BaseSchema, FrozenSchema
from ..schemas.domain import RiskLevel


class PermissionRequest(FrozenSchema):
    """
    A single request to perform an action.

    Attributes:
        tool_name: Logical tool name (e.g. ``shell_execute``).
        action: What the tool does; ``"shell"`` enables command pattern checks.
        target: Path, command or URL the action touches.
        risk_level: The risk tier of the action.
        description: Human-readable explanation for confirmation prompts.
        data: The raw tool parameters, for callbacks that want more context.
    """
    tool_name: str
    action: str
    target: Optional[str] = None
    risk_level: RiskLevel
    description: str = ""
    data: Optional[Dict[str, Any]] = None


class PermissionResult(FrozenSchema):
    granted: bool
    reason: Optional[str] = None
    requires_backup: bool = False


class ApprovalPolicy(BaseSchema):
    """
    Risk-tier policy deciding which actions need interactive confirmation.

    Tiers in ``auto_approve`` are granted without a prompt. Tiers in
    ``require_confirmation`` go through the session quota and the callback.
    Tiers in neither set are granted, or denied when ``deny_by_default`` is set.
    """
    auto_approve: Set[RiskLevel] = Field(default_factory=lambda: {RiskLevel.READ})
    require_confirmation: Set[RiskLevel] = Field(
        default_factory=lambda: {RiskLevel.MODIFY, RiskLevel.DELETE, RiskLevel.SYSTEM}
    )
    deny_by_default: bool = False


DEFAULT_DENIED_COMMANDS = (
    "rm -rf",
    "del /s",
    "format",
    "shutdown",
    "restart",
    "reg delete",
    "bcdedit",
)

DEFAULT_DENIED_PATHS = (
    "C:\\Windows\\System32",
    "C:\\Program Files",
    "/etc",
    "/usr/bin",
)


class WhitelistConfig(BaseSchema):
    """
    Allow/deny lists for commands, filesystem paths and URL domains.

    Deny lists always win. A non-empty allow list turns the check into
    "must match one of these".
    """
    allowed_commands: list[str] = Field(default_factory=list)
    allowed_paths: list[str] = Field(default_factory=list)
    allowed_domains: list[str] = Field(default_factory=list)
    denied_commands: list[str] = Field(default_factory=lambda: list(DEFAULT_DENIED_COMMANDS))
    denied_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_DENIED_PATHS))
    denied_domains: list[str] = Field(default_factory=list)


class PermissionConfig(BaseSchema):
    """
    Aggregate configuration for ``PermissionEvaluator``.
    """
    approval_policy: ApprovalPolicy = Field(default_factory=ApprovalPolicy)
    whitelist: WhitelistConfig = Field(default_factory=WhitelistConfig)
    session_timeout_seconds: float = Field(default=300.0, gt=0)
    max_approvals_per_session: int = Field(default=100, ge=0)
    backup_dir: str = ".robot-backups"


@dataclass
class SessionState:
    """Per-tool approval counters for the current interactive session."""

    approvals: Dict[str, int]
    last_activity: float


@dataclass(frozen=True)
class BackupInfo:
    original_name: str
    backup_path: Path
    timestamp: datetime
    size: int


PermissionCallback = Callable[[PermissionRequest], Union[bool, Awaitable[bool]]]
