"""Policy subsystem: risk tiers, allow/deny lists and interactive approvals.

The policy layer provides *runtime* permission decisions for tool actions. It
is separate from planning and from the execution engine so that:

- the engine only decides *when* to ask (DELETE and SYSTEM steps),
- the evaluator decides *whether* an action may run at all.

Components
----------

- ``WhitelistConfig``: command, path and domain allow/deny lists.
- ``ApprovalPolicy``: which risk tiers are auto-approved or need confirmation.
- ``PermissionConfig``: the aggregate, including session quota settings.
- ``PermissionEvaluator``: evaluates ``PermissionRequest`` objects and owns the
  session approval counters.
"""

from .models import (
    ApprovalPolicy,
    BackupInfo,
    PermissionCallback,
    PermissionConfig,
    PermissionRequest,
    PermissionResult,
    SessionState,
    WhitelistConfig,
)
from .permission_guard import PermissionEvaluator, format_permission_request

__all__ = [
    "ApprovalPolicy",
    "BackupInfo",
    "PermissionCallback",
    "PermissionConfig",
    "PermissionEvaluator",
    "PermissionRequest",
    "PermissionResult",
    "SessionState",
    "WhitelistConfig",
    "format_permission_request",
]
