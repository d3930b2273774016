"""Runtime execution engine.

``ExecutionEngine`` drives a goal through planning, plan approval, per-step
permission, execution and formatting as a LangGraph state machine, streaming
``ExecutionEvent`` objects to the caller. ``EnhancedExecutionEngine`` adds
call timeouts, a sandbox and partial parallelism.
"""

from .engine import EnhancedExecutionEngine, ExecutionEngine, ExecutionStream, report_progress
from .models import DEPENDENT_TOOLS, EngineConfig, ParallelConfig, SandboxConfig, schedule_batches

__all__ = [
    "DEPENDENT_TOOLS",
    "EngineConfig",
    "EnhancedExecutionEngine",
    "ExecutionEngine",
    "ExecutionStream",
    "ParallelConfig",
    "SandboxConfig",
    "report_progress",
    "schedule_batches",
]
