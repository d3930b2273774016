"""Planning components.

The planning subsystem turns a user goal into an ordered list of
``PlanStep`` objects, each naming a registered tool, its parameters and its
risk tier.

The planner itself does not execute tools; it only emits structured steps
that are later consumed by ``robot_agent.agent_core.runtime.ExecutionEngine``.
"""

from .planner import StructuredPlanner
from .steps import PlannedStep, normalize_plan

__all__ = [
    "PlannedStep",
    "StructuredPlanner",
    "normalize_plan",
]
