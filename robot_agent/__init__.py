"""robot-agent.

A local command-line assistant that turns natural-language requests into
either an instant local answer or a confirmed, step-by-step execution of tool
calls against the file system, the shell and the browser.

High-level architecture
-----------------------

Every request takes one of two paths:

- **Fast path**: system queries (CPU, memory, disk, processes, network, time,
  environment, working directory) are recognized by the routers and answered
  locally from cached system readings, with no language model involved.
- **Planned execution**: everything else becomes a plan of tool steps. The plan
  is shown for approval, dangerous steps ask for permission individually and
  every tool call passes validation, rate limiting and the permission evaluator.

Core subpackages
----------------

- ``robot_agent.agent_core``:

  - Routing (intent rules, semantic router, fast-path executor).
  - Planning and step normalization.
  - A LangGraph-based execution engine with confirmation suspension points.
  - Policy primitives (risk tiers, allow/deny lists, session quotas, backups).
  - The tool system (registry, validator, rate limiter, orchestrator, built-ins).

- ``robot_agent.core``:

  - Settings and logging configuration.

- ``robot_agent.cli``:

  - The ``robot-agent`` console front end.
"""

__version__ = "0.1.0"
