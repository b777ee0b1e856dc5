"""houze_agents: background execution engine for configurable AI agents.

The package is organized as:

- ``agent_core``: domain schemas, ports (chat model, tools), persistence and the
  runtime (turn loop, goal evaluation, lifecycle, worker pool).
- ``core``: shared utilities such as logging configuration.
- ``server``: the FastAPI control surface consumed by dashboards and CLIs.
"""

__version__ = "0.1.0"
