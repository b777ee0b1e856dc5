"""Repository interfaces and implementations for agent persistence.

The repository layer is the persistence boundary for the execution engine.

Responsibilities
----------------

- Provide a small set of async repository interfaces (Protocols) that the
  engine can depend on.
- Persist agent definitions and durable run records: status, conversation
  history, per-run logs and timestamps.

Two backends are provided: in-memory (``repos.memory``) and async SQLAlchemy
(``repos.sql``). The SQL implementation commits at repository-method
boundaries.
"""

from .interfaces import AgentRepository, RepoBundle, RunRepository
from .memory import InMemoryAgentRepository, InMemoryRunRepository, build_memory_repos

__all__ = [
    "AgentRepository",
    "InMemoryAgentRepository",
    "InMemoryRunRepository",
    "RepoBundle",
    "RunRepository",
    "build_memory_repos",
]
