from __future__ import annotations

"""SQLAlchemy ORM models for agent persistence.

Agents and runs are stored as JSON documents (the camelCase wire form of the
pydantic models) next to a few indexed columns used for lookups and
filtering. A run document carries its full conversation history and logs, so
a single row read restores the whole run.

Table names are prefixed with ``ha_`` to avoid collisions in shared databases.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

DocumentType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class AgentRow(Base):
    """Row model for ``ha_agents``."""

    __tablename__ = "ha_agents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(256))

    document: Mapped[Dict[str, Any]] = mapped_column(DocumentType)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class RunRow(Base):
    """Row model for ``ha_agent_runs``.

    ``status`` and ``turn_count`` are denormalized from the document so
    operational queries do not need to parse JSON.
    """

    __tablename__ = "ha_agent_runs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    agent_id: Mapped[str] = mapped_column(String(64), index=True)
    owner: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)

    status: Mapped[str] = mapped_column(String(32))
    turn_count: Mapped[int] = mapped_column(Integer, default=0)

    document: Mapped[Dict[str, Any]] = mapped_column(DocumentType)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True))
