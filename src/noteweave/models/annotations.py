"""Annotation models: records derived from markers embedded in node text.

Each annotation id is written back into the host node's text (` ^clz-1a2b3c4d`)
so it survives edits, and every table is indexed by host node for reconciliation
and cascading deletes.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Date, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from noteweave.models.base import Base, UtcDateTime
from noteweave.utils import utcnow

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


class CardTier(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MATURE = "mature"


class TaskStatus(str, Enum):
    TODO = "todo"
    DOING = "doing"
    DONE = "done"


class AgentStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"


class ClozeCard(Base):
    """A cloze deletion `{{cN::text}}` with its spaced-repetition state."""

    __tablename__ = "cloze_card"
    __table_args__ = (
        Index("ix_cloze_card_host_node_id", "host_node_id"),
        Index("ix_cloze_card_due_date", "due_date"),
        Index("ix_cloze_card_tier", "tier"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    host_node_id: Mapped[str] = mapped_column(String)
    cluster: Mapped[int] = mapped_column(Integer, default=1)
    content: Mapped[str] = mapped_column(Text)

    # Scheduling state, preserved across reconciliation passes
    tier: Mapped[str] = mapped_column(String, default=CardTier.NEW.value)
    due_date: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)
    interval: Mapped[int] = mapped_column(Integer, default=0)
    ease_factor: Mapped[float] = mapped_column(Float, default=DEFAULT_EASE_FACTOR)
    repetitions: Mapped[int] = mapped_column(Integer, default=0)
    lapses: Mapped[int] = mapped_column(Integer, default=0)
    last_reviewed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"ClozeCard(id={self.id!r}, tier={self.tier!r}, interval={self.interval})"


class Task(Base):
    """A task list item `- [ ] @user [YYYY-MM-DD] description`."""

    __tablename__ = "task"
    __table_args__ = (
        Index("ix_task_host_node_id", "host_node_id"),
        Index("ix_task_user_id", "user_id"),
        Index("ix_task_start_date", "start_date"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    host_node_id: Mapped[str] = mapped_column(String)
    user_id: Mapped[str] = mapped_column(String)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String, default=TaskStatus.TODO.value)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"Task(id={self.id!r}, user_id={self.user_id!r}, status={self.status!r})"


class AgentBlock(Base):
    """A fenced ```agent:type block and its run state."""

    __tablename__ = "agent_block"
    __table_args__ = (
        Index("ix_agent_block_host_node_id", "host_node_id"),
        Index("ix_agent_block_agent_type", "agent_type"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    host_node_id: Mapped[str] = mapped_column(String)
    agent_type: Mapped[str] = mapped_column(String)
    body: Mapped[str] = mapped_column(Text, default="")
    config: Mapped[dict] = mapped_column(JSON, default=dict)

    status: Mapped[str] = mapped_column(String, default=AgentStatus.IDLE.value)
    run_count: Mapped[int] = mapped_column(Integer, default=0)
    last_run_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    outputs: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"AgentBlock(id={self.id!r}, agent_type={self.agent_type!r})"
