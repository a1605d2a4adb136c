"""Tag models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from noteweave.models.base import Base, UtcDateTime
from noteweave.utils import utcnow


class Tag(Base):
    """A globally unique, case-sensitive tag name."""

    __tablename__ = "tag"

    name: Mapped[str] = mapped_column(String, primary_key=True)
    color: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # protected tags cannot be deleted
    is_protected: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)


class NodeTag(Base):
    """Association between a node and a tag."""

    __tablename__ = "node_tag"
    __table_args__ = (
        Index("ix_node_tag_tag_name", "tag_name"),
        Index("ix_node_tag_node_id", "node_id"),
    )

    node_id: Mapped[str] = mapped_column(String, primary_key=True)
    tag_name: Mapped[str] = mapped_column(String, ForeignKey("tag.name"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)
