"""Link model: directed references between nodes."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from noteweave.models.base import Base, UtcDateTime
from noteweave.utils import utcnow


class LinkType(str, Enum):
    REFERENCE = "reference"  # [[target]]
    EMBED = "embed"  # ![[target]]


class Link(Base):
    """A `[[target]]` reference found in the source node's text.

    Rows for a source are rebuilt from scratch on every content write.
    """

    __tablename__ = "link"
    __table_args__ = (
        Index("ix_link_source_node_id", "source_node_id"),
        Index("ix_link_target_node_id", "target_node_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_node_id: Mapped[str] = mapped_column(String)
    target_node_id: Mapped[str] = mapped_column(String)
    link_type: Mapped[str] = mapped_column(String, default=LinkType.REFERENCE.value)
    display_text: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # position of the reference in the source text
    position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"Link({self.source_node_id!r} -> {self.target_node_id!r}, {self.link_type!r})"
