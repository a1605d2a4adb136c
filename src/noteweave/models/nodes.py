"""Node model: files and directories in a namespace tree."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from noteweave.models.base import Base, UtcDateTime
from noteweave.utils import ROOT_PATH, utcnow


class NodeKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class Node(Base):
    """A file or directory.

    Nodes form one tree per namespace:
    - Exactly one root per namespace, with path "/" and no parent
    - Every other path is the parent's path plus "/" plus the name
    - Paths are unique within a namespace
    """

    __tablename__ = "node"
    __table_args__ = (
        Index("uix_node_namespace_path", "namespace", "path", unique=True),
        Index("ix_node_path", "path"),  # prefix range scans for move/rename/delete
        Index("ix_node_namespace", "namespace"),
        Index("ix_node_parent_id", "parent_id"),
    )

    # "{namespace}-{uuid}" or "{namespace}-root-{uuid}"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    namespace: Mapped[str] = mapped_column(String)
    path: Mapped[str] = mapped_column(String)
    name: Mapped[str] = mapped_column(String)
    kind: Mapped[str] = mapped_column(String)
    parent_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # files only
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meta: Mapped[dict] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow)

    @property
    def is_file(self) -> bool:
        return self.kind == NodeKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind == NodeKind.DIRECTORY

    @property
    def is_root(self) -> bool:
        return self.path == ROOT_PATH and self.parent_id is None

    @property
    def tags(self) -> list[str]:
        return list((self.meta or {}).get("tags") or [])

    def __repr__(self) -> str:
        return f"Node(id={self.id!r}, namespace={self.namespace!r}, path={self.path!r}, kind={self.kind!r})"
