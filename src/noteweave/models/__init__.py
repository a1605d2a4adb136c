"""Models package for noteweave."""

from noteweave.models.base import Base
from noteweave.models.annotations import (
    AgentBlock,
    AgentStatus,
    CardTier,
    ClozeCard,
    Task,
    TaskStatus,
)
from noteweave.models.links import Link, LinkType
from noteweave.models.nodes import Node, NodeKind
from noteweave.models.tags import NodeTag, Tag

__all__ = [
    "Base",
    "AgentBlock",
    "AgentStatus",
    "CardTier",
    "ClozeCard",
    "Link",
    "LinkType",
    "Node",
    "NodeKind",
    "NodeTag",
    "Tag",
    "Task",
    "TaskStatus",
]
