"""Schemas for node tree operations."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel


class TreeNode(BaseModel):
    """Node in a reconstructed namespace tree."""

    id: str
    name: str
    path: str
    type: Literal["directory", "file"]
    parent_id: Optional[str] = None
    children: List["TreeNode"] = []
    # True only for the synthesized root that collects orphans
    is_virtual: bool = False
    updated_at: Optional[datetime] = None

    def walk(self):
        """Yield this node and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, path: str) -> Optional["TreeNode"]:
        for node in self.walk():
            if node.path == path and not node.is_virtual:
                return node
        return None


# Support for recursive model
TreeNode.model_rebuild()
