"""Result schemas returned by node and content operations."""

from typing import List

from pydantic import BaseModel, Field


class DeleteResult(BaseModel):
    """Outcome of delete_node. Both fields are empty when nothing was deleted."""

    removed_node_id: str
    all_removed_ids: List[str] = Field(default_factory=list)

    @property
    def deleted(self) -> bool:
        return bool(self.all_removed_ids)


class ContentUpdateResult(BaseModel):
    """Outcome of writing new text to a file node."""

    node_id: str
    content: str
    cloze_ids: List[str] = Field(default_factory=list)
    task_ids: List[str] = Field(default_factory=list)
    agent_ids: List[str] = Field(default_factory=list)
    link_count: int = 0
    # False when the link index could not be refreshed; content is still saved
    links_refreshed: bool = True
