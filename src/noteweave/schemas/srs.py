"""Schemas for spaced-repetition review."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from noteweave.models.annotations import DEFAULT_EASE_FACTOR, CardTier


class Rating(str, Enum):
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class CardState(BaseModel):
    """Scheduling fields of a cloze card."""

    model_config = ConfigDict(from_attributes=True)

    tier: CardTier = CardTier.NEW
    due_date: datetime
    interval: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    repetitions: int = 0
    lapses: int = 0
    last_reviewed_at: Optional[datetime] = None


class ScopeKind(str, Enum):
    NAMESPACE = "namespace"
    SUBTREE = "subtree"
    DOCUMENTS = "documents"


class ReviewScope(BaseModel):
    """Which host nodes a review query covers.

    - namespace: every file in the namespace
    - subtree: the node at `node_id` and everything below it
    - documents: exactly `document_ids`
    """

    kind: ScopeKind
    namespace: Optional[str] = None
    node_id: Optional[str] = None
    document_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_fields(self) -> "ReviewScope":
        if self.kind == ScopeKind.NAMESPACE and not self.namespace:
            raise ValueError("namespace scope requires a namespace")
        if self.kind == ScopeKind.SUBTREE and not self.node_id:
            raise ValueError("subtree scope requires a node_id")
        return self

    @classmethod
    def for_namespace(cls, namespace: str) -> "ReviewScope":
        return cls(kind=ScopeKind.NAMESPACE, namespace=namespace)

    @classmethod
    def for_subtree(cls, node_id: str) -> "ReviewScope":
        return cls(kind=ScopeKind.SUBTREE, node_id=node_id)

    @classmethod
    def for_documents(cls, document_ids: List[str]) -> "ReviewScope":
        return cls(kind=ScopeKind.DOCUMENTS, document_ids=list(document_ids))


class DueLimits(BaseModel):
    new: int = Field(default=20, ge=0)
    review: int = Field(default=200, ge=0)


class DueCards(BaseModel):
    """Due card ids split into new and already-seen groups, oldest due first."""

    new: List[str] = Field(default_factory=list)
    review: List[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.new) + len(self.review)


class SrsStatistics(BaseModel):
    new: int = 0
    learning: int = 0
    review: int = 0
    mature: int = 0
    total: int = 0
    due: int = 0
