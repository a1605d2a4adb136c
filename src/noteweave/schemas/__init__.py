"""Pydantic schemas for noteweave service inputs and outputs."""

from noteweave.schemas.backup import ExportBundle, ExportMeta, StorageInfo
from noteweave.schemas.results import ContentUpdateResult, DeleteResult
from noteweave.schemas.srs import (
    CardState,
    DueCards,
    DueLimits,
    Rating,
    ReviewScope,
    ScopeKind,
    SrsStatistics,
)
from noteweave.schemas.tree import TreeNode

__all__ = [
    "CardState",
    "ContentUpdateResult",
    "DeleteResult",
    "DueCards",
    "DueLimits",
    "ExportBundle",
    "ExportMeta",
    "Rating",
    "ReviewScope",
    "ScopeKind",
    "SrsStatistics",
    "StorageInfo",
    "TreeNode",
]
