"""Schemas for whole-database export, import and storage reports."""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ExportMeta(BaseModel):
    version: int
    exported_at: datetime


class ExportBundle(BaseModel):
    """A full dump: one list of row dicts per table, keyed by table name."""

    meta: ExportMeta
    data: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)


class StorageInfo(BaseModel):
    database_type: str
    database_path: Optional[Path] = None
    # database file plus its write-ahead log; None for in-memory databases
    size_bytes: Optional[int] = None
    row_counts: Dict[str, int] = Field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())
