"""Base model class for SQLAlchemy models."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from noteweave.utils import ensure_timezone_aware


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all models"""

    pass


class UtcDateTime(TypeDecorator):
    """Timestamp stored as UTC and always returned timezone-aware.

    SQLite keeps no offset, so values are normalized to UTC on the way in and
    tagged with UTC on the way out. Range comparisons on indexed columns stay
    consistent as long as every value passes through here.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return ensure_timezone_aware(value).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)
