"""Whole-database export, import and maintenance."""

from datetime import date, datetime
from typing import Any, Dict, List, Mapping

import pydantic
from loguru import logger
from pydantic import TypeAdapter
from sqlalchemy import Column, Table, delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave import db
from noteweave.config import DatabaseType, NoteweaveConfig
from noteweave.context import NamespaceRegistry
from noteweave.events import Event, EventBus
from noteweave.models import Base
from noteweave.schemas.backup import ExportBundle, ExportMeta, StorageInfo
from noteweave.services.exceptions import ValidationError
from noteweave.utils import utcnow

# Bump when a table or column changes in a way older dumps cannot express.
EXPORT_VERSION = 1

_TEMPORAL_ADAPTERS = {datetime: TypeAdapter(datetime), date: TypeAdapter(date)}


class BackupService:
    """Dump and restore every table, clear the store and report its size.

    Export produces an `ExportBundle` whose JSON form is what `import_all`
    accepts. Import replaces the contents of each table present in the dump
    and leaves the others alone; unknown tables are skipped with a warning.
    Import and clear each run in a single transaction and drop every cached
    namespace root.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        events: EventBus,
        namespaces: NamespaceRegistry,
        app_config: NoteweaveConfig,
    ):
        self.session_maker = session_maker
        self.events = events
        self.namespaces = namespaces
        self.app_config = app_config

    @property
    def tables(self) -> List[Table]:
        return list(Base.metadata.sorted_tables)

    async def export_all(self) -> ExportBundle:
        data: Dict[str, List[Dict[str, Any]]] = {}
        async with db.scoped_session(self.session_maker) as session:
            for table in self.tables:
                rows = await session.execute(select(table).order_by(*table.primary_key.columns))
                data[table.name] = [dict(row._mapping) for row in rows]

        bundle = ExportBundle(meta=ExportMeta(version=EXPORT_VERSION, exported_at=utcnow()), data=data)
        logger.info(
            "Exported data",
            version=EXPORT_VERSION,
            rows={name: len(rows) for name, rows in data.items()},
        )
        return bundle

    async def import_all(self, payload: Mapping[str, Any] | ExportBundle) -> Dict[str, int]:
        """Restore a dump made by `export_all`. Returns rows written per table.

        Raises:
            ValidationError: the dump is malformed, or comes from a newer version
        """
        try:
            bundle = ExportBundle.model_validate(payload)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid import data format: {e}") from e
        if bundle.meta.version > EXPORT_VERSION:
            raise ValidationError(
                f"Import data version ({bundle.meta.version}) is newer than "
                f"this version ({EXPORT_VERSION}); upgrade noteweave to import it"
            )

        known = {table.name: table for table in self.tables}
        for name in sorted(bundle.data.keys() - known.keys()):
            logger.warning(f"Skipping import for unknown table: {name}")
        targets = [table for table in self.tables if table.name in bundle.data]

        written: Dict[str, int] = {}
        async with db.scoped_session(self.session_maker) as session:
            for table in reversed(targets):
                await session.execute(delete(table))
            for table in targets:
                rows = [_table_row(table, row) for row in bundle.data[table.name]]
                if rows:
                    await session.execute(insert(table), rows)
                written[table.name] = len(rows)

        self.namespaces.dispose_all()
        logger.info("Imported data", version=bundle.meta.version, rows=written)
        self.events.publish(Event.DATA_IMPORTED, {"tables": written})
        return written

    async def clear_all(self) -> Dict[str, int]:
        """Delete every row of every table. Returns rows deleted per table."""
        cleared: Dict[str, int] = {}
        async with db.scoped_session(self.session_maker) as session:
            for table in reversed(self.tables):
                result = await session.execute(delete(table))
                cleared[table.name] = result.rowcount or 0

        self.namespaces.dispose_all()
        logger.warning("Cleared all data", rows=cleared)
        self.events.publish(Event.DATA_CLEARED, {"tables": cleared})
        return cleared

    async def get_storage_info(self) -> StorageInfo:
        counts: Dict[str, int] = {}
        async with db.scoped_session(self.session_maker) as session:
            for table in self.tables:
                result = await session.execute(select(func.count()).select_from(table))
                counts[table.name] = result.scalar_one()

        config = self.app_config
        if config.database_type == DatabaseType.MEMORY:
            return StorageInfo(database_type=config.database_type.value, row_counts=counts)

        path = config.database_path
        files = [path, path.with_name(f"{path.name}-wal")]
        size = sum(f.stat().st_size for f in files if f.exists())
        return StorageInfo(
            database_type=config.database_type.value,
            database_path=path,
            size_bytes=size,
            row_counts=counts,
        )


def _table_row(table: Table, row: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the table's own columns and parse ISO timestamps back into values."""
    return {
        column.name: _column_value(column, row[column.name])
        for column in table.columns
        if column.name in row
    }


def _column_value(column: Column, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    adapter = _TEMPORAL_ADAPTERS.get(python_type)
    if adapter is None:
        return value
    try:
        return adapter.validate_python(value)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Bad {column.table.name}.{column.name} value: {value!r}") from e
