"""Application context shared by every service.

One `AppContext` is built per process (or per test) and passed into service
constructors. There are no module-level singletons: the engine, session maker,
event bus and namespace registry all hang off the context.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncGenerator, Dict, List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from noteweave import db
from noteweave.config import DatabaseType, NoteweaveConfig
from noteweave.events import EventBus, InMemoryEventBus


@dataclass
class NamespaceEntry:
    namespace: str
    root_id: str


class NamespaceRegistry:
    """Per-namespace cache of root node ids.

    Entries are created when a root is first seen and disposed explicitly.
    Deleting a namespace root disposes only that namespace's entry.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, NamespaceEntry] = {}

    def get(self, namespace: str) -> Optional[NamespaceEntry]:
        return self._entries.get(namespace)

    def root_id(self, namespace: str) -> Optional[str]:
        entry = self._entries.get(namespace)
        return entry.root_id if entry else None

    def register(self, namespace: str, root_id: str) -> NamespaceEntry:
        entry = NamespaceEntry(namespace=namespace, root_id=root_id)
        self._entries[namespace] = entry
        logger.debug(f"Registered namespace {namespace} with root {root_id}")
        return entry

    def dispose(self, namespace: str) -> None:
        if self._entries.pop(namespace, None) is not None:
            logger.debug(f"Disposed namespace {namespace}")

    def dispose_all(self) -> None:
        self._entries.clear()

    def namespaces(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, namespace: str) -> bool:
        return namespace in self._entries


@dataclass
class AppContext:
    config: NoteweaveConfig
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    events: EventBus = field(default_factory=InMemoryEventBus)
    namespaces: NamespaceRegistry = field(default_factory=NamespaceRegistry)


@asynccontextmanager
async def open_context(
    config: NoteweaveConfig, events: Optional[EventBus] = None
) -> AsyncGenerator[AppContext, None]:
    """Build an AppContext, create the schema, and dispose everything on exit."""
    db_path = config.database_path if config.database_type == DatabaseType.FILESYSTEM else None
    async with db.engine_session_factory(db_path=db_path, db_type=config.database_type) as (
        engine,
        session_maker,
    ):
        await db.create_schema(engine)
        context = AppContext(
            config=config,
            engine=engine,
            session_maker=session_maker,
            events=events or InMemoryEventBus(),
        )
        try:
            yield context
        finally:
            context.namespaces.dispose_all()
