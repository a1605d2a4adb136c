"""Base repository implementation."""

from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncGenerator,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Sequence,
    Type,
    TypeVar,
)

from loguru import logger
from sqlalchemy import Executable, Result, delete, func, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql import Select

from noteweave import db
from noteweave.models.base import Base
from noteweave.utils import chunked

T = TypeVar("T", bound=Base)

DEFAULT_BATCH_SIZE = 500


class Repository(Generic[T]):
    """Generic repository for CRUD operations on one model.

    Every method takes an optional `session`. Without one, the call runs in
    its own transaction; with one, it joins the caller's transaction so several
    repositories can commit or roll back together.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        Model: Type[T],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.session_maker = session_maker
        self.Model = Model
        self.batch_size = batch_size
        self.mapper = sa_inspect(self.Model).mapper
        self.primary_key = self.mapper.primary_key[0]
        self.valid_columns = [column.key for column in self.mapper.columns]

    @asynccontextmanager
    async def session_scope(
        self, session: Optional[AsyncSession] = None
    ) -> AsyncGenerator[AsyncSession, None]:
        """Yield the caller's session, or open a new transaction."""
        if session is not None:
            yield session
        else:
            async with db.scoped_session(self.session_maker) as new_session:
                yield new_session

    def select(self, *entities: Any) -> Select:
        if not entities:
            entities = (self.Model,)
        return select(*entities)

    def get_model_data(self, entity_data: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in entity_data.items() if k in self.valid_columns}

    async def find_all(
        self,
        offset: int = 0,
        limit: Optional[int] = None,
        session: Optional[AsyncSession] = None,
    ) -> Sequence[T]:
        query = self.select().order_by(self.primary_key).offset(offset)
        if limit:
            query = query.limit(limit)
        return await self.find_many(query, session=session)

    async def find_by_id(self, entity_id: Any, session: Optional[AsyncSession] = None) -> Optional[T]:
        async with self.session_scope(session) as s:
            return await s.get(self.Model, entity_id)

    async def find_by_ids(
        self, ids: Iterable[Any], session: Optional[AsyncSession] = None
    ) -> List[T]:
        """Fetch many rows by primary key in bounded IN batches."""
        results: List[T] = []
        async with self.session_scope(session) as s:
            for batch in chunked(set(ids), self.batch_size):
                query = self.select().where(self.primary_key.in_(batch))
                results.extend((await s.execute(query)).scalars().all())
        return results

    async def find_one(self, query: Select, session: Optional[AsyncSession] = None) -> Optional[T]:
        async with self.session_scope(session) as s:
            result = await s.execute(query)
            return result.scalars().one_or_none()

    async def find_many(self, query: Select, session: Optional[AsyncSession] = None) -> Sequence[T]:
        async with self.session_scope(session) as s:
            result = await s.execute(query)
            return result.scalars().all()

    async def add(self, model: T, session: Optional[AsyncSession] = None) -> T:
        async with self.session_scope(session) as s:
            s.add(model)
            await s.flush()
            return model

    async def add_all(self, models: List[T], session: Optional[AsyncSession] = None) -> List[T]:
        async with self.session_scope(session) as s:
            s.add_all(models)
            await s.flush()
            return models

    async def update(
        self, entity_id: Any, data: Dict[str, Any], session: Optional[AsyncSession] = None
    ) -> Optional[T]:
        async with self.session_scope(session) as s:
            model = await s.get(self.Model, entity_id)
            if model is None:
                return None
            for key, value in self.get_model_data(data).items():
                setattr(model, key, value)
            await s.flush()
            return model

    async def delete(self, entity_id: Any, session: Optional[AsyncSession] = None) -> bool:
        async with self.session_scope(session) as s:
            model = await s.get(self.Model, entity_id)
            if model is None:
                return False
            await s.delete(model)
            await s.flush()
            return True

    async def delete_by_ids(
        self, ids: Iterable[Any], session: Optional[AsyncSession] = None
    ) -> int:
        return await self.delete_where_in(self.primary_key, ids, session=session)

    async def delete_where_in(
        self,
        column: InstrumentedAttribute,
        values: Iterable[Any],
        session: Optional[AsyncSession] = None,
    ) -> int:
        """Bulk delete rows whose indexed `column` is in `values`, batch by batch."""
        deleted = 0
        async with self.session_scope(session) as s:
            for batch in chunked(set(values), self.batch_size):
                result = await s.execute(
                    delete(self.Model)
                    .where(column.in_(batch))
                    .execution_options(synchronize_session=False)
                )
                deleted += result.rowcount or 0
        if deleted:
            logger.debug(f"Deleted {deleted} rows from {self.Model.__tablename__}")
        return deleted

    async def count(self, query: Optional[Select] = None, session: Optional[AsyncSession] = None) -> int:
        if query is None:
            query = select(func.count()).select_from(self.Model)
        async with self.session_scope(session) as s:
            result = await s.execute(query)
            return result.scalar_one()

    async def execute_query(
        self,
        query: Executable,
        params: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncSession] = None,
    ) -> Result[Any]:
        async with self.session_scope(session) as s:
            return await s.execute(query, params or {})
