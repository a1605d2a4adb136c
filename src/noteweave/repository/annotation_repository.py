"""Shared repository behavior for annotation tables keyed by host node."""

from typing import Iterable, List, Optional, Sequence, Type

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave.repository.repository import DEFAULT_BATCH_SIZE, Repository, T
from noteweave.utils import chunked


class AnnotationRepository(Repository[T]):
    """Repository for a model with `id` and `host_node_id` columns."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        Model: Type[T],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(session_maker, Model, batch_size=batch_size)
        self.host_column = getattr(self.Model, "host_node_id")

    async def find_by_host(
        self, host_node_id: str, session: Optional[AsyncSession] = None
    ) -> Sequence[T]:
        query = self.select().where(self.host_column == host_node_id).order_by(self.Model.created_at)
        return await self.find_many(query, session=session)

    async def find_by_hosts(
        self, host_node_ids: Iterable[str], session: Optional[AsyncSession] = None
    ) -> List[T]:
        results: List[T] = []
        async with self.session_scope(session) as s:
            for batch in chunked(set(host_node_ids), self.batch_size):
                query = self.select().where(self.host_column.in_(batch))
                results.extend((await s.execute(query)).scalars().all())
        return results

    async def delete_by_host_ids(
        self, host_node_ids: Iterable[str], session: Optional[AsyncSession] = None
    ) -> int:
        return await self.delete_where_in(self.host_column, host_node_ids, session=session)
