"""Repository for links between nodes."""

from typing import Iterable, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave.models.links import Link
from noteweave.repository.repository import DEFAULT_BATCH_SIZE, Repository


class LinkRepository(Repository[Link]):
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(session_maker, Link, batch_size=batch_size)

    async def find_by_source(
        self, source_node_id: str, session: Optional[AsyncSession] = None
    ) -> Sequence[Link]:
        query = self.select().where(Link.source_node_id == source_node_id).order_by(Link.position)
        return await self.find_many(query, session=session)

    async def find_by_target(
        self, target_node_id: str, session: Optional[AsyncSession] = None
    ) -> Sequence[Link]:
        query = self.select().where(Link.target_node_id == target_node_id).order_by(Link.id)
        return await self.find_many(query, session=session)

    async def delete_by_source(
        self, source_node_id: str, session: Optional[AsyncSession] = None
    ) -> int:
        stmt = delete(Link).where(Link.source_node_id == source_node_id)
        result = await self.execute_query(stmt, session=session)
        return result.rowcount or 0

    async def delete_by_node_ids(
        self, node_ids: Iterable[str], session: Optional[AsyncSession] = None
    ) -> int:
        """Delete every link whose source or target is one of `node_ids`."""
        node_ids = set(node_ids)
        async with self.session_scope(session) as s:
            deleted = await self.delete_where_in(Link.source_node_id, node_ids, session=s)
            deleted += await self.delete_where_in(Link.target_node_id, node_ids, session=s)
        return deleted
