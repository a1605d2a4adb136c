"""Repositories for tags and node/tag associations."""

from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave.models.tags import NodeTag, Tag
from noteweave.repository.repository import DEFAULT_BATCH_SIZE, Repository


class TagRepository(Repository[Tag]):
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(session_maker, Tag, batch_size=batch_size)

    async def find_all_ordered(self, session: Optional[AsyncSession] = None) -> Sequence[Tag]:
        return await self.find_many(self.select().order_by(Tag.name), session=session)


class NodeTagRepository(Repository[NodeTag]):
    """Many-to-many rows, indexed by node id and by tag name."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(session_maker, NodeTag, batch_size=batch_size)

    async def exists(
        self, node_id: str, tag_name: str, session: Optional[AsyncSession] = None
    ) -> bool:
        async with self.session_scope(session) as s:
            return await s.get(NodeTag, (node_id, tag_name)) is not None

    async def find_tag_names_for_node(
        self, node_id: str, session: Optional[AsyncSession] = None
    ) -> List[str]:
        query = select(NodeTag.tag_name).where(NodeTag.node_id == node_id).order_by(NodeTag.tag_name)
        result = await self.execute_query(query, session=session)
        return list(result.scalars().all())

    async def find_node_ids_for_tag(
        self, tag_name: str, session: Optional[AsyncSession] = None
    ) -> List[str]:
        query = select(NodeTag.node_id).where(NodeTag.tag_name == tag_name).order_by(NodeTag.node_id)
        result = await self.execute_query(query, session=session)
        return list(result.scalars().all())

    async def remove(
        self, node_id: str, tag_name: str, session: Optional[AsyncSession] = None
    ) -> bool:
        stmt = delete(NodeTag).where(NodeTag.node_id == node_id, NodeTag.tag_name == tag_name)
        result = await self.execute_query(stmt, session=session)
        return (result.rowcount or 0) > 0

    async def delete_by_node_ids(
        self, node_ids: Iterable[str], session: Optional[AsyncSession] = None
    ) -> int:
        return await self.delete_where_in(NodeTag.node_id, node_ids, session=session)

    async def delete_by_tag(self, tag_name: str, session: Optional[AsyncSession] = None) -> int:
        stmt = delete(NodeTag).where(NodeTag.tag_name == tag_name)
        result = await self.execute_query(stmt, session=session)
        return result.rowcount or 0

    async def rename_tag(
        self, old_name: str, new_name: str, session: Optional[AsyncSession] = None
    ) -> int:
        stmt = (
            update(NodeTag)
            .where(NodeTag.tag_name == old_name)
            .values(tag_name=new_name)
            .execution_options(synchronize_session=False)
        )
        result = await self.execute_query(stmt, session=session)
        return result.rowcount or 0
