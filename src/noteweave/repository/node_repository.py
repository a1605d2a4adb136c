"""Repository for managing nodes."""

from typing import List, Optional, Sequence

from sqlalchemy import String, func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave.models.nodes import Node, NodeKind
from noteweave.repository.repository import DEFAULT_BATCH_SIZE, Repository
from noteweave.utils import ROOT_PATH, descendant_prefix, descendant_range


class NodeRepository(Repository[Node]):
    """Path-addressed access to nodes.

    Descendant lookups are range scans on the path index: every descendant of
    `/a` sorts strictly between `/a/` and `/a0`.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(session_maker, Node, batch_size=batch_size)

    async def get_by_path(
        self, namespace: str, path: str, session: Optional[AsyncSession] = None
    ) -> Optional[Node]:
        query = self.select().where(Node.namespace == namespace, Node.path == path)
        return await self.find_one(query, session=session)

    async def get_root(self, namespace: str, session: Optional[AsyncSession] = None) -> Optional[Node]:
        return await self.get_by_path(namespace, ROOT_PATH, session=session)

    async def path_exists(
        self, namespace: str, path: str, session: Optional[AsyncSession] = None
    ) -> bool:
        query = select(Node.id).where(Node.namespace == namespace, Node.path == path).limit(1)
        result = await self.execute_query(query, session=session)
        return result.first() is not None

    async def find_by_namespace(
        self,
        namespace: str,
        kind: Optional[NodeKind] = None,
        offset: int = 0,
        limit: Optional[int] = None,
        session: Optional[AsyncSession] = None,
    ) -> Sequence[Node]:
        query = self.select().where(Node.namespace == namespace)
        if kind is not None:
            query = query.where(Node.kind == NodeKind(kind).value)
        query = query.order_by(Node.path).offset(offset)
        if limit:
            query = query.limit(limit)
        return await self.find_many(query, session=session)

    async def find_children(
        self, parent_id: str, session: Optional[AsyncSession] = None
    ) -> Sequence[Node]:
        query = self.select().where(Node.parent_id == parent_id).order_by(Node.path)
        return await self.find_many(query, session=session)

    def _descendant_filter(self, namespace: str, path: str):
        lower, upper = descendant_range(path)
        return (Node.namespace == namespace, Node.path > lower, Node.path < upper)

    async def find_descendants(
        self, namespace: str, path: str, session: Optional[AsyncSession] = None
    ) -> Sequence[Node]:
        """All nodes strictly below `path`, ordered by path."""
        query = self.select().where(*self._descendant_filter(namespace, path)).order_by(Node.path)
        return await self.find_many(query, session=session)

    async def find_descendant_ids(
        self, namespace: str, path: str, session: Optional[AsyncSession] = None
    ) -> List[str]:
        query = select(Node.id).where(*self._descendant_filter(namespace, path))
        result = await self.execute_query(query, session=session)
        return list(result.scalars().all())

    async def rewrite_descendant_paths(
        self,
        namespace: str,
        old_path: str,
        new_path: str,
        session: Optional[AsyncSession] = None,
    ) -> int:
        """Replace the `old_path` prefix with `new_path` on every descendant.

        Runs as one UPDATE over the path-index range, so cost is linear in the
        number of descendants. Returns the number of rewritten rows.
        """
        old_prefix = descendant_prefix(old_path)
        new_prefix = descendant_prefix(new_path)
        rewritten = literal(new_prefix, String).concat(
            func.substr(Node.path, len(old_prefix) + 1)
        )
        stmt = (
            update(Node)
            .where(*self._descendant_filter(namespace, old_path))
            .values(path=rewritten)
            .execution_options(synchronize_session=False)
        )
        result = await self.execute_query(stmt, session=session)
        return result.rowcount or 0

    async def list_namespaces(self, session: Optional[AsyncSession] = None) -> List[str]:
        query = select(Node.namespace).distinct().order_by(Node.namespace)
        result = await self.execute_query(query, session=session)
        return list(result.scalars().all())
