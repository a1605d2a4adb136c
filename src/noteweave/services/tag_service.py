"""Service for tags and node/tag associations."""

from typing import Iterable, List, Optional, Sequence

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from noteweave import db
from noteweave.events import Event, EventBus
from noteweave.models.nodes import Node
from noteweave.models.tags import NodeTag, Tag
from noteweave.repository.node_repository import NodeRepository
from noteweave.repository.tag_repository import NodeTagRepository, TagRepository
from noteweave.services.exceptions import ConflictError, NotFoundError, ValidationError
from noteweave.services.service import BaseService
from noteweave.utils import utcnow


class TagAction:
    CREATED = "created"
    ADDED = "added"
    REMOVED = "removed"
    SET = "set"
    RENAMED = "renamed"
    DELETED = "deleted"


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Tag name must not be empty")
    return name


class TagService(BaseService[Tag]):
    """Tags are global and case-sensitive. Renaming or deleting a tag carries
    over to every node that has it."""

    def __init__(
        self,
        tag_repository: TagRepository,
        node_tag_repository: NodeTagRepository,
        node_repository: NodeRepository,
        events: EventBus,
    ):
        super().__init__(tag_repository, events)
        self.node_tag_repository = node_tag_repository
        self.node_repository = node_repository

    @property
    def session_maker(self):
        return self.repository.session_maker

    async def get_all_tags(self) -> Sequence[Tag]:
        return await self.repository.find_all_ordered()

    async def get_tag(self, name: str) -> Tag:
        tag = await self.repository.find_by_id(name)
        if tag is None:
            raise NotFoundError(f"Tag not found: {name}")
        return tag

    async def create_tag(
        self,
        name: str,
        color: Optional[str] = None,
        description: Optional[str] = None,
        is_protected: bool = False,
    ) -> Tag:
        name = _clean_name(name)
        async with db.scoped_session(self.session_maker) as session:
            if await self.repository.find_by_id(name, session=session) is not None:
                raise ConflictError(f"Tag already exists: {name}")
            tag = Tag(
                name=name,
                color=color,
                description=description,
                is_protected=is_protected,
                created_at=utcnow(),
            )
            await self.repository.add(tag, session=session)
        self.publish(Event.TAGS_UPDATED, {"action": TagAction.CREATED, "tag_name": name})
        return tag

    async def _ensure_tag(self, session: AsyncSession, name: str) -> Tag:
        tag = await self.repository.find_by_id(name, session=session)
        if tag is None:
            tag = Tag(name=name, is_protected=False, created_at=utcnow())
            await self.repository.add(tag, session=session)
            logger.debug(f"Created tag on first use: {name}")
        return tag

    async def ensure_tag(self, name: str) -> Tag:
        name = _clean_name(name)
        async with db.scoped_session(self.session_maker) as session:
            return await self._ensure_tag(session, name)

    async def _require_node(self, session: AsyncSession, node_id: str) -> Node:
        node = await self.node_repository.find_by_id(node_id, session=session)
        if node is None:
            raise NotFoundError(f"Node not found: {node_id}")
        return node

    async def add_tag_to_node(self, node_id: str, tag_name: str) -> None:
        tag_name = _clean_name(tag_name)
        async with db.scoped_session(self.session_maker) as session:
            await self._require_node(session, node_id)
            await self._ensure_tag(session, tag_name)
            if not await self.node_tag_repository.exists(node_id, tag_name, session=session):
                await self.node_tag_repository.add(
                    NodeTag(node_id=node_id, tag_name=tag_name, created_at=utcnow()), session=session
                )
        self.publish(
            Event.TAGS_UPDATED, {"action": TagAction.ADDED, "node_id": node_id, "tag_name": tag_name}
        )

    async def add_tag_to_nodes(self, node_ids: Iterable[str], tag_name: str) -> int:
        """Tag several nodes at once. Missing nodes are skipped; returns how many were tagged."""
        tag_name = _clean_name(tag_name)
        added = 0
        async with db.scoped_session(self.session_maker) as session:
            existing = {node.id for node in await self.node_repository.find_by_ids(node_ids, session=session)}
            await self._ensure_tag(session, tag_name)
            for node_id in sorted(existing):
                if not await self.node_tag_repository.exists(node_id, tag_name, session=session):
                    session.add(NodeTag(node_id=node_id, tag_name=tag_name, created_at=utcnow()))
                    added += 1
        self.publish(Event.TAGS_UPDATED, {"action": TagAction.ADDED, "tag_name": tag_name})
        return added

    async def remove_tag_from_node(self, node_id: str, tag_name: str) -> bool:
        async with db.scoped_session(self.session_maker) as session:
            await self._require_node(session, node_id)
            removed = await self.node_tag_repository.remove(node_id, tag_name, session=session)
        if removed:
            self.publish(
                Event.TAGS_UPDATED,
                {"action": TagAction.REMOVED, "node_id": node_id, "tag_name": tag_name},
            )
        return removed

    async def remove_tag_from_nodes(self, node_ids: Iterable[str], tag_name: str) -> int:
        """Untag several nodes at once. Missing nodes are skipped; returns how many were untagged."""
        removed = 0
        async with db.scoped_session(self.session_maker) as session:
            for node_id in set(node_ids):
                if await self.node_tag_repository.remove(node_id, tag_name, session=session):
                    removed += 1
        if removed:
            self.publish(Event.TAGS_UPDATED, {"action": TagAction.REMOVED, "tag_name": tag_name})
        return removed

    async def set_tags_for_node(self, node_id: str, tag_names: Iterable[str]) -> List[str]:
        """Replace a node's tags with exactly `tag_names`."""
        wanted = sorted({_clean_name(name) for name in tag_names})
        async with db.scoped_session(self.session_maker) as session:
            await self._require_node(session, node_id)
            await self.node_tag_repository.delete_by_node_ids([node_id], session=session)
            for name in wanted:
                await self._ensure_tag(session, name)
                session.add(NodeTag(node_id=node_id, tag_name=name, created_at=utcnow()))
        self.publish(Event.TAGS_UPDATED, {"action": TagAction.SET, "node_id": node_id})
        return wanted

    async def get_tags_for_node(self, node_id: str) -> List[str]:
        return await self.node_tag_repository.find_tag_names_for_node(node_id)

    async def find_nodes_by_tag(self, tag_name: str) -> List[Node]:
        node_ids = await self.node_tag_repository.find_node_ids_for_tag(tag_name)
        nodes = await self.node_repository.find_by_ids(node_ids)
        return sorted(nodes, key=lambda node: (node.namespace, node.path))

    async def rename_tag(self, old_name: str, new_name: str) -> Tag:
        new_name = _clean_name(new_name)
        async with db.scoped_session(self.session_maker) as session:
            old_tag = await self.repository.find_by_id(old_name, session=session)
            if old_tag is None:
                raise NotFoundError(f"Tag not found: {old_name}")
            if new_name == old_name:
                return old_tag
            if await self.repository.find_by_id(new_name, session=session) is not None:
                raise ConflictError(f"Tag already exists: {new_name}")

            new_tag = Tag(
                name=new_name,
                color=old_tag.color,
                description=old_tag.description,
                is_protected=old_tag.is_protected,
                created_at=old_tag.created_at,
            )
            await self.repository.add(new_tag, session=session)
            moved = await self.node_tag_repository.rename_tag(old_name, new_name, session=session)
            await self.repository.delete(old_name, session=session)

        logger.info(f"Renamed tag {old_name} -> {new_name} on {moved} nodes")
        self.publish(Event.TAGS_UPDATED, {"action": TagAction.RENAMED, "tag_name": new_name})
        return new_tag

    async def delete_tag(self, name: str) -> int:
        """Delete a tag and its associations; returns the number of nodes untagged."""
        async with db.scoped_session(self.session_maker) as session:
            tag = await self.repository.find_by_id(name, session=session)
            if tag is None:
                raise NotFoundError(f"Tag not found: {name}")
            if tag.is_protected:
                raise ValidationError(f"Tag is protected: {name}")
            removed = await self.node_tag_repository.delete_by_tag(name, session=session)
            await self.repository.delete(name, session=session)

        logger.info(f"Deleted tag {name} from {removed} nodes")
        self.publish(Event.TAGS_UPDATED, {"action": TagAction.DELETED, "tag_name": name})
        return removed
