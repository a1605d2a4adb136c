"""Service for the link index."""

from typing import List, Optional, Sequence

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from noteweave import db
from noteweave.annotations.markers import LinkReference, scan_links
from noteweave.events import EventBus
from noteweave.models.links import Link, LinkType
from noteweave.models.nodes import Node
from noteweave.repository.link_repository import LinkRepository
from noteweave.repository.node_repository import NodeRepository
from noteweave.services.exceptions import NotFoundError
from noteweave.services.service import BaseService
from noteweave.utils import PATH_SEPARATOR, normalize_path, utcnow


class LinkService(BaseService[Link]):
    """Maintains `[[target]]` references between nodes.

    A target is either a node id or an absolute path inside the source node's
    namespace. Path targets that do not resolve are skipped; id targets are
    stored as written so links to not-yet-created nodes survive.
    """

    def __init__(
        self,
        link_repository: LinkRepository,
        node_repository: NodeRepository,
        events: EventBus,
    ):
        super().__init__(link_repository, events)
        self.node_repository = node_repository

    async def refresh_links(self, source_node_id: str, text: Optional[str]) -> List[Link]:
        """Replace every outgoing link of `source_node_id` with the ones in `text`."""
        references = scan_links(text or "")
        async with db.scoped_session(self.repository.session_maker) as session:
            source = await self.node_repository.find_by_id(source_node_id, session=session)
            if source is None:
                raise NotFoundError(f"Node not found: {source_node_id}")

            await self.repository.delete_by_source(source_node_id, session=session)
            links = []
            for reference in references:
                target_id = await self._resolve_target(session, source, reference)
                if target_id is None:
                    logger.debug(f"Unresolved link target {reference.target!r} in {source.path}")
                    continue
                links.append(
                    Link(
                        source_node_id=source_node_id,
                        target_node_id=target_id,
                        link_type=(LinkType.EMBED if reference.embed else LinkType.REFERENCE).value,
                        display_text=reference.display_text,
                        position=reference.position,
                        created_at=utcnow(),
                    )
                )
            if links:
                await self.repository.add_all(links, session=session)

        logger.debug(f"Refreshed links for {source_node_id}: {len(links)} outgoing")
        return links

    async def _resolve_target(
        self, session: AsyncSession, source: Node, reference: LinkReference
    ) -> Optional[str]:
        if not reference.target.startswith(PATH_SEPARATOR):
            return reference.target
        try:
            path = normalize_path(reference.target)
        except ValueError:
            return None
        target = await self.node_repository.get_by_path(source.namespace, path, session=session)
        return target.id if target else None

    async def get_outgoing_links(self, source_node_id: str) -> Sequence[Link]:
        return await self.repository.find_by_source(source_node_id)

    async def get_backlinks(self, target_node_id: str) -> List[Node]:
        """Nodes that link to `target_node_id`, in path order."""
        links = await self.repository.find_by_target(target_node_id)
        source_ids = {link.source_node_id for link in links}
        if not source_ids:
            return []
        nodes = await self.node_repository.find_by_ids(source_ids)
        return sorted(nodes, key=lambda node: (node.namespace, node.path))
