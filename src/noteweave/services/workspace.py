"""Workspace: every repository and service wired from one AppContext."""

from typing import Any, Dict, Optional

from noteweave.annotations.reconciler import AgentReconciler, ClozeReconciler, TaskReconciler
from noteweave.context import AppContext
from noteweave.models.nodes import Node, NodeKind
from noteweave.repository import (
    AgentRepository,
    ClozeRepository,
    LinkRepository,
    NodeRepository,
    NodeTagRepository,
    TagRepository,
    TaskRepository,
)
from noteweave.schemas.results import ContentUpdateResult
from noteweave.services.annotation_service import AnnotationService
from noteweave.services.backup_service import BackupService
from noteweave.services.content_service import ContentService
from noteweave.services.link_service import LinkService
from noteweave.services.node_service import NodeService
from noteweave.services.srs_service import SrsService
from noteweave.services.tag_service import TagService


class Workspace:
    """Facade over the node store and its derived indexes."""

    def __init__(self, context: AppContext):
        self.context = context
        config = context.config
        session_maker = context.session_maker
        batch_size = config.delete_batch_size

        self.node_repository = NodeRepository(session_maker, batch_size=batch_size)
        self.node_tag_repository = NodeTagRepository(session_maker, batch_size=batch_size)
        self.tag_repository = TagRepository(session_maker, batch_size=batch_size)
        self.link_repository = LinkRepository(session_maker, batch_size=batch_size)
        self.cloze_repository = ClozeRepository(session_maker, batch_size=batch_size)
        self.task_repository = TaskRepository(session_maker, batch_size=batch_size)
        self.agent_repository = AgentRepository(session_maker, batch_size=batch_size)

        self.nodes = NodeService(
            node_repository=self.node_repository,
            node_tag_repository=self.node_tag_repository,
            link_repository=self.link_repository,
            cloze_repository=self.cloze_repository,
            task_repository=self.task_repository,
            agent_repository=self.agent_repository,
            events=context.events,
            namespaces=context.namespaces,
            app_config=config,
        )
        self.tags = TagService(
            tag_repository=self.tag_repository,
            node_tag_repository=self.node_tag_repository,
            node_repository=self.node_repository,
            events=context.events,
        )
        self.links = LinkService(
            link_repository=self.link_repository,
            node_repository=self.node_repository,
            events=context.events,
        )
        self.annotations = AnnotationService(
            cloze_repository=self.cloze_repository,
            task_repository=self.task_repository,
            agent_repository=self.agent_repository,
        )
        self.srs = SrsService(
            cloze_repository=self.cloze_repository,
            node_repository=self.node_repository,
            events=context.events,
            app_config=config,
        )
        self.content = ContentService(
            node_service=self.nodes,
            cloze_reconciler=ClozeReconciler(self.cloze_repository),
            task_reconciler=TaskReconciler(self.task_repository),
            agent_reconciler=AgentReconciler(self.agent_repository),
            link_service=self.links,
        )
        self.backup = BackupService(
            session_maker=session_maker,
            events=context.events,
            namespaces=context.namespaces,
            app_config=config,
        )

    async def create_directory(self, namespace: str, path: str) -> Node:
        return await self.nodes.create_node(namespace, path, NodeKind.DIRECTORY)

    async def create_file(
        self,
        namespace: str,
        path: str,
        content: str = "",
        meta: Optional[Dict[str, Any]] = None,
    ) -> Node:
        """Create a file and run its content through the write pipeline.

        `meta["tags"]` seeds the node's tag associations.
        """
        node = await self.nodes.create_node(namespace, path, NodeKind.FILE, meta=meta)
        tags = (meta or {}).get("tags") or []
        if tags:
            await self.tags.set_tags_for_node(node.id, tags)
        if content:
            await self.content.update_content(node.id, content)
            node = await self.nodes.get_node(node.id)
        return node

    async def write(self, node_id: str, content: str) -> ContentUpdateResult:
        return await self.content.update_content(node_id, content)
