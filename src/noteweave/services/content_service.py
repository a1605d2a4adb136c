"""Write pipeline for file content."""

from loguru import logger

from noteweave.annotations.reconciler import (
    AgentReconciler,
    ClozeReconciler,
    TaskReconciler,
)
from noteweave.schemas.results import ContentUpdateResult
from noteweave.services.exceptions import NoteweaveError, ValidationError
from noteweave.services.link_service import LinkService
from noteweave.services.node_service import NodeService


class ContentService:
    """Runs an edit through every derived index.

    Order: cloze -> task -> agent reconciliation, each feeding its rewritten
    text to the next, then the node write, then the link refresh. Each step is
    its own transaction, so on any error the caller resubmits the whole edit;
    reconciliation is idempotent, so a resubmit converges.

    A failed link refresh is logged and reported on the result; the content
    and annotations are already saved at that point.
    """

    def __init__(
        self,
        node_service: NodeService,
        cloze_reconciler: ClozeReconciler,
        task_reconciler: TaskReconciler,
        agent_reconciler: AgentReconciler,
        link_service: LinkService,
    ):
        self.node_service = node_service
        self.cloze_reconciler = cloze_reconciler
        self.task_reconciler = task_reconciler
        self.agent_reconciler = agent_reconciler
        self.link_service = link_service

    async def update_content(self, node_id: str, text: str) -> ContentUpdateResult:
        node = await self.node_service.get_node(node_id)
        if not node.is_file:
            raise ValidationError(f"Only files have content: {node.path}")

        text = text or ""
        cloze = await self.cloze_reconciler.reconcile(node.id, text)
        tasks = await self.task_reconciler.reconcile(node.id, cloze.text)
        agents = await self.agent_reconciler.reconcile(node.id, tasks.text)
        final_text = agents.text

        await self.node_service.update_node(node.id, {"content": final_text})

        result = ContentUpdateResult(
            node_id=node.id,
            content=final_text,
            cloze_ids=cloze.ids,
            task_ids=tasks.ids,
            agent_ids=agents.ids,
        )
        try:
            links = await self.link_service.refresh_links(node.id, final_text)
            result.link_count = len(links)
        except NoteweaveError as e:
            logger.exception(f"Link refresh failed for {node.id}, content was saved: {e}")
            result.links_refreshed = False

        logger.debug(
            f"Content updated for {node.id}: cloze={len(result.cloze_ids)} "
            f"tasks={len(result.task_ids)} agents={len(result.agent_ids)} links={result.link_count}"
        )
        return result
