"""Keep annotation tables in sync with the markers in a node's text."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Set

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from noteweave import db
from noteweave.annotations.markers import (
    AgentGrammar,
    ClozeGrammar,
    Marker,
    MarkerGrammar,
    TaskGrammar,
    TextEdit,
    apply_edits,
    id_insertion,
)
from noteweave.models.annotations import (
    AgentBlock,
    AgentStatus,
    CardTier,
    ClozeCard,
    Task,
    TaskStatus,
)
from noteweave.repository.agent_repository import AgentRepository
from noteweave.repository.annotation_repository import AnnotationRepository
from noteweave.repository.cloze_repository import ClozeRepository
from noteweave.repository.repository import T
from noteweave.repository.task_repository import TaskRepository
from noteweave.utils import generate_annotation_id, utcnow


@dataclass
class ReconcileResult(Generic[T]):
    text: str
    records: List[T] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    @property
    def ids(self) -> List[str]:
        return [record.id for record in self.records]


class AnnotationReconciler(Generic[T]):
    """Generic text-to-records synchronizer.

    A pass over (host_node_id, text):
    1. scan markers in document order
    2. keep each marker's id, or mint one and write it into the text; ids that
       repeat within the text or belong to another host are replaced
    3. overlay the marker payload on the stored record, or create a default one
    4. delete this host's records whose id no longer appears
    5. persist and return the rewritten text with the records

    The pass runs in a single transaction. Running it again on its own output
    returns the same text and the same records.
    """

    grammar: MarkerGrammar

    def __init__(self, repository: AnnotationRepository[T]):
        self.repository = repository

    @property
    def prefix(self) -> str:
        return self.grammar.prefix

    def scan(self, text: str) -> List[Marker]:
        return list(self.grammar.scan(text or ""))

    def create_record(self, annotation_id: str, host_node_id: str, marker: Marker) -> T:
        raise NotImplementedError  # pragma: no cover

    def apply_payload(self, record: T, marker: Marker) -> bool:
        """Overlay marker fields on an existing record. Returns True if anything changed."""
        raise NotImplementedError  # pragma: no cover

    async def reconcile(self, host_node_id: str, text: str) -> ReconcileResult[T]:
        async with db.scoped_session(self.repository.session_maker) as session:
            return await self.reconcile_in_session(session, host_node_id, text)

    async def reconcile_in_session(
        self, session: AsyncSession, host_node_id: str, text: str
    ) -> ReconcileResult[T]:
        text = text or ""
        markers = self.scan(text)

        stored = {
            record.id: record
            for record in await self.repository.find_by_host(host_node_id, session=session)
        }
        foreign = await self._foreign_ids(session, host_node_id, markers, stored)

        seen: Set[str] = set()
        edits: List[TextEdit] = []
        result: ReconcileResult[T] = ReconcileResult(text=text)

        for marker in markers:
            annotation_id = marker.annotation_id
            if annotation_id is None:
                annotation_id = await self._mint_id(session, seen, stored)
                edits.append(id_insertion(text, marker.insert_at, annotation_id))
            elif annotation_id in seen or annotation_id in foreign:
                replaced = annotation_id
                annotation_id = await self._mint_id(session, seen, stored)
                start, end = marker.id_span
                edits.append(TextEdit(start, end, annotation_id))
                logger.debug(
                    f"Replacing {self.grammar.name} id {replaced} with {annotation_id} "
                    f"on node {host_node_id}"
                )
            seen.add(annotation_id)

            record = stored.get(annotation_id)
            if record is None:
                record = self.create_record(annotation_id, host_node_id, marker)
                session.add(record)
                result.created.append(annotation_id)
            elif self.apply_payload(record, marker):
                record.updated_at = utcnow()
            result.records.append(record)

        result.removed = [record_id for record_id in stored if record_id not in seen]
        if result.removed:
            await self.repository.delete_by_ids(result.removed, session=session)

        await session.flush()
        result.text = apply_edits(text, edits)

        if result.created or result.removed or edits:
            logger.info(
                f"Reconciled {self.grammar.name} on {host_node_id}: "
                f"records={len(result.records)} created={len(result.created)} "
                f"removed={len(result.removed)} rewrites={len(edits)}"
            )
        return result

    async def _foreign_ids(
        self,
        session: AsyncSession,
        host_node_id: str,
        markers: List[Marker],
        stored: Dict[str, Any],
    ) -> Set[str]:
        """Ids in the text that are already owned by a different host."""
        unknown = {m.annotation_id for m in markers if m.annotation_id and m.annotation_id not in stored}
        if not unknown:
            return set()
        records = await self.repository.find_by_ids(unknown, session=session)
        return {record.id for record in records if record.host_node_id != host_node_id}

    async def _mint_id(self, session: AsyncSession, seen: Set[str], stored: Dict[str, Any]) -> str:
        while True:
            candidate = generate_annotation_id(self.prefix)
            if candidate in seen or candidate in stored:
                continue  # pragma: no cover
            if await self.repository.find_by_id(candidate, session=session) is None:
                return candidate


class ClozeReconciler(AnnotationReconciler[ClozeCard]):
    grammar = ClozeGrammar()

    def __init__(self, repository: ClozeRepository):
        super().__init__(repository)

    def create_record(self, annotation_id: str, host_node_id: str, marker: Marker) -> ClozeCard:
        now = utcnow()
        return ClozeCard(
            id=annotation_id,
            host_node_id=host_node_id,
            content=marker.payload["content"],
            cluster=marker.payload["cluster"],
            tier=CardTier.NEW.value,
            due_date=now,
            interval=0,
            ease_factor=2.5,
            repetitions=0,
            lapses=0,
            created_at=now,
            updated_at=now,
        )

    def apply_payload(self, record: ClozeCard, marker: Marker) -> bool:
        changed = False
        for key in ("content", "cluster"):
            if getattr(record, key) != marker.payload[key]:
                setattr(record, key, marker.payload[key])
                changed = True
        return changed


class TaskReconciler(AnnotationReconciler[Task]):
    """Tasks take their status from the checkbox.

    A checked box means done. An unchecked box keeps a stored todo or doing
    status and turns a stored done back into todo.
    """

    grammar = TaskGrammar()

    def __init__(self, repository: TaskRepository):
        super().__init__(repository)

    @staticmethod
    def _status(checked: bool, current: Optional[str]) -> str:
        if checked:
            return TaskStatus.DONE.value
        if current in (TaskStatus.TODO.value, TaskStatus.DOING.value):
            return current
        return TaskStatus.TODO.value

    def create_record(self, annotation_id: str, host_node_id: str, marker: Marker) -> Task:
        now = utcnow()
        payload = marker.payload
        return Task(
            id=annotation_id,
            host_node_id=host_node_id,
            user_id=payload["user_id"],
            start_date=payload["start_date"],
            end_date=payload["end_date"],
            description=payload["description"],
            status=self._status(payload["checked"], None),
            created_at=now,
            updated_at=now,
        )

    def apply_payload(self, record: Task, marker: Marker) -> bool:
        payload = marker.payload
        values = {
            "user_id": payload["user_id"],
            "start_date": payload["start_date"],
            "end_date": payload["end_date"],
            "description": payload["description"],
            "status": self._status(payload["checked"], record.status),
        }
        changed = False
        for key, value in values.items():
            if getattr(record, key) != value:
                setattr(record, key, value)
                changed = True
        return changed


class AgentReconciler(AnnotationReconciler[AgentBlock]):
    grammar = AgentGrammar()

    def __init__(self, repository: AgentRepository):
        super().__init__(repository)

    def create_record(self, annotation_id: str, host_node_id: str, marker: Marker) -> AgentBlock:
        now = utcnow()
        payload = marker.payload
        return AgentBlock(
            id=annotation_id,
            host_node_id=host_node_id,
            agent_type=payload["agent_type"],
            body=payload["body"],
            config=dict(payload["config"]),
            status=AgentStatus.IDLE.value,
            run_count=0,
            outputs=[],
            created_at=now,
            updated_at=now,
        )

    def apply_payload(self, record: AgentBlock, marker: Marker) -> bool:
        payload = marker.payload
        changed = False
        for key in ("agent_type", "body", "config"):
            if getattr(record, key) != payload[key]:
                setattr(record, key, payload[key])
                changed = True
        return changed
