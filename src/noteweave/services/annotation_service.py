"""Read and status operations on stored annotations."""

from datetime import date
from typing import Iterable, List, Sequence

from loguru import logger

from noteweave import db
from noteweave.models.annotations import AgentBlock, ClozeCard, Task, TaskStatus
from noteweave.repository.agent_repository import AgentRepository
from noteweave.repository.cloze_repository import ClozeRepository
from noteweave.repository.task_repository import TaskRepository
from noteweave.services.exceptions import NotFoundError, ValidationError
from noteweave.utils import utcnow


def _task_status(status: str) -> TaskStatus:
    try:
        return TaskStatus(status)
    except ValueError as e:
        valid = ", ".join(s.value for s in TaskStatus)
        raise ValidationError(f"Invalid task status {status!r}; expected one of: {valid}") from e


class AnnotationService:
    """Queries over cloze cards, tasks and agent blocks.

    Records are created and removed by reconciliation; this service only reads
    them and changes task status.
    """

    def __init__(
        self,
        cloze_repository: ClozeRepository,
        task_repository: TaskRepository,
        agent_repository: AgentRepository,
    ):
        self.cloze_repository = cloze_repository
        self.task_repository = task_repository
        self.agent_repository = agent_repository

    async def get_cards_for_node(self, node_id: str) -> Sequence[ClozeCard]:
        return await self.cloze_repository.find_by_host(node_id)

    async def get_tasks_for_node(self, node_id: str) -> Sequence[Task]:
        return await self.task_repository.find_by_host(node_id)

    async def find_tasks_by_user(self, user_id: str) -> Sequence[Task]:
        return await self.task_repository.find_by_user(user_id.lstrip("@"))

    async def find_tasks_by_date_range(self, start: date, end: date) -> Sequence[Task]:
        if end < start:
            raise ValidationError(f"End date {end} is before start date {start}")
        return await self.task_repository.find_by_date_range(start, end)

    async def update_task_status(self, task_id: str, status: str) -> Task:
        new_status = _task_status(status)
        task = await self.task_repository.update(
            task_id, {"status": new_status.value, "updated_at": utcnow()}
        )
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        logger.debug(f"Task {task_id} status -> {new_status.value}")
        return task

    async def update_tasks_status(self, task_ids: Iterable[str], status: str) -> List[Task]:
        """Set the same status on several tasks in one transaction.

        Raises NotFoundError, and changes nothing, if any id is unknown.
        """
        new_status = _task_status(status)
        task_ids = list(dict.fromkeys(task_ids))
        async with db.scoped_session(self.task_repository.session_maker) as session:
            tasks = await self.task_repository.find_by_ids(task_ids, session=session)
            missing = set(task_ids) - {task.id for task in tasks}
            if missing:
                raise NotFoundError(f"Tasks not found: {sorted(missing)}")
            now = utcnow()
            for task in tasks:
                task.status = new_status.value
                task.updated_at = now
        return sorted(tasks, key=lambda task: task_ids.index(task.id))

    async def get_agents_for_node(self, node_id: str) -> Sequence[AgentBlock]:
        return await self.agent_repository.find_by_host(node_id)

    async def get_all_agents(self) -> Sequence[AgentBlock]:
        return await self.agent_repository.find_all()

    async def find_agents_by_type(self, agent_type: str) -> Sequence[AgentBlock]:
        return await self.agent_repository.find_by_type(agent_type)
