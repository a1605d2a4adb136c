"""Repository for tasks."""

from datetime import date
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave.models.annotations import Task
from noteweave.repository.annotation_repository import AnnotationRepository
from noteweave.repository.repository import DEFAULT_BATCH_SIZE


class TaskRepository(AnnotationRepository[Task]):
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(session_maker, Task, batch_size=batch_size)

    async def find_by_user(
        self, user_id: str, session: Optional[AsyncSession] = None
    ) -> Sequence[Task]:
        query = self.select().where(Task.user_id == user_id).order_by(Task.start_date, Task.id)
        return await self.find_many(query, session=session)

    async def find_by_date_range(
        self, start: date, end: date, session: Optional[AsyncSession] = None
    ) -> Sequence[Task]:
        """Tasks whose start date falls in [start, end]."""
        query = (
            self.select()
            .where(Task.start_date >= start, Task.start_date <= end)
            .order_by(Task.start_date, Task.id)
        )
        return await self.find_many(query, session=session)
