"""Repository for agent blocks."""

from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave.models.annotations import AgentBlock
from noteweave.repository.annotation_repository import AnnotationRepository
from noteweave.repository.repository import DEFAULT_BATCH_SIZE


class AgentRepository(AnnotationRepository[AgentBlock]):
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(session_maker, AgentBlock, batch_size=batch_size)

    async def find_by_type(
        self, agent_type: str, session: Optional[AsyncSession] = None
    ) -> Sequence[AgentBlock]:
        query = self.select().where(AgentBlock.agent_type == agent_type).order_by(AgentBlock.id)
        return await self.find_many(query, session=session)
