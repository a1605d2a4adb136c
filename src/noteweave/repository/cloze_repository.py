"""Repository for cloze cards."""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave.models.annotations import CardTier, ClozeCard
from noteweave.repository.annotation_repository import AnnotationRepository
from noteweave.repository.repository import DEFAULT_BATCH_SIZE
from noteweave.utils import chunked


class ClozeRepository(AnnotationRepository[ClozeCard]):
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(session_maker, ClozeCard, batch_size=batch_size)

    async def find_due(
        self,
        host_node_ids: Iterable[str],
        now: datetime,
        new_tier: bool,
        limit: int,
        session: Optional[AsyncSession] = None,
    ) -> List[ClozeCard]:
        """Cards with `due_date <= now` among the given hosts, oldest due first.

        One upper-bound range query on the due-date index per host batch. With
        `new_tier` only new cards are returned, otherwise every other tier.
        Each batch is capped at `limit` and the merged result is cut again, so
        the answer matches a single unbatched query.
        """
        if limit <= 0:
            return []

        tier_filter = (
            ClozeCard.tier == CardTier.NEW.value
            if new_tier
            else ClozeCard.tier != CardTier.NEW.value
        )
        cards: List[ClozeCard] = []
        async with self.session_scope(session) as s:
            for batch in chunked(set(host_node_ids), self.batch_size):
                query = (
                    self.select()
                    .where(ClozeCard.due_date <= now, tier_filter, ClozeCard.host_node_id.in_(batch))
                    .order_by(ClozeCard.due_date, ClozeCard.id)
                    .limit(limit)
                )
                cards.extend((await s.execute(query)).scalars().all())

        cards.sort(key=lambda card: (card.due_date, card.id))
        return cards[:limit]

    async def count_due(
        self,
        host_node_ids: Iterable[str],
        now: datetime,
        session: Optional[AsyncSession] = None,
    ) -> int:
        total = 0
        async with self.session_scope(session) as s:
            for batch in chunked(set(host_node_ids), self.batch_size):
                query = select(func.count()).where(
                    ClozeCard.due_date <= now, ClozeCard.host_node_id.in_(batch)
                )
                total += (await s.execute(query)).scalar_one()
        return total

    async def count_by_tier(
        self,
        host_node_ids: Iterable[str],
        session: Optional[AsyncSession] = None,
    ) -> Dict[str, int]:
        counts = {tier.value: 0 for tier in CardTier}
        async with self.session_scope(session) as s:
            for batch in chunked(set(host_node_ids), self.batch_size):
                query = (
                    select(ClozeCard.tier, func.count())
                    .where(ClozeCard.host_node_id.in_(batch))
                    .group_by(ClozeCard.tier)
                )
                for tier, count in (await s.execute(query)).all():
                    counts[tier] = counts.get(tier, 0) + count
        return counts
