"""Spaced-repetition review over stored cloze cards."""

from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger

from noteweave import db
from noteweave.config import NoteweaveConfig
from noteweave.events import Event, EventBus
from noteweave.models.annotations import ClozeCard
from noteweave.repository.cloze_repository import ClozeRepository
from noteweave.repository.node_repository import NodeRepository
from noteweave.schemas.srs import (
    CardState,
    DueCards,
    DueLimits,
    Rating,
    ReviewScope,
    ScopeKind,
    SrsStatistics,
)
from noteweave.services.exceptions import NotFoundError, ValidationError
from noteweave.services.service import BaseService
from noteweave.srs.scheduler import Scheduler
from noteweave.utils import utcnow


def _apply_state(card: ClozeCard, state: CardState) -> None:
    card.tier = state.tier.value
    card.due_date = state.due_date
    card.interval = state.interval
    card.ease_factor = state.ease_factor
    card.repetitions = state.repetitions
    card.lapses = state.lapses
    card.last_reviewed_at = state.last_reviewed_at
    card.updated_at = utcnow()


class SrsService(BaseService[ClozeCard]):
    def __init__(
        self,
        cloze_repository: ClozeRepository,
        node_repository: NodeRepository,
        events: EventBus,
        app_config: NoteweaveConfig,
        scheduler: Optional[Scheduler] = None,
    ):
        super().__init__(cloze_repository, events)
        self.node_repository = node_repository
        self.app_config = app_config
        self.scheduler = scheduler or Scheduler(mature_interval=app_config.srs_mature_interval)

    def default_limits(self) -> DueLimits:
        return DueLimits(
            new=self.app_config.srs_new_card_limit,
            review=self.app_config.srs_review_card_limit,
        )

    async def get_card(self, card_id: str) -> ClozeCard:
        card = await self.repository.find_by_id(card_id)
        if card is None:
            raise NotFoundError(f"Card not found: {card_id}")
        return card

    async def grade_card(
        self, card_id: str, rating: Rating | str, now: Optional[datetime] = None
    ) -> ClozeCard:
        try:
            rating = Rating(rating)
        except ValueError as e:
            raise ValidationError(f"Invalid rating: {rating!r}") from e

        async with db.scoped_session(self.repository.session_maker) as session:
            card = await self.repository.find_by_id(card_id, session=session)
            if card is None:
                raise NotFoundError(f"Card not found: {card_id}")
            state = self.scheduler.grade(CardState.model_validate(card), rating, now=now)
            _apply_state(card, state)

        logger.debug(
            f"Graded card {card_id} {rating.value}: tier={state.tier.value} interval={state.interval}"
        )
        self.publish(Event.SRS_CARD_UPDATED, {"card_id": card_id, "new_state": state})
        return card

    async def reset_card(self, card_id: str, now: Optional[datetime] = None) -> ClozeCard:
        async with db.scoped_session(self.repository.session_maker) as session:
            card = await self.repository.find_by_id(card_id, session=session)
            if card is None:
                raise NotFoundError(f"Card not found: {card_id}")
            state = self.scheduler.reset(CardState.model_validate(card), now=now)
            _apply_state(card, state)

        logger.debug(f"Reset card {card_id}")
        self.publish(Event.SRS_CARD_UPDATED, {"card_id": card_id, "new_state": state})
        return card

    async def resolve_scope(self, scope: ReviewScope) -> List[str]:
        """Host node ids covered by `scope`."""
        if scope.kind == ScopeKind.NAMESPACE:
            nodes = await self.node_repository.find_by_namespace(scope.namespace)
            return [node.id for node in nodes]
        if scope.kind == ScopeKind.SUBTREE:
            node = await self.node_repository.find_by_id(scope.node_id)
            if node is None:
                raise NotFoundError(f"Node not found: {scope.node_id}")
            descendants = await self.node_repository.find_descendant_ids(node.namespace, node.path)
            return [node.id] + descendants
        return list(dict.fromkeys(scope.document_ids))

    async def get_due_cards(
        self,
        scope: ReviewScope,
        limits: Optional[DueLimits] = None,
        now: Optional[datetime] = None,
    ) -> DueCards:
        """Card ids due by `now`, split into new and seen, each capped by its limit."""
        limits = limits or self.default_limits()
        now = now or utcnow()
        host_ids = await self.resolve_scope(scope)
        if not host_ids:
            return DueCards()

        new_cards = await self.repository.find_due(host_ids, now, new_tier=True, limit=limits.new)
        review_cards = await self.repository.find_due(
            host_ids, now, new_tier=False, limit=limits.review
        )
        return DueCards(
            new=[card.id for card in new_cards],
            review=[card.id for card in review_cards],
        )

    async def get_due_card_count(
        self, scope: ReviewScope, now: Optional[datetime] = None
    ) -> int:
        host_ids = await self.resolve_scope(scope)
        if not host_ids:
            return 0
        return await self.repository.count_due(host_ids, now or utcnow())

    async def get_statistics(
        self, scope: ReviewScope, now: Optional[datetime] = None
    ) -> SrsStatistics:
        host_ids = await self.resolve_scope(scope)
        if not host_ids:
            return SrsStatistics()
        counts = await self.repository.count_by_tier(host_ids)
        return SrsStatistics(
            **counts,
            total=sum(counts.values()),
            due=await self.repository.count_due(host_ids, now or utcnow()),
        )

    async def get_states_for_document(self, node_id: str) -> Dict[str, CardState]:
        cards = await self.repository.find_by_host(node_id)
        return {card.id: CardState.model_validate(card) for card in cards}
