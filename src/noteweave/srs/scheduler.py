"""Spaced-repetition scheduling.

Pure functions over `CardState`; persistence lives in `SrsService`.

Tiers move new -> learning -> review -> mature, and `reset` sends a card back
to new:

- again: repetitions 0, interval 1 day, tier learning. A card that had reached
  review or mature also gains a lapse.
- hard/good/easy: repetitions + 1, ease -0.15 (never below 1.3) on hard and
  +0.15 on easy. The interval is 1 day for the first repetition, 6 for the
  second, then ceil(interval * ease). Intervals above the maturity threshold
  make the card mature, anything else is review.

The due date is always midnight UTC today plus the interval.
"""

import math
from datetime import datetime
from typing import Optional

from noteweave.models.annotations import DEFAULT_EASE_FACTOR, MIN_EASE_FACTOR, CardTier
from noteweave.schemas.srs import CardState, Rating
from noteweave.utils import days_from, utcnow

DEFAULT_MATURE_INTERVAL = 21
EASE_STEP = 0.15


class Scheduler:
    def __init__(self, mature_interval: int = DEFAULT_MATURE_INTERVAL):
        self.mature_interval = mature_interval

    def grade(self, state: CardState, rating: Rating, now: Optional[datetime] = None) -> CardState:
        now = now or utcnow()
        rating = Rating(rating)
        new_state = state.model_copy()

        if rating == Rating.AGAIN:
            if state.tier in (CardTier.REVIEW, CardTier.MATURE):
                new_state.lapses = state.lapses + 1
            new_state.repetitions = 0
            new_state.interval = 1
            new_state.tier = CardTier.LEARNING
        else:
            new_state.repetitions = state.repetitions + 1
            if rating == Rating.HARD:
                new_state.ease_factor = max(MIN_EASE_FACTOR, round(state.ease_factor - EASE_STEP, 2))
            elif rating == Rating.EASY:
                new_state.ease_factor = round(state.ease_factor + EASE_STEP, 2)

            if new_state.repetitions <= 1:
                new_state.interval = 1
            elif new_state.repetitions == 2:
                new_state.interval = 6
            else:
                new_state.interval = math.ceil(state.interval * new_state.ease_factor)

            if new_state.interval > self.mature_interval:
                new_state.tier = CardTier.MATURE
            else:
                new_state.tier = CardTier.REVIEW

        new_state.due_date = days_from(now, new_state.interval)
        new_state.last_reviewed_at = now
        return new_state

    def reset(self, state: CardState, now: Optional[datetime] = None) -> CardState:
        now = now or utcnow()
        return state.model_copy(
            update={
                "tier": CardTier.NEW,
                "interval": 0,
                "ease_factor": DEFAULT_EASE_FACTOR,
                "repetitions": 0,
                "lapses": 0,
                "due_date": now,
            }
        )
