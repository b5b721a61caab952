"""
Review Scheduler - public facade used by the drill integrations.

Composes the state factories, the pure updater and the per-retention config
cache. All four drill types (vocabulary, translation, listening, shadowing)
go through one ReviewScheduler instance.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from kstudy import schemas
from kstudy.fsrs import memory_state, scheduler
from kstudy.fsrs.constants import DifficultyLevel, Rating
from kstudy.fsrs.errors import InvalidConfig
from kstudy.fsrs.parameters import ConfigCache, FSRSParameters, SchedulerConfig


class ReviewScheduler:
    """
    Spaced-repetition scheduler for review states.

    Holds no per-item state. The only thing it keeps between calls is the
    append-only config cache, which can be shared by passing it in.
    """

    def __init__(
        self,
        settings: Optional[schemas.FSRSSettings] = None,
        parameters: Optional[FSRSParameters] = None,
        cache: Optional[ConfigCache] = None,
    ):
        if cache is not None and parameters is not None:
            raise InvalidConfig("Pass parameters or a cache, not both")
        self.settings = settings if settings is not None else schemas.FSRSSettings()
        self.cache = cache if cache is not None else ConfigCache(parameters=parameters)

    def config_for(self, desired_retention: Optional[float] = None) -> SchedulerConfig:
        if desired_retention is None:
            desired_retention = self.settings.desired_retention
        return self.cache.get(desired_retention)

    def create_initial_state(self, now: Optional[datetime] = None) -> memory_state.ReviewState:
        """State for a freshly collected, never-rated item."""
        return memory_state.create_initial_state(now)

    def create_state_from_difficulty(
        self,
        level: Union[DifficultyLevel, str],
        now: Optional[datetime] = None
    ) -> memory_state.ReviewState:
        """State seeded from the difficulty the user picked when collecting."""
        return memory_state.create_state_from_difficulty(level, now)

    def update_after_rating(
        self,
        state: memory_state.ReviewState,
        rating: Union[Rating, int],
        now: Optional[datetime] = None,
        desired_retention: Optional[float] = None
    ) -> memory_state.ReviewState:
        """
        Apply a rating and return the next state.

        Args:
            state: Current ReviewState
            rating: 1=Again, 2=Hard, 3=Good, 4=Easy
            now: Review time (defaults to now)
            desired_retention: Overrides the settings' retention

        Raises:
            InvalidRating: Rating outside 1-4
            InvalidConfig: Retention outside (0, 1)
        """
        rating = scheduler.coerce_rating(rating)
        config = self.config_for(desired_retention)
        now = now if now is not None else memory_state.utcnow()
        return scheduler.process_review(state, rating, now, config)

    def preview_interval(
        self,
        rating: Union[Rating, int],
        desired_retention: Optional[float] = None
    ) -> int:
        """
        Interval in days a brand-new card would get for `rating`.

        Used for "if you rate Good, next review in N days" before committing.
        """
        rating = scheduler.coerce_rating(rating)
        config = self.config_for(desired_retention)
        return scheduler.preview_new_card_interval(rating, config)

    def preview_intervals(
        self,
        state: memory_state.ReviewState,
        now: Optional[datetime] = None,
        desired_retention: Optional[float] = None
    ) -> dict[Rating, int]:
        """Interval each rating would produce for an existing state."""
        config = self.config_for(desired_retention)
        now = now if now is not None else memory_state.utcnow()
        return {
            rating: scheduler.process_review(state, rating, now, config).current_interval_days
            for rating in Rating
        }

    def retrievability(
        self,
        state: memory_state.ReviewState,
        now: Optional[datetime] = None
    ) -> float:
        """Current recall probability of a state (1.0 right after a review)."""
        if state.last_review_date is None:
            return 0.0 if state.is_new else 1.0
        now = now if now is not None else memory_state.utcnow()
        elapsed = memory_state.get_elapsed_days(state.last_review_date, now)
        return memory_state.calculate_retrievability(
            memory_state.effective_stability(state), elapsed
        )
