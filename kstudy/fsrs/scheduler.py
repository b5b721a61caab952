"""
Scheduler - FSRS Algorithm Logic

Pure FSRS scheduling and state updates (no database calls).

Main workflow:
1. Validate the rating
2. Calculate elapsed time and retrievability before the rating
3. Derive the memory phase
4. Apply the seed or recall/forgetting update rules
5. Compute the next interval from the new stability
6. Return a new ReviewState with one more history entry

This module handles ONLY the algorithm logic.
Loading and saving review rows is the caller's job.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from loguru import logger

from kstudy.fsrs import memory_state, updates
from kstudy.fsrs.constants import (
    DECAY,
    DEFAULT_DIFFICULTY,
    FACTOR,
    MemoryPhase,
    Rating,
)
from kstudy.fsrs.errors import InvalidRating
from kstudy.fsrs.parameters import SchedulerConfig


def coerce_rating(rating) -> Rating:
    """
    Validate a caller-supplied rating.

    Raises:
        InvalidRating: For anything other than an integer 1-4
    """
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRating(rating)
    try:
        return Rating(rating)
    except ValueError:
        raise InvalidRating(rating) from None


def next_interval_days(stability: float, config: SchedulerConfig) -> int:
    """
    Days until retrievability falls to the desired retention.

    Formula (inverse of the forgetting curve):
        t = S / FACTOR * (r^(1/DECAY) - 1)

    Rounded to whole days, clipped to [1, maximum_interval].
    """
    interval = stability / FACTOR * (config.desired_retention ** (1 / DECAY) - 1)
    return int(max(1, min(config.maximum_interval, round(interval))))


def process_review(
    state: memory_state.ReviewState,
    rating,
    now: datetime,
    config: SchedulerConfig
) -> memory_state.ReviewState:
    """
    Apply one rating to a review state.

    Pure function of its arguments: the input state is left untouched.

    Args:
        state: Current ReviewState (new or already reviewed)
        rating: User rating 1-4
        now: Review timestamp
        config: Scheduler configuration (weights, retention, limits)

    Returns:
        Updated ReviewState

    Raises:
        InvalidRating: If the rating is not 1-4 (nothing is computed)
    """
    rating = coerce_rating(rating)
    now = memory_state.ensure_utc(now)
    params = config.parameters

    phase = memory_state.get_memory_phase(state)

    # Values recorded as "before" in the history entry
    stability_before = state.stability if state.stability > 0 else 0.0
    difficulty_before = state.difficulty or DEFAULT_DIFFICULTY

    if phase == MemoryPhase.NEW:
        retrievability_before = 1.0
        new_stability, new_difficulty = updates.apply_new_card_update(params, rating)
    else:
        stability_used = memory_state.effective_stability(state)
        if state.last_review_date is not None:
            elapsed_days = memory_state.get_elapsed_days(state.last_review_date, now)
            retrievability_used = memory_state.calculate_retrievability(
                stability_used, elapsed_days
            )
        else:
            retrievability_used = 1.0

        # Fallback rows still record R=1, nothing was known about them
        retrievability_before = retrievability_used if state.stability > 0 else 1.0

        new_stability, new_difficulty = updates.apply_review_update(
            params,
            stability=stability_used,
            difficulty=difficulty_before,
            retrievability=retrievability_used,
            rating=rating,
        )

    if rating == Rating.AGAIN:
        lapses = state.lapses + 1
        interval_days = 0
        next_review_date = now + config.relearning_step
    else:
        lapses = state.lapses
        interval_days = next_interval_days(new_stability, config)
        next_review_date = now + timedelta(days=interval_days)

    entry = memory_state.HistoryEntry(
        date=now,
        rating=rating,
        stability_before=stability_before,
        stability_after=new_stability,
        difficulty_before=difficulty_before,
        difficulty_after=new_difficulty,
        retrievability=retrievability_before,
    )

    logger.debug(
        "Rated {} in phase {}: S {:.3f} -> {:.3f}, D {:.3f} -> {:.3f}, R={:.3f}, interval={}d",
        rating.name,
        phase.value,
        stability_before,
        new_stability,
        difficulty_before,
        new_difficulty,
        retrievability_before,
        interval_days,
    )

    return memory_state.ReviewState(
        stability=new_stability,
        difficulty=new_difficulty,
        lapses=lapses,
        current_interval_days=interval_days,
        next_review_date=next_review_date,
        last_review_date=now,
        review_history=state.review_history + (entry,),
    )


def preview_new_card_interval(
    rating,
    config: SchedulerConfig,
    now: Optional[datetime] = None
) -> int:
    """
    Interval a brand-new card would get for a rating.

    Runs the updater on a synthetic never-reviewed state and discards it.
    """
    now = memory_state.ensure_utc(now) if now is not None else memory_state.utcnow()
    card = memory_state.create_initial_state(now)
    return process_review(card, rating, now, config).current_interval_days
