"""
Memory State - Review State and Retrievability

Defines the persisted-shape review state and the derived quantities.

Key concepts:
- Stability (S): Days until recall probability decays to 90%
- Difficulty (D): How hard the item is to remember (1-10 scale)
- Retrievability (R): Probability of successful recall at time t
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from kstudy.fsrs.constants import (
    DECAY,
    DEFAULT_DIFFICULTY,
    DIFFICULTY_SEEDS,
    FACTOR,
    FALLBACK_STABILITY,
    DifficultyLevel,
    MemoryPhase,
    Rating,
)
from kstudy.fsrs.errors import InvalidConfig


SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class HistoryEntry:
    """One applied rating. Immutable once appended."""
    date: datetime
    rating: Rating
    stability_before: float
    stability_after: float
    difficulty_before: float
    difficulty_after: float
    retrievability: float  # Recall probability just before the rating


@dataclass(frozen=True)
class ReviewState:
    """
    Memory state for one learning item of one user.

    Never mutated: the updater returns a new value for every rating.
    """
    stability: float  # S, in days (0 only before the first rating)
    difficulty: float  # D, range 1-10
    lapses: int  # Number of "Again" ratings ever applied
    current_interval_days: int  # Last scheduled gap, informational
    next_review_date: datetime
    last_review_date: Optional[datetime] = None
    review_history: tuple[HistoryEntry, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any sequence from callers, store an immutable one
        if not isinstance(self.review_history, tuple):
            object.__setattr__(self, "review_history", tuple(self.review_history))

    @property
    def is_new(self) -> bool:
        return self.stability <= 0 and not self.review_history

    @property
    def reps(self) -> int:
        return len(self.review_history)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def calculate_retrievability(stability: float, elapsed_days: float) -> float:
    """
    Calculate retrievability using the power forgetting curve.

    Formula: R = (1 + FACTOR * t / S) ^ DECAY

    FACTOR is chosen so that R(t=S) = 0.9 exactly.

    Args:
        stability: Current stability in days
        elapsed_days: Time since last review in days

    Returns:
        Retrievability between 0 and 1 (0 when there is no memory trace)
    """
    if stability <= 0:
        return 0.0

    elapsed_days = max(0.0, elapsed_days)
    retrievability = (1 + FACTOR * elapsed_days / stability) ** DECAY
    return max(0.0, min(1.0, retrievability))


def get_elapsed_days(last_review_date: Optional[datetime], now: datetime) -> float:
    """
    Calculate fractional days since the last review.

    Returns:
        Elapsed days, never negative (0 if never reviewed)
    """
    if last_review_date is None:
        return 0.0

    delta = ensure_utc(now) - ensure_utc(last_review_date)
    return max(0.0, delta.total_seconds() / SECONDS_PER_DAY)


def effective_stability(state: ReviewState) -> float:
    """
    Stability the model works with.

    Rows that were rated but never got a stability written use
    FALLBACK_STABILITY, so they decay and update like a young card.
    """
    if state.stability > 0 or not state.review_history:
        return max(0.0, state.stability)
    return FALLBACK_STABILITY


def get_memory_phase(state: ReviewState) -> MemoryPhase:
    """
    Derive the memory phase of a state.

    - NEW: never rated
    - RELEARNING: has lapsed and the latest rating was "Again"
    - REVIEW: everything else
    """
    if state.is_new:
        return MemoryPhase.NEW

    if (
        state.lapses > 0
        and state.review_history
        and state.review_history[-1].rating == Rating.AGAIN
    ):
        return MemoryPhase.RELEARNING

    return MemoryPhase.REVIEW


def create_initial_state(now: Optional[datetime] = None) -> ReviewState:
    """
    Build the state of a newly collected item that has never been rated.

    The first review is scheduled for one day later.
    """
    now = ensure_utc(now) if now is not None else utcnow()

    return ReviewState(
        stability=0.0,
        difficulty=DEFAULT_DIFFICULTY,
        lapses=0,
        current_interval_days=1,
        next_review_date=now + timedelta(days=1),
        last_review_date=None,
        review_history=(),
    )


def create_state_from_difficulty(
    level: Union[DifficultyLevel, str],
    now: Optional[datetime] = None
) -> ReviewState:
    """
    Build a pre-seeded state from the user's self-reported difficulty.

    Maps: very_easy -> 14d, easy -> 7d, medium -> 3d, hard -> 1d.
    A single synthetic history entry is recorded at `now`.

    Args:
        level: DifficultyLevel or its string value
        now: Collection time (defaults to now)

    Returns:
        Seeded ReviewState

    Raises:
        InvalidConfig: If the level is unknown
    """
    try:
        level = DifficultyLevel(level)
    except ValueError:
        raise InvalidConfig(f"Unknown difficulty level: {level!r}") from None

    now = ensure_utc(now) if now is not None else utcnow()
    rating, interval_days, stability, difficulty = DIFFICULTY_SEEDS[level]

    entry = HistoryEntry(
        date=now,
        rating=rating,
        stability_before=0.0,
        stability_after=stability,
        difficulty_before=DEFAULT_DIFFICULTY,
        difficulty_after=difficulty,
        retrievability=1.0,
    )

    return ReviewState(
        stability=stability,
        difficulty=difficulty,
        lapses=0,
        current_interval_days=interval_days,
        next_review_date=now + timedelta(days=interval_days),
        last_review_date=now,
        review_history=(entry,),
    )
