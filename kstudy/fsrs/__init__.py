"""
FSRS - Free Spaced Repetition Scheduler

Scheduling engine shared by the vocabulary, translation, listening and
shadowing drills.

This package implements:
- Power-law forgetting curve: R = (1 + FACTOR * t / S) ^ DECAY, R(S, S) = 0.9
- Seed / recall / forgetting update rules (FSRS-5 family, swappable weights)
- Immutable review states with an append-only rating history
- One adapter between drill review rows and review states

Quick start:
    from kstudy import fsrs

    scheduler = fsrs.ReviewScheduler()
    state = scheduler.create_initial_state()

    # Apply a rating (pure, returns a new state)
    state = scheduler.update_after_rating(state, fsrs.Rating.GOOD)

    # "If you rate Good, next review in N days"
    days = scheduler.preview_interval(fsrs.Rating.GOOD)
"""

# Facade
from kstudy.fsrs.service import ReviewScheduler

# Core algorithm
from kstudy.fsrs.scheduler import (
    coerce_rating,
    next_interval_days,
    preview_new_card_interval,
    process_review
)

# Memory state
from kstudy.fsrs.memory_state import (
    HistoryEntry,
    ReviewState,
    calculate_retrievability,
    create_initial_state,
    create_state_from_difficulty,
    get_elapsed_days,
    get_memory_phase
)

# Parameters and configuration
from kstudy.fsrs.parameters import (
    DEFAULT_WEIGHTS,
    ConfigCache,
    FSRSParameters,
    SchedulerConfig
)

# Constants and enums
from kstudy.fsrs.constants import (
    D_MAX,
    D_MIN,
    DECAY,
    FACTOR,
    S_MIN,
    CardDirection,
    DifficultyLevel,
    MemoryPhase,
    Rating
)

# Errors
from kstudy.fsrs.errors import InvalidConfig, InvalidRating, SchedulerError


__all__ = [
    # Facade
    "ReviewScheduler",

    # Core algorithm
    "process_review",
    "next_interval_days",
    "preview_new_card_interval",
    "coerce_rating",

    # Memory state
    "ReviewState",
    "HistoryEntry",
    "calculate_retrievability",
    "create_initial_state",
    "create_state_from_difficulty",
    "get_elapsed_days",
    "get_memory_phase",

    # Parameters
    "FSRSParameters",
    "SchedulerConfig",
    "ConfigCache",
    "DEFAULT_WEIGHTS",

    # Enums
    "Rating",
    "DifficultyLevel",
    "MemoryPhase",
    "CardDirection",

    # Constants
    "DECAY",
    "FACTOR",
    "S_MIN",
    "D_MIN",
    "D_MAX",

    # Errors
    "SchedulerError",
    "InvalidRating",
    "InvalidConfig",
]
