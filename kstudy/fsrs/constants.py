"""
FSRS Constants and Parameters

Enums, curve constants and bounds shared by every part of the scheduler.
The weight table lives in parameters.py so it can be swapped per scheduler.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum, IntEnum


# ---- Ratings ----

class Rating(IntEnum):
    """User self-rating after a review."""
    AGAIN = 1  # Forgotten (lapse)
    HARD = 2   # Recalled with serious effort
    GOOD = 3   # Recalled normally
    EASY = 4   # Recalled fluently


class DifficultyLevel(str, Enum):
    """Self-reported difficulty chosen when an item is collected."""
    VERY_EASY = "very_easy"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class MemoryPhase(str, Enum):
    """Which update formula family applies to a state."""
    NEW = "new"
    REVIEW = "review"
    RELEARNING = "relearning"


class CardDirection(str, Enum):
    """Vocabulary card direction. Caller metadata, ignored by the scheduler."""
    KR_VN = "kr-vn"
    VN_KR = "vn-kr"


# ---- Forgetting curve ----
# R(t, S) = (1 + FACTOR * t / S) ** DECAY, so that R(S, S) == 0.9

DECAY = -0.5
FACTOR = 0.9 ** (1 / DECAY) - 1


# ---- Bounds ----

S_MIN = 0.01     # Minimum stability (days) for any reviewed card
D_MIN = 1.0      # Minimum difficulty
D_MAX = 10.0     # Maximum difficulty


# ---- Defaults ----

DEFAULT_DIFFICULTY = 5.0
DEFAULT_DESIRED_RETENTION = 0.9
RETENTION_FLOOR = 0.5
RETENTION_CEILING = 0.97
MAXIMUM_INTERVAL = 36500  # days
RELEARNING_STEP = timedelta(minutes=10)

# Pre-update stability for rows that carry history but lost their stability
FALLBACK_STABILITY = 3.0


# ---- Difficulty seed table ----
# level -> (equivalent rating, interval days, stability, difficulty)

DIFFICULTY_SEEDS = {
    DifficultyLevel.VERY_EASY: (Rating.EASY, 14, 14.0, 1.0),
    DifficultyLevel.EASY: (Rating.GOOD, 7, 7.0, 3.0),
    DifficultyLevel.MEDIUM: (Rating.HARD, 3, 3.0, 5.0),
    DifficultyLevel.HARD: (Rating.AGAIN, 1, 1.0, 7.0),
}
