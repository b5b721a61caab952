"""
Pydantic models for review persistence and settings.

These models define the JSON shape of review history stored on drill rows,
the client-facing review payload, and the scheduler settings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kstudy.fsrs.constants import DEFAULT_DESIRED_RETENTION, DEFAULT_DIFFICULTY, Rating
from kstudy.fsrs.memory_state import HistoryEntry, ensure_utc


# ---- Settings ----

class FSRSSettings(BaseModel):
    """Per-deployment scheduler settings."""
    model_config = ConfigDict(frozen=True)

    max_reviews_per_day: int = Field(50, ge=1, description="Due items returned per query")
    new_cards_per_day: int = Field(20, ge=0, description="New items introduced per day")
    desired_retention: float = Field(
        DEFAULT_DESIRED_RETENTION, gt=0, lt=1, description="Target recall probability"
    )


# ---- Review history ----

class HistoryEntrySchema(BaseModel):
    """
    One entry of the review_history JSON column (camelCase on disk).

    Date and rating are required. Older or hand-edited rows may lack the
    before/after values: missing "before" values take the initial state's
    and missing "after" values copy the "before" ones. Retrievability is
    clamped into [0, 1].
    """
    model_config = ConfigDict(populate_by_name=True)

    date: datetime
    rating: int = Field(..., ge=1, le=4)
    stability_before: float = Field(0.0, alias="stabilityBefore")
    stability_after: Optional[float] = Field(None, alias="stabilityAfter")
    difficulty_before: float = Field(DEFAULT_DIFFICULTY, alias="difficultyBefore")
    difficulty_after: Optional[float] = Field(None, alias="difficultyAfter")
    retrievability: float = Field(1.0, ge=0, le=1)

    @field_validator("retrievability", mode="before")
    @classmethod
    def clamp_retrievability(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0.0, min(1.0, float(value)))
        return value

    @model_validator(mode="after")
    def fill_after_values(self) -> "HistoryEntrySchema":
        if self.stability_after is None:
            self.stability_after = self.stability_before
        if self.difficulty_after is None:
            self.difficulty_after = self.difficulty_before
        return self

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "HistoryEntrySchema":
        return cls(
            date=entry.date,
            rating=int(entry.rating),
            stability_before=entry.stability_before,
            stability_after=entry.stability_after,
            difficulty_before=entry.difficulty_before,
            difficulty_after=entry.difficulty_after,
            retrievability=entry.retrievability,
        )

    def to_entry(self) -> HistoryEntry:
        return HistoryEntry(
            date=ensure_utc(self.date),
            rating=Rating(self.rating),
            stability_before=self.stability_before,
            stability_after=self.stability_after,
            difficulty_before=self.difficulty_before,
            difficulty_after=self.difficulty_after,
            retrievability=self.retrievability,
        )


# ---- Client payload ----

class ReviewPayload(BaseModel):
    """Review row as returned to the client."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    item_id: Optional[int] = Field(None, alias="itemId")
    stability: float
    difficulty: float
    lapses: int
    current_interval_days: int = Field(..., alias="currentIntervalDays")
    next_review_date: datetime = Field(..., alias="nextReviewDate")
    last_review_date: Optional[datetime] = Field(None, alias="lastReviewDate")
    card_direction: Optional[str] = Field(None, alias="cardDirection")
    is_starred: bool = Field(False, alias="isStarred")
    review_history: list[HistoryEntrySchema] = Field(default_factory=list, alias="reviewHistory")
