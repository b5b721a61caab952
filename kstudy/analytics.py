"""
Review statistics for drill dashboards.

Built from ReviewState values (history included), so every drill type is
summarised the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Sequence

import pandas as pd

from kstudy.fsrs.constants import Rating
from kstudy.fsrs.memory_state import ReviewState, ensure_utc, utcnow

if TYPE_CHECKING:
    from kstudy.fsrs.service import ReviewScheduler


HISTORY_COLUMNS = ["item", "date", "rating", "stability_after", "retrievability"]


@dataclass(frozen=True)
class ReviewStats:
    """
    Snapshot counts for one user and drill type.
    """
    total: int
    due: int
    new: int
    lapsed: int
    reviewed_today: int
    difficult_today: int
    average_retrievability: Optional[float]

    def as_dict(self) -> dict:
        return {
            "totalReviews": self.total,
            "dueToday": self.due,
            "newCount": self.new,
            "lapsedCount": self.lapsed,
            "reviewedToday": self.reviewed_today,
            "difficultCount": self.difficult_today,
            "averageRetrievability": self.average_retrievability,
        }


def history_frame(states: Sequence[ReviewState]) -> pd.DataFrame:
    """
    Flatten review histories into one row per rating.

    `item` is the position of the state in `states`.
    """
    records = [
        {
            "item": index,
            "date": ensure_utc(entry.date),
            "rating": int(entry.rating),
            "stability_after": entry.stability_after,
            "retrievability": entry.retrievability,
        }
        for index, state in enumerate(states)
        for entry in state.review_history
    ]
    if not records:
        return pd.DataFrame(columns=HISTORY_COLUMNS)

    frame = pd.DataFrame.from_records(records, columns=HISTORY_COLUMNS)
    frame["date"] = pd.to_datetime(frame["date"], utc=True)
    return frame


def _local_days(frame: pd.DataFrame, tz_name: str) -> pd.Series:
    return frame["date"].dt.tz_convert(tz_name).dt.date


def daily_review_counts(states: Sequence[ReviewState], tz_name: str = "UTC") -> pd.Series:
    """
    Ratings per local calendar day, with empty days filled with 0.
    """
    frame = history_frame(states)
    if frame.empty:
        return pd.Series(dtype="int64")

    days = pd.to_datetime(_local_days(frame, tz_name))
    counts = days.value_counts().sort_index()
    full_index = pd.date_range(start=counts.index.min(), end=counts.index.max(), freq="D")
    return counts.reindex(full_index, fill_value=0).astype("int64")


def compute_review_stats(
    states: Sequence[ReviewState],
    scheduler: "ReviewScheduler",
    now: Optional[datetime] = None,
    tz_name: str = "UTC"
) -> ReviewStats:
    """
    Summarise a user's review states.

    "Today" is the calendar day of `now` in `tz_name`. An item counts as
    difficult today if it was rated Again or Hard at least once that day.
    """
    now = ensure_utc(now) if now is not None else utcnow()

    due = sum(1 for state in states if ensure_utc(state.next_review_date) <= now)
    new = sum(1 for state in states if state.is_new)
    lapsed = sum(1 for state in states if state.lapses > 0)

    reviewed = [state for state in states if not state.is_new]
    average = None
    if reviewed:
        average = sum(scheduler.retrievability(s, now) for s in reviewed) / len(reviewed)

    frame = history_frame(states)
    reviewed_today = 0
    difficult_today = 0
    if not frame.empty:
        today = pd.Timestamp(now).tz_convert(tz_name).date()
        todays = frame[_local_days(frame, tz_name) == today]
        reviewed_today = int(todays["item"].nunique())
        difficult = todays[todays["rating"].isin([int(Rating.AGAIN), int(Rating.HARD)])]
        difficult_today = int(difficult["item"].nunique())

    return ReviewStats(
        total=len(states),
        due=due,
        new=new,
        lapsed=lapsed,
        reviewed_today=reviewed_today,
        difficult_today=difficult_today,
        average_retrievability=average,
    )
