"""
Row adapter - maps drill review rows to ReviewState and back.

The only place that knows how review history is stored (JSON text with
camelCase keys). Every drill type uses the same three functions.
"""

from __future__ import annotations

import json
from typing import Optional, Sequence

from loguru import logger
from pydantic import ValidationError

from kstudy.fsrs.constants import DEFAULT_DIFFICULTY
from kstudy.fsrs.memory_state import HistoryEntry, ReviewState, ensure_utc
from kstudy.fsrs.models import ReviewRowMixin
from kstudy.schemas import HistoryEntrySchema, ReviewPayload


def encode_history(history: Sequence[HistoryEntry]) -> str:
    """Serialise history entries to the JSON stored on the row."""
    return json.dumps([_dump_entry(entry) for entry in history])


def _dump_entry(entry: HistoryEntry) -> dict:
    return HistoryEntrySchema.from_entry(entry).model_dump(mode="json", by_alias=True)


def _load_raw_history(raw) -> list:
    """Stored history as a list of raw items ([] if the JSON itself is broken)."""
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except ValueError as exc:
        logger.warning("Discarding unparseable review history: {}", exc)
        return []
    if not isinstance(items, list):
        logger.warning("Discarding review history that is not a list")
        return []
    return items


def decode_history(raw) -> tuple[HistoryEntry, ...]:
    """
    Parse stored history JSON.

    Broken JSON is treated as empty so the item stays reviewable. Entries
    are validated one by one: an entry that cannot be read is skipped for
    scheduling but the others are kept.
    """
    entries = []
    for position, item in enumerate(_load_raw_history(raw)):
        try:
            entries.append(HistoryEntrySchema.model_validate(item).to_entry())
        except ValidationError as exc:
            logger.warning("Skipping unreadable history entry {}: {}", position, exc)
    return tuple(entries)


def append_history(raw, entries: Sequence[HistoryEntry]) -> str:
    """
    Append entries to stored history JSON.

    Stored items are kept verbatim, including ones decode_history skips.
    """
    items = _load_raw_history(raw)
    items.extend(_dump_entry(entry) for entry in entries)
    return json.dumps(items)


def row_to_state(row: ReviewRowMixin) -> ReviewState:
    """Build a ReviewState from any drill review row."""
    return ReviewState(
        stability=row.stability or 0.0,
        difficulty=row.difficulty if row.difficulty is not None else DEFAULT_DIFFICULTY,
        lapses=row.lapses or 0,
        current_interval_days=row.current_interval_days or 0,
        next_review_date=ensure_utc(row.next_review_date),
        last_review_date=ensure_utc(row.last_review_date) if row.last_review_date else None,
        review_history=decode_history(row.review_history),
    )


def apply_state_to_row(
    row: ReviewRowMixin,
    state: ReviewState,
    previous: Optional[ReviewState] = None
) -> ReviewRowMixin:
    """
    Copy every ReviewState field onto the row (metadata columns untouched).

    With `previous` (the state the row was read as), only the entries added
    since then are appended to the stored history.
    """
    row.stability = state.stability
    row.difficulty = state.difficulty
    row.lapses = state.lapses
    row.current_interval_days = state.current_interval_days
    row.next_review_date = state.next_review_date
    row.last_review_date = state.last_review_date
    if previous is None:
        row.review_history = encode_history(state.review_history)
    else:
        added = state.review_history[len(previous.review_history):]
        row.review_history = append_history(row.review_history, added)
    return row


def serialise_review(row: ReviewRowMixin) -> dict:
    """Client-facing JSON shape of a review row."""
    state = row_to_state(row)
    payload = ReviewPayload(
        id=row.id,
        item_id=row.item_id,
        stability=state.stability,
        difficulty=state.difficulty,
        lapses=state.lapses,
        current_interval_days=state.current_interval_days,
        next_review_date=state.next_review_date,
        last_review_date=state.last_review_date,
        card_direction=getattr(row, "card_direction", None),
        is_starred=bool(row.is_starred),
        review_history=[HistoryEntrySchema.from_entry(e) for e in state.review_history],
    )
    data = payload.model_dump(mode="json", by_alias=True)
    if data["cardDirection"] is None:
        del data["cardDirection"]
    return data
