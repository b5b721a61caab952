"""
Database - review row I/O

Engine and session helpers plus the caller-side queries used by the drill
integrations. Uses SQLAlchemy ORM; any backend with a SQLAlchemy URL works.

This module handles ONLY database I/O.
Algorithm logic is handled by the scheduler module.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import Iterator, Optional, Type, Union

from loguru import logger
from sqlalchemy import create_engine, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from kstudy import analytics, config
from kstudy.fsrs import adapter
from kstudy.fsrs.constants import CardDirection, DifficultyLevel, Rating
from kstudy.fsrs.memory_state import ReviewState, ensure_utc, utcnow
from kstudy.fsrs.models import REVIEW_MODELS, Base, ReviewRowMixin, VocabularyReview
from kstudy.fsrs.service import ReviewScheduler


ReviewModel = Type[ReviewRowMixin]


def get_engine(url: Optional[str] = None) -> Engine:
    """
    Get a SQLAlchemy engine (one per URL).

    The URL defaults to the current DATABASE_URL / TEST_MODE setting,
    resolved on every call.
    """
    return _create_engine(url or config.get_database_url())


@lru_cache(maxsize=None)
def _create_engine(db_url: str) -> Engine:
    """Build the engine for a URL, with connection pooling for server databases."""
    if db_url.startswith("sqlite"):
        return create_engine(db_url, echo=False)
    return create_engine(
        db_url,
        pool_size=5,           # Keep 5 connections open
        max_overflow=10,       # Allow up to 10 extra connections
        pool_pre_ping=True,    # Verify connections before use
        echo=False
    )


def get_session(url: Optional[str] = None) -> Session:
    """Get a SQLAlchemy session for database operations."""
    SessionLocal = sessionmaker(bind=get_engine(url), expire_on_commit=False)
    return SessionLocal()


@contextmanager
def session_scope(url: Optional[str] = None) -> Iterator[Session]:
    """Session that commits on success and rolls back on error."""
    session = get_session(url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None):
    """
    Initialize database schema if tables don't exist.

    Safe to call multiple times - only creates missing tables.
    """
    engine = engine or get_engine()

    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    expected = {model.__tablename__ for model in REVIEW_MODELS.values()}

    missing = expected - existing_tables
    if missing:
        Base.metadata.create_all(engine)
        logger.info("Created review tables: {}", ", ".join(sorted(missing)))

    # Existing tables must carry the history column
    for table in expected & existing_tables:
        columns = {col["name"] for col in inspector.get_columns(table)}
        if "review_history" not in columns:
            raise RuntimeError(
                f"Table {table} is missing the review_history column. "
                "Please reset or migrate the database."
            )


def reset_db(engine: Optional[Engine] = None):
    """
    DANGEROUS: Delete all review data and recreate tables.

    All review history will be lost!
    """
    engine = engine or get_engine()
    Base.metadata.drop_all(engine)
    logger.info("All review tables dropped")
    init_db(engine)


# ---- Review rows ----

def resolve_model(drill: Union[str, ReviewModel]) -> ReviewModel:
    """Accept a drill name ('vocabulary', ...) or a model class."""
    if isinstance(drill, str):
        try:
            return REVIEW_MODELS[drill]
        except KeyError:
            raise ValueError(f"Unknown drill type: {drill}") from None
    return drill


def load_review(
    session: Session,
    drill: Union[str, ReviewModel],
    user_id: int,
    item_id: int
) -> Optional[ReviewRowMixin]:
    """
    Load a review row.

    Returns:
        The row, or None if the item has no review yet
    """
    model = resolve_model(drill)
    item_column = getattr(model, model.item_column)
    return session.execute(
        select(model).where(model.user_id == user_id, item_column == item_id)
    ).scalar_one_or_none()


def save_review(
    session: Session,
    row: ReviewRowMixin,
    state: ReviewState,
    previous: Optional[ReviewState] = None
) -> ReviewRowMixin:
    """
    Write a ReviewState onto a row and flush it.

    Pass `previous` when `state` was derived from the row, so stored
    history is appended to rather than rewritten.
    """
    adapter.apply_state_to_row(row, state, previous)
    row.next_review_date = ensure_utc(row.next_review_date).astimezone(timezone.utc)
    if row.last_review_date is not None:
        row.last_review_date = ensure_utc(row.last_review_date).astimezone(timezone.utc)
    session.add(row)
    session.flush()
    return row


def create_review(
    session: Session,
    drill: Union[str, ReviewModel],
    user_id: int,
    item_id: int,
    scheduler: ReviewScheduler,
    difficulty_level: Optional[Union[DifficultyLevel, str]] = None,
    now: Optional[datetime] = None
) -> ReviewRowMixin:
    """
    Create the review row for a newly collected item.

    Seeds the state from the user's difficulty pick when given.
    """
    model = resolve_model(drill)
    if difficulty_level:
        state = scheduler.create_state_from_difficulty(difficulty_level, now)
    else:
        state = scheduler.create_initial_state(now)

    row = model(user_id=user_id, is_starred=False)
    row.item_id = item_id
    return save_review(session, row, state)


def rate_review(
    session: Session,
    drill: Union[str, ReviewModel],
    user_id: int,
    item_id: int,
    rating: Union[Rating, int],
    scheduler: ReviewScheduler,
    now: Optional[datetime] = None
) -> ReviewRowMixin:
    """
    Load, update and save a review in one go.

    Raises:
        LookupError: If the item has no review row
        InvalidRating: If the rating is not 1-4 (row left untouched)
    """
    row = load_review(session, drill, user_id, item_id)
    if row is None:
        raise LookupError(f"Review not found for item {item_id}")

    state = adapter.row_to_state(row)
    new_state = scheduler.update_after_rating(state, rating, now)
    return save_review(session, row, new_state, previous=state)


def get_due_reviews(
    session: Session,
    drill: Union[str, ReviewModel],
    user_id: int,
    now: Optional[datetime] = None,
    limit: Optional[int] = None
) -> list[ReviewRowMixin]:
    """
    Get review rows whose due date has passed, earliest first.

    Args:
        limit: Maximum rows (default: FSRS max_reviews_per_day setting)
    """
    model = resolve_model(drill)
    now = ensure_utc(now or utcnow()).astimezone(timezone.utc)
    if limit is None:
        limit = config.load_settings().max_reviews_per_day

    stmt = (
        select(model)
        .where(model.user_id == user_id, model.next_review_date <= now)
        .order_by(model.next_review_date.asc(), model.id.asc())
        .limit(limit)
    )
    return list(session.execute(stmt).scalars())


# ---- Caller metadata ----

def toggle_star(
    session: Session,
    drill: Union[str, ReviewModel],
    user_id: int,
    item_id: int,
    scheduler: ReviewScheduler
) -> ReviewRowMixin:
    """Flip the star flag, creating a default review first if needed."""
    row = load_review(session, drill, user_id, item_id)
    if row is None:
        row = create_review(session, drill, user_id, item_id, scheduler)
    row.is_starred = not bool(row.is_starred)
    session.flush()
    return row


def set_card_direction(
    session: Session,
    user_id: int,
    vocabulary_id: int,
    direction: Union[CardDirection, str]
) -> VocabularyReview:
    """
    Set the vocabulary card direction ('kr-vn' or 'vn-kr').

    Raises:
        ValueError: Unknown direction
        LookupError: No review row for the word
    """
    direction = CardDirection(direction)
    row = load_review(session, VocabularyReview, user_id, vocabulary_id)
    if row is None:
        raise LookupError(f"Review not found for vocabulary {vocabulary_id}")
    row.card_direction = direction.value
    session.flush()
    return row


def get_review_stats(
    session: Session,
    drill: Union[str, ReviewModel],
    user_id: int,
    scheduler: ReviewScheduler,
    now: Optional[datetime] = None
) -> dict:
    """Review statistics for one user and drill type."""
    model = resolve_model(drill)
    rows = list(session.execute(select(model).where(model.user_id == user_id)).scalars())

    stats = analytics.compute_review_stats(
        [adapter.row_to_state(row) for row in rows],
        scheduler=scheduler,
        now=now,
        tz_name=config.get_stats_timezone(),
    )
    result = stats.as_dict()
    result["starredCount"] = sum(1 for row in rows if row.is_starred)
    return result
