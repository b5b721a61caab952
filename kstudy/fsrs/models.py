"""
SQLAlchemy ORM Models for review rows

One table per drill type, all sharing the same review columns so a single
adapter can map any of them to a ReviewState and back.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

from kstudy.fsrs.constants import DEFAULT_DIFFICULTY, CardDirection

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class ReviewRowMixin:
    """Columns common to every drill review table."""

    # Name of the column that points at the reviewed item
    item_column = None

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)

    # Memory state
    stability = Column(Float, nullable=False, default=0.0)  # 0 until first rating
    difficulty = Column(Float, nullable=False, default=DEFAULT_DIFFICULTY)  # 1-10
    lapses = Column(Integer, nullable=False, default=0)
    current_interval_days = Column(Integer, nullable=False, default=1)
    next_review_date = Column(DateTime(timezone=True), nullable=False, index=True)
    last_review_date = Column(DateTime(timezone=True), nullable=True)

    # JSON array of history entries (camelCase keys)
    review_history = Column(Text, nullable=False, default="[]")

    # Caller metadata, not interpreted by the scheduler
    is_starred = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @property
    def item_id(self):
        return getattr(self, self.item_column)

    @item_id.setter
    def item_id(self, value):
        setattr(self, self.item_column, value)

    def __repr__(self):
        return f"<{type(self).__name__}(id={self.id}, user={self.user_id}, item={self.item_id})>"


class VocabularyReview(ReviewRowMixin, Base):
    """Review state of a collected vocabulary word."""
    __tablename__ = "vocabulary_reviews"
    __table_args__ = (UniqueConstraint("user_id", "vocabulary_id"),)

    item_column = "vocabulary_id"
    vocabulary_id = Column(Integer, nullable=False)

    # 'kr-vn' or 'vn-kr'
    card_direction = Column(String(12), nullable=False, default=CardDirection.KR_VN.value)


class TranslationReview(ReviewRowMixin, Base):
    """Review state of a translation drill card."""
    __tablename__ = "translation_reviews"
    __table_args__ = (UniqueConstraint("user_id", "translation_card_id"),)

    item_column = "translation_card_id"
    translation_card_id = Column(Integer, nullable=False)


class ListeningReview(ReviewRowMixin, Base):
    """Review state of a listening drill card."""
    __tablename__ = "listening_reviews"
    __table_args__ = (UniqueConstraint("user_id", "listening_card_id"),)

    item_column = "listening_card_id"
    listening_card_id = Column(Integer, nullable=False)


class ShadowingReview(ReviewRowMixin, Base):
    """Review state of a shadowing drill card."""
    __tablename__ = "shadowing_reviews"
    __table_args__ = (UniqueConstraint("user_id", "shadowing_card_id"),)

    item_column = "shadowing_card_id"
    shadowing_card_id = Column(Integer, nullable=False)


REVIEW_MODELS = {
    "vocabulary": VocabularyReview,
    "translation": TranslationReview,
    "listening": ListeningReview,
    "shadowing": ShadowingReview,
}
