from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from kstudy.fsrs.database import get_engine, init_db
from kstudy.fsrs.service import ReviewScheduler


@pytest.fixture
def t0():
    """Fixed review clock."""
    return datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler():
    return ReviewScheduler()


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database with the review tables."""
    engine = get_engine(f"sqlite:///{tmp_path / 'reviews.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
