"""
Shared fixtures: an in-memory SQLite session and a controllable clock.
"""
import os

# Keep the app's own engine away from the working directory's database.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_taskledger_app.db")
os.environ.setdefault("SEED_DEFAULT_SETTINGS", "false")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.infrastructure.database import models  # noqa: F401
from app.infrastructure.database.session import Base
from app.domain.services.context import TodoContext


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 9, 0, 0))


@pytest.fixture
def ctx(db, clock):
    return TodoContext(db, clock=clock)

