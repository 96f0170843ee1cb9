"""
Shared fixtures: file logging off, isolated in-memory database per test.
"""
import os
import tempfile

# Must be set before shiprecon is imported anywhere
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("RUN_SCHEDULER", "false")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite:///" + os.path.join(tempfile.gettempdir(), "shiprecon_test.db"),
)

import pytest
from sqlalchemy.orm import sessionmaker

from shiprecon.models.base import Base, build_engine, init_db


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db(engine):
    """Fresh in-memory SQLite session with all tables created."""
    init_db(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
