"""
Pytest Configuration and Fixtures
"""

import os
import sys
import pytest
import tempfile
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Settings are read at import time; keep tests off real services and paths
os.environ.setdefault("STATIC_ROOT", tempfile.mkdtemp(prefix="swapvid-static-"))
os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(tempfile.mkdtemp(prefix="swapvid-db-"), "app.db"))
os.environ.setdefault("FAL_KEY", "test-key")

from swapvid.models import Base
from swapvid.models.job import JobModel  # noqa: F401
from swapvid.services.job_store import JobRecordStore


@pytest.fixture
def test_db_path() -> Generator[str, None, None]:
    """Create temporary database file"""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.db', delete=False) as f:
        db_path = f.name
    yield db_path
    # Cleanup
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def test_db_engine(test_db_path: str) -> Generator:
    """Create test database engine"""
    engine = create_engine(
        f"sqlite:///{test_db_path}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_session_factory(test_db_engine):
    """Session factory bound to the test database"""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)


@pytest.fixture
def test_db_session(test_session_factory) -> Generator[Session, None, None]:
    """Create test database session"""
    session = test_session_factory()
    yield session
    session.close()


@pytest.fixture
def job_store(test_db_session) -> JobRecordStore:
    return JobRecordStore(test_db_session)


@pytest.fixture
def pending_job(job_store):
    """A freshly created generation job"""
    return job_store.create(
        user_id="user-1",
        input_video_url="https://cdn.example.com/source.mp4",
        character_image_url="https://cdn.example.com/character.png",
        user_email="user@example.com",
        character_name="Nova",
    )
