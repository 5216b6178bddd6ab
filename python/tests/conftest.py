"""Pytest configuration and fixtures for MentorMind tests.

Test isolation strategy:
- Every test that touches the database gets a fresh in-memory SQLite engine
  with the schema created from the ORM metadata
- Settings and the master-key cache are cleared after every test
- Vendor HTTP is mocked with respx; nothing reaches the network
"""

import os
from collections.abc import Generator
from uuid import UUID

# Test environment, set before any mentormind import reads settings
os.environ.setdefault("MENTORMIND_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MENTORMIND_KEY_ENCRYPTION_KEY", "dGVzdF9tYXN0ZXJfa2V5X2Zvcl9lbmNyeXB0aW9uISE=")
os.environ.setdefault("PLATFORM_INFERENCE_URL", "https://platform.test")
os.environ.setdefault("PLATFORM_KEY_GPT_OSS", "platform-key-gpt-oss")
os.environ.setdefault("PLATFORM_KEY_CLAUDE", "platform-key-claude")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from mentormind.app import add_request_id_middleware, create_app
from mentormind.config import Settings, clear_settings_cache, get_settings
from mentormind.db.engine import create_db_engine
from mentormind.db.models import Base
from mentormind.db.session import create_session_factory
from mentormind.services.crypto import clear_master_key_cache
from tests.helpers import create_test_user_id


@pytest.fixture(autouse=True)
def reset_caches() -> Generator[None, None, None]:
    """Settings and the master key are read fresh by every test."""
    clear_settings_cache()
    clear_master_key_cache()
    yield
    clear_settings_cache()
    clear_master_key_cache()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with the full schema."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(session_factory: sessionmaker[Session]):
    """App bound to the test database, with request-id middleware outermost."""
    app = create_app(session_factory=session_factory)
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Test client; entering the context runs the lifespan (shared httpx client)."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def test_user_id() -> UUID:
    """Generate a random UUID for a test user."""
    return create_test_user_id()
