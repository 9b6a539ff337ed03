import os
import random

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the module-level engine off the working directory during tests.
os.environ.setdefault("DISTEST_DATABASE_URL", "sqlite:///:memory:")

from distest.database import Base
from distest.main import app
import distest.models  # noqa: F401
from distest.services.participant_session import Participant
from distest.services.session_manager import (
    ParticipantSessionManager,
    get_session_manager,
)
from distest.store.sql_store import SqlReplicaStore

TEST_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FirstChoiceRandom(random.Random):
    """Deterministic stand-in: ``choice`` takes the first element."""

    def choice(self, seq):
        return seq[0]

    def random(self):
        return 0.5


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def create_test_tables():
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function")
def db_session(create_test_tables):
    """
    Provides a transactional database session for a test.
    Commits issued by the store stay inside the outer transaction, which is
    rolled back afterwards.
    """
    connection = engine.connect()
    transaction = connection.begin()
    db = TestingSessionLocal(bind=connection)
    try:
        yield db
    finally:
        db.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def make_store(db_session: Session):
    def _factory(namespace: str = "dotVoting.test", **kwargs) -> SqlReplicaStore:
        return SqlReplicaStore(db_session, namespace, **kwargs)

    return _factory


@pytest.fixture
def store(make_store) -> SqlReplicaStore:
    return make_store(clean=True)


@pytest.fixture
def make_participant(store: SqlReplicaStore):
    def _factory(name: str = "admin", **kwargs) -> Participant:
        kwargs.setdefault("clean", True)
        kwargs.setdefault("admin", True)
        kwargs.setdefault("rng", FirstChoiceRandom())
        kwargs.setdefault("randomize_display_order", False)
        return Participant(kwargs.pop("store", store), name, **kwargs)

    return _factory


@pytest.fixture
def session_manager(db_session: Session) -> ParticipantSessionManager:
    def _participant_factory(*args, **kwargs) -> Participant:
        kwargs.setdefault("rng", FirstChoiceRandom())
        kwargs.setdefault("randomize_display_order", False)
        return Participant(*args, **kwargs)

    manager = ParticipantSessionManager(
        lambda: db_session, participant_factory=_participant_factory
    )
    yield manager
    manager.participant = None


@pytest.fixture(scope="function")
def client(session_manager: ParticipantSessionManager, tmp_path, monkeypatch):
    """Provides a TestClient bound to an isolated session manager."""
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    app.dependency_overrides[get_session_manager] = lambda: session_manager
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_session_manager, None)
