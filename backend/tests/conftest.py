"""Test configuration and fixtures."""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from videogen.api.deps import get_prediction_provider, get_status_broadcaster
from videogen.database import Base, get_db
from videogen.exceptions import ProviderError
from videogen.main import app
from videogen.models import GenerationJob
from videogen.services.prediction_provider import Prediction


class FakeProvider:
    """In-memory stand-in for ReplicateClient.

    ``status``/``output``/``error`` describe what the provider reports on
    the next poll; the ``*_error`` attributes make a call raise.
    """

    def __init__(self):
        self.calls: list[tuple[str, object]] = []
        self.next_id = "pred-123"
        self.status = "processing"
        self.output = None
        self.error = None
        self.video_url = None
        self.account = {"type": "user", "username": "tester"}
        self.create_error: Exception | None = None
        self.get_error: Exception | None = None
        self.cancel_error: Exception | None = None
        self.account_error: Exception | None = None
        self.on_create = None
        self.on_get = None
        self.on_cancel = None

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def create_prediction(self, input_data):
        self.calls.append(("create", input_data))
        if self.on_create:
            self.on_create(input_data)
        if self.create_error:
            raise self.create_error
        return Prediction.from_payload({"id": self.next_id, "status": "starting"})

    async def get_prediction(self, prediction_id):
        self.calls.append(("get", prediction_id))
        if self.on_get:
            self.on_get(prediction_id)
        if self.get_error:
            raise self.get_error
        return Prediction.from_payload({
            "id": prediction_id,
            "status": self.status,
            "output": self.output,
            "error": self.error,
        })

    async def get_video_url(self, prediction_id):
        self.calls.append(("video", prediction_id))
        if self.video_url:
            return self.video_url
        raise ProviderError(f"Video not ready. Status: {self.status}")

    async def cancel_prediction(self, prediction_id):
        self.calls.append(("cancel", prediction_id))
        if self.on_cancel:
            self.on_cancel(prediction_id)
        if self.cancel_error:
            raise self.cancel_error
        return Prediction.from_payload({"id": prediction_id, "status": "canceled"})

    async def get_account(self):
        self.calls.append(("account", None))
        if self.account_error:
            raise self.account_error
        return self.account


class RecordingBroadcaster:
    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def publish(self, job):
        self.messages.append((job.id, job.status))


@pytest.fixture
def engine():
    """Shared in-memory SQLite engine (one connection across threads)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    """Create an in-memory SQLite database session for tests."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def job_factory(db_session):
    """Insert a GenerationJob row directly, bypassing the provider."""
    counter = {"n": 0}

    def _make(**overrides) -> GenerationJob:
        counter["n"] += 1
        created = datetime.now(timezone.utc) - timedelta(minutes=10) + timedelta(seconds=counter["n"])
        fields = {
            "prompt": f"prompt {counter['n']}",
            "status": "processing",
            "external_id": f"pred-{counter['n']}",
            "created_at": created,
            "updated_at": created,
        }
        fields.update(overrides)
        job = GenerationJob(**fields)
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        return job

    return _make


@pytest.fixture
def client(db_session, provider, broadcaster):
    """TestClient wired to the in-memory DB, fake provider and recording broadcaster."""
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_prediction_provider] = lambda: provider
    app.dependency_overrides[get_status_broadcaster] = lambda: broadcaster
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
