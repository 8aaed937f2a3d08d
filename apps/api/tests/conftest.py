import os

os.environ.setdefault("AUTH_MODE", "none")
os.environ.setdefault("INTERNAL_ADMIN_TOKEN", "test-admin-token")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import get_db
from app.main import app
from app.models.base import Base
from app.models import entities  # noqa: F401
from app.services.notifications import get_notification_emitter


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class RecordingEmitter:
    def __init__(self):
        self.events = []

    def emit(self, subject, payload):
        self.events.append((subject, payload))

    def subjects(self):
        return [subject for subject, _ in self.events]


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def emitter():
    recorder = RecordingEmitter()
    app.dependency_overrides[get_notification_emitter] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(get_notification_emitter, None)


@pytest.fixture
def client(emitter):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
