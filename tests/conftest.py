import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["OPENAI_API_KEY"] = ""
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lissan.config import settings
from lissan.database import Base, get_db
from lissan.main import create_app
from lissan.ratelimit import limiter
from lissan.services.llm_service import get_llm_service


class FakeLLM:
    """Stands in for LLMService; records every prompt it is given"""

    def __init__(self):
        self.calls = []
        self.reply = "This is a test reply."
        self.error = None

    async def complete(self, messages, max_completion_tokens):
        self.calls.append({"messages": messages, "max_completion_tokens": max_completion_tokens})
        if self.error:
            raise self.error
        return self.reply

    @property
    def last_messages(self):
        return self.calls[-1]["messages"]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "upload_path", str(path))
    return path


@pytest.fixture
def app(session_factory, fake_llm, upload_dir):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_service] = lambda: fake_llm
    limiter.reset()
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def events(app):
    """Every domain event published while the test runs"""
    received = []

    async def record(event):
        received.append(event)

    app.state.event_bus.subscribe(record)
    return received


@pytest.fixture
def register(client):
    """Register a company and return its token, API key and auth headers"""

    def _register(name="Acme Trading", email=None, password="secret123"):
        email = email or f"{uuid.uuid4().hex[:10]}@example.com"
        response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
        assert response.status_code == 201, response.text
        data = response.json()
        return {
            "token": data["token"],
            "company": data["company"],
            "api_key": data["company"]["apiKey"],
            "email": email,
            "password": password,
            "headers": {"Authorization": f"Bearer {data['token']}"},
            "widget_headers": {"x-api-key": data["company"]["apiKey"]}
        }

    return _register
