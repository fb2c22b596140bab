import os
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext

# Configure before the app modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["SUMMARIZER_API_KEY"] = ""
os.environ["PUBLIC_BASE_URL"] = "http://frontend.example.com"

from smartnotes.api import auth  # noqa: E402
from smartnotes.api.database import SessionLocal, engine  # noqa: E402
from smartnotes.api.main import app, get_summarizer  # noqa: E402
from smartnotes.api.models import Base  # noqa: E402
from smartnotes.api.notes import NoteService  # noqa: E402

# Cheap hashes keep the suite fast
auth.pwd_context = CryptContext(schemes=["bcrypt"], bcrypt__rounds=4)


class FakeSummarizer:
    """Stands in for SummarizerClient and records every external call."""

    def __init__(self, summary="A short summary.", error=None):
        self.summary = summary
        self.error = error
        self.calls = []

    def summarize(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.summary


@pytest.fixture(autouse=True)
def fresh_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def service(db):
    return NoteService(db)


@pytest.fixture()
def summarizer():
    fake = FakeSummarizer()
    app.dependency_overrides[get_summarizer] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_summarizer, None)


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register(client, name="Alice", email="alice@example.com", password="secret123"):
    response = client.post(
        "/api/auth/register", json={"name": name, "email": email, "password": password}
    )
    assert response.status_code == 201, response.text
    data = response.json()
    return SimpleNamespace(id=data["id"], headers={"Authorization": f"Bearer {data['token']}"})


@pytest.fixture()
def alice(client):
    return register(client)


@pytest.fixture()
def bob(client):
    return register(client, name="Bob", email="bob@example.com")


def create_note(client, user, title="T", content="C", tags=None):
    body = {"title": title, "content": content}
    if tags is not None:
        body["tags"] = tags
    response = client.post("/api/notes", json=body, headers=user.headers)
    assert response.status_code == 201, response.text
    return response.json()
