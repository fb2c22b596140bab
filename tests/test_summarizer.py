from types import SimpleNamespace

import pytest
import requests

from conftest import FakeSummarizer, create_note
from smartnotes.api.errors import (
    Misconfigured,
    RateLimited,
    ServiceUnavailable,
    SummarizationFailed,
)
from smartnotes.api.main import app, get_summarizer
from smartnotes.api.summarizer import MAX_INPUT_CHARS, SummarizerClient, build_input


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def make_client(api_key="hf-key"):
    settings = SimpleNamespace(
        summarizer_api_key=api_key,
        summarizer_api_url="https://summarizer.example.com/models/bart",
        summarizer_timeout=5.0,
    )
    return SummarizerClient(settings=settings)


def test_summarize_success(monkeypatch):
    client = make_client()
    seen = {}

    def fake_post(url, json, headers, timeout):
        seen.update(url=url, json=json, headers=headers, timeout=timeout)
        return FakeResponse(payload=[{"summary_text": "  Short.  "}])

    monkeypatch.setattr(client.session, "post", fake_post)
    assert client.summarize("long text") == "Short."
    assert seen["json"]["inputs"] == "long text"
    assert seen["headers"]["Authorization"] == "Bearer hf-key"
    assert seen["timeout"] == 5.0


def test_summarize_accepts_object_payload(monkeypatch):
    client = make_client()
    monkeypatch.setattr(client.session, "post", lambda *a, **k: FakeResponse(payload={"summary_text": "ok"}))
    assert client.summarize("x") == "ok"


def test_missing_key_fails_before_network(monkeypatch):
    client = make_client(api_key="")

    def fake_post(*args, **kwargs):
        raise AssertionError("network must not be called")

    monkeypatch.setattr(client.session, "post", fake_post)
    with pytest.raises(Misconfigured):
        client.summarize("x")


@pytest.mark.parametrize(
    "status,payload,expected",
    [
        (503, {"error": "Model facebook/bart-large-cnn is currently loading", "estimated_time": 20}, ServiceUnavailable),
        (429, {"error": "Rate limit reached"}, RateLimited),
        (401, {"error": "Invalid credentials"}, SummarizationFailed),
        (500, {"error": "boom"}, SummarizationFailed),
        (400, None, SummarizationFailed),
    ],
)
def test_upstream_status_mapping(monkeypatch, status, payload, expected):
    client = make_client()
    monkeypatch.setattr(
        client.session, "post", lambda *a, **k: FakeResponse(status_code=status, payload=payload, text="bad")
    )
    with pytest.raises(expected):
        client.summarize("x")


def test_upstream_error_detail_is_carried(monkeypatch):
    client = make_client()
    monkeypatch.setattr(
        client.session, "post", lambda *a, **k: FakeResponse(status_code=500, payload={"error": "boom"})
    )
    with pytest.raises(SummarizationFailed) as excinfo:
        client.summarize("x")
    assert excinfo.value.error == "boom"


def test_timeout(monkeypatch):
    client = make_client()

    def fake_post(*args, **kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(client.session, "post", fake_post)
    with pytest.raises(SummarizationFailed):
        client.summarize("x")


@pytest.mark.parametrize("payload", [[], [{}], {"summary_text": ""}, "text", None])
def test_malformed_success_payload(monkeypatch, payload):
    client = make_client()
    monkeypatch.setattr(client.session, "post", lambda *a, **k: FakeResponse(payload=payload))
    with pytest.raises(SummarizationFailed):
        client.summarize("x")


def test_build_input_truncates():
    note = SimpleNamespace(title="T", content="x" * (MAX_INPUT_CHARS * 2))
    text = build_input(note)
    assert text.startswith("T\n\n")
    assert len(text) == MAX_INPUT_CHARS


def test_summarize_endpoint_calls_upstream_once(client, alice, summarizer):
    note = create_note(client, alice, title="Title", content="Body")
    url = f"/api/notes/{note['id']}/summarize"

    first = client.post(url, headers=alice.headers)
    assert first.status_code == 200
    assert first.json() == {"message": "Note summarized successfully", "summary": "A short summary."}

    summarizer.summary = "A different summary."
    second = client.post(url, headers=alice.headers)
    assert second.status_code == 200
    assert second.json() == {"message": "Note already summarized", "summary": "A short summary."}

    assert summarizer.calls == ["Title\n\nBody"]
    stored = client.get(f"/api/notes/{note['id']}", headers=alice.headers).json()
    assert stored["summary"] == "A short summary."


@pytest.mark.parametrize(
    "error,status",
    [
        (ServiceUnavailable("AI model is currently loading."), 503),
        (RateLimited("Rate limit exceeded."), 429),
        (SummarizationFailed("Failed", error="upstream detail"), 500),
    ],
)
def test_summarize_endpoint_failures_leave_summary_empty(client, alice, error, status):
    fake = FakeSummarizer(error=error)
    app.dependency_overrides[get_summarizer] = lambda: fake
    note = create_note(client, alice)

    response = client.post(f"/api/notes/{note['id']}/summarize", headers=alice.headers)
    assert response.status_code == status
    assert response.json()["message"] == error.message

    stored = client.get(f"/api/notes/{note['id']}", headers=alice.headers).json()
    assert stored["summary"] is None


def test_summarize_endpoint_without_api_key(client, alice):
    note = create_note(client, alice)
    response = client.post(f"/api/notes/{note['id']}/summarize", headers=alice.headers)
    assert response.status_code == 500
    assert response.json()["error"] == "SUMMARIZER_API_KEY missing"


def test_summarize_other_users_note(client, alice, bob, summarizer):
    note = create_note(client, alice)
    response = client.post(f"/api/notes/{note['id']}/summarize", headers=bob.headers)
    assert response.status_code == 404
    assert summarizer.calls == []


def test_summary_counts_in_stats(client, alice, summarizer):
    note = create_note(client, alice)
    client.post(f"/api/notes/{note['id']}/summarize", headers=alice.headers)
    stats = client.get("/api/notes/stats", headers=alice.headers).json()
    assert stats["totalSummarized"] == 1
