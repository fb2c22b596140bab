from datetime import datetime

import pytest

from conftest import create_note
from smartnotes.api import export
from smartnotes.api.errors import ExportFailed
from smartnotes.api.models import Note


def make_note(**overrides):
    fields = dict(title="Title", content="Body", summary=None, is_pinned=False, is_shared=False, tags=[])
    fields.update(overrides)
    return Note(**fields)


def test_escape_text():
    assert export.escape_text("<script>alert('x') & co</script>") == (
        "&lt;script&gt;alert('x') &amp; co&lt;/script&gt;"
    )
    assert export.escape_text("a\nb\r\nc") == "a<br/>b<br/>c"
    assert export.escape_text(None) == ""


def test_note_sections_escape_user_text():
    note = make_note(
        title="<b>bold</b>",
        content="<script>alert(1)</script>",
        summary="<i>sum</i>",
        tags=["<tag>"],
        is_pinned=True,
        is_shared=True,
        created_at=datetime(2024, 1, 2, 3, 4),
        updated_at=datetime(2024, 1, 3, 3, 4),
    )
    sections = dict(export.note_sections(note))
    markup = "".join(sections.values())
    assert "<script>" not in markup
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in sections["content"]
    assert sections["title"] == "&lt;b&gt;bold&lt;/b&gt;"
    assert sections["summary"] == "&lt;i&gt;sum&lt;/i&gt;"
    assert "&lt;tag&gt;" in sections["tags"]
    assert "Pinned, Shared" in sections["meta"]
    assert "January 03, 2024" in sections["meta"]


def test_note_sections_skip_empty_parts():
    names = [name for name, _ in export.note_sections(make_note())]
    assert names == ["title", "meta", "content"]


@pytest.mark.parametrize(
    "title,expected",
    [
        ("My Note: draft #1", "My_Note_draft_1.pdf"),
        ("  spaced   out  ", "spaced_out.pdf"),
        ("???", "note.pdf"),
        ("Ünïcødé title", "ncd_title.pdf"),
        ("x" * 80, "x" * 50 + ".pdf"),
    ],
)
def test_safe_filename(title, expected):
    assert export.safe_filename(title) == expected


def test_collection_filename():
    assert export.collection_filename(datetime(2024, 5, 6)) == "Smart_Notes_2024-05-06.pdf"


def test_render_pdf_with_markup_like_content():
    sections = export.note_sections(make_note(content="<script>alert(1)</script>\n<unclosed"))
    pdf = export.render_pdf(sections, title="t")
    assert pdf.startswith(b"%PDF-")


class _FailingDoc:
    buffers = []

    def __init__(self, buf, **kwargs):
        self.buffers.append(buf)

    def build(self, story):
        raise RuntimeError("layout exploded")


class _SilentDoc(_FailingDoc):
    def build(self, story):
        pass


def test_render_failure_releases_buffer(monkeypatch):
    _FailingDoc.buffers = []
    monkeypatch.setattr(export, "SimpleDocTemplate", _FailingDoc)
    with pytest.raises(ExportFailed) as excinfo:
        export.render_pdf(export.note_sections(make_note()), title="t")
    assert excinfo.value.error == "layout exploded"
    assert _FailingDoc.buffers[0].closed


def test_empty_render_is_an_error(monkeypatch):
    _SilentDoc.buffers = []
    monkeypatch.setattr(export, "SimpleDocTemplate", _SilentDoc)
    with pytest.raises(ExportFailed):
        export.render_pdf(export.note_sections(make_note()), title="t")
    assert _SilentDoc.buffers[0].closed


def test_export_note_endpoint(client, alice):
    note = create_note(client, alice, title="Meeting: plan", content="<script>x</script>", tags=["work"])
    response = client.get(f"/api/notes/{note['id']}/export", headers=alice.headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="Meeting_plan.pdf"'
    assert response.headers["cache-control"].startswith("no-store")
    assert int(response.headers["content-length"]) == len(response.content)
    assert response.content.startswith(b"%PDF-")


def test_export_missing_note(client, alice):
    response = client.get("/api/notes/999/export", headers=alice.headers)
    assert response.status_code == 404


def test_export_failure_returns_json(client, alice, monkeypatch):
    note = create_note(client, alice)
    monkeypatch.setattr(export, "SimpleDocTemplate", _FailingDoc)
    response = client.get(f"/api/notes/{note['id']}/export", headers=alice.headers)
    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"message": "Failed to export PDF", "error": "layout exploded"}


def test_export_all(client, alice, bob):
    create_note(client, alice, title="one")
    create_note(client, alice, title="two")
    response = client.get("/api/notes/export/all", headers=alice.headers)
    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="Smart_Notes_')
    assert disposition.endswith('.pdf"')
    assert response.content.startswith(b"%PDF-")


def test_export_all_without_notes(client, alice):
    response = client.get("/api/notes/export/all", headers=alice.headers)
    assert response.status_code == 404
    assert response.json()["message"] == "No notes found to export"


def test_export_requires_auth(client):
    assert client.get("/api/notes/export/all").status_code == 401
