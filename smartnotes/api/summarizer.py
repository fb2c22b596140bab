"""
AI summaries for notes via a hosted summarization model.

The summary is a set-once field: a note that already has one is answered
from storage and the external API is not called again. Upstream failures
never leave placeholder text behind; the summary stays empty.
"""

import logging
from typing import Any, Optional, Tuple

import requests
from sqlalchemy import update

from smartnotes.api.config import Settings, get_settings
from smartnotes.api.errors import (
    Misconfigured,
    NotesError,
    RateLimited,
    ServiceUnavailable,
    SummarizationFailed,
)
from smartnotes.api.models import Note, utcnow
from smartnotes.api.notes import NoteService

logger = logging.getLogger(__name__)

MAX_INPUT_CHARS = 4000


class SummarizerClient:
    """Thin client for a Hugging Face style `{"inputs": ...}` summarization endpoint."""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()

    def summarize(self, text: str) -> str:
        """
        Return a summary of `text`.

        Raises:
            Misconfigured before any network call when no API key is set.
            ServiceUnavailable while the remote model is loading (retry later).
            RateLimited when the provider throttles the caller.
            SummarizationFailed for everything else.
        """
        api_key = self.settings.summarizer_api_key
        if not api_key:
            raise Misconfigured(
                "AI summarization not available. Please configure SUMMARIZER_API_KEY.",
                error="SUMMARIZER_API_KEY missing",
            )
        try:
            response = self.session.post(
                self.settings.summarizer_api_url,
                json={"inputs": text, "parameters": {"min_length": 30, "max_length": 150}},
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=self.settings.summarizer_timeout,
            )
        except requests.Timeout as exc:
            raise SummarizationFailed("Summarization request timed out", error=str(exc)) from exc
        except requests.RequestException as exc:
            raise SummarizationFailed("Failed to reach summarization service", error=str(exc)) from exc

        if response.status_code >= 400:
            self._raise_for_status(response)
        return self._extract_summary(response)

    def _raise_for_status(self, response: requests.Response) -> None:
        status = response.status_code
        detail = _error_detail(response)
        if status == 503:
            raise ServiceUnavailable(
                "AI model is currently loading. Please try again in 1-2 minutes.",
                error=detail or "Model loading",
            )
        if status == 429:
            raise RateLimited("Rate limit exceeded. Please try again later.", error=detail)
        if status in (401, 403):
            raise SummarizationFailed(
                "Invalid API key. Please check the summarization configuration.", error=detail
            )
        raise SummarizationFailed(
            f"Summarization service error (HTTP {status})", error=detail or "Unknown error"
        )

    def _extract_summary(self, response: requests.Response) -> str:
        try:
            data: Any = response.json()
        except ValueError as exc:
            raise SummarizationFailed("Malformed response from summarization service", error=str(exc)) from exc
        if isinstance(data, list) and data:
            data = data[0]
        summary = data.get("summary_text") if isinstance(data, dict) else None
        if not isinstance(summary, str) or not summary.strip():
            raise SummarizationFailed(
                "Malformed response from summarization service", error="No summary returned"
            )
        return summary.strip()


def _error_detail(response: requests.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500] or None
    if isinstance(data, dict):
        for key in ("error", "message"):
            if data.get(key):
                return str(data[key])
    return None


def build_input(note: Note) -> str:
    text = f"{note.title}\n\n{note.content}"
    return text[:MAX_INPUT_CHARS]


# PUBLIC_INTERFACE
def summarize_note(notes: NoteService, client: SummarizerClient, owner_id: int, note_id: int) -> Tuple[str, bool]:
    """
    Summarize a note once.

    Returns:
        (summary, created) where `created` is False when the stored summary
        was returned without calling the external service.
    """
    note = notes.get(owner_id, note_id)
    if note.summary:
        return note.summary, False

    logger.info("Summarization requested", extra={"user_id": owner_id, "note_id": note_id})
    try:
        summary = client.summarize(build_input(note))
    except NotesError as exc:
        logger.warning(
            "Summarization failed",
            extra={"note_id": note_id, "error_type": type(exc).__name__, "detail": exc.error},
        )
        raise

    db = notes.db
    # Only fill an empty summary; a concurrent call may have stored one already
    result = db.execute(
        update(Note)
        .where(Note.id == note.id, Note.summary.is_(None))
        .values(summary=summary, updated_at=utcnow())
    )
    db.commit()
    db.refresh(note)
    if result.rowcount == 0:
        return note.summary, False
    logger.info("Summary stored", extra={"note_id": note_id})
    return note.summary, True
