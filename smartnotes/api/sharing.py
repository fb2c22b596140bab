"""Public share links: issue/revoke an opaque token and serve the read-only view."""

import logging
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from smartnotes.api.errors import NotFound
from smartnotes.api.models import Note
from smartnotes.api.notes import NoteService

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24


def generate_share_token(db: Session) -> str:
    """Return a random url-safe token no other note holds."""
    while True:
        token = secrets.token_urlsafe(TOKEN_BYTES)
        taken = db.scalar(select(Note.id).where(Note.share_token == token))
        if taken is None:
            return token


def build_share_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/share/{token}"


# PUBLIC_INTERFACE
def toggle_share(notes: NoteService, owner_id: int, note_id: int, base_url: str) -> dict:
    """
    Flip the note's shared state.

    Sharing assigns a fresh token; unsharing clears it, so an old link never
    works again even if the note is shared a second time.
    """
    note = notes.get(owner_id, note_id)
    if note.is_shared:
        note.is_shared = False
        note.share_token = None
    else:
        note.is_shared = True
        note.share_token = generate_share_token(notes.db)
    notes.db.commit()

    logger.info(
        "Share enabled" if note.is_shared else "Share disabled",
        extra={"user_id": owner_id, "note_id": note_id},
    )
    share_url: Optional[str] = build_share_url(base_url, note.share_token) if note.is_shared else None
    return {
        "message": "Note shared successfully" if note.is_shared else "Note sharing disabled",
        "is_shared": note.is_shared,
        "share_id": note.share_token,
        "share_url": share_url,
    }


# PUBLIC_INTERFACE
def get_shared_note(db: Session, token: str) -> dict:
    """
    Resolve a share token to the public projection of its note.

    Only title, content, summary, tags, timestamps and the owner's display
    name are exposed.
    """
    note = db.scalar(
        select(Note)
        .options(joinedload(Note.owner))
        .where(Note.share_token == token, Note.is_shared.is_(True))
    )
    if note is None:
        raise NotFound("Shared note not found or no longer available")
    return {
        "title": note.title,
        "content": note.content,
        "summary": note.summary,
        "tags": list(note.tags),
        "author": note.owner.name,
        "created_at": note.created_at,
        "updated_at": note.updated_at,
    }
