"""
Owner-scoped note lifecycle: create, list/search, read, partial update,
delete, pin toggle and dashboard statistics.

Every note lookup goes through `NoteService.get`, the single ownership guard.
A note owned by someone else is reported exactly like a missing one.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from smartnotes.api.errors import NotFound, ValidationError
from smartnotes.api.models import Note, NoteTag, utcnow
from smartnotes.api.schemas import NoteUpdateRequest

logger = logging.getLogger(__name__)

TOP_TAGS_LIMIT = 10
# Largest id a 64-bit INTEGER primary key can hold
MAX_NOTE_ID = 2**63 - 1


def clean_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Trim tag entries and drop the empty ones, keeping order."""
    if not tags:
        return []
    return [tag.strip() for tag in tags if tag and tag.strip()]


def _filled(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class NoteService:
    """Note operations for one request, bound to its database session."""

    def __init__(self, db: Session):
        self.db = db

    # PUBLIC_INTERFACE
    def create(self, owner_id: int, title: Optional[str], content: Optional[str],
               tags: Optional[List[str]] = None) -> Note:
        """Persist a new unpinned, unshared, unsummarized note."""
        if not _filled(title) or not _filled(content):
            raise ValidationError("Title and content are required")
        note = Note(
            owner_id=owner_id,
            title=title,
            content=content,
            is_pinned=False,
            is_shared=False,
            summary=None,
        )
        note.tags = clean_tags(tags)
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        logger.info("Note created", extra={"user_id": owner_id, "note_id": note.id})
        return note

    # PUBLIC_INTERFACE
    def list(self, owner_id: int, search: Optional[str] = None, tag: Optional[str] = None) -> List[Note]:
        """
        List the owner's notes, pinned first, then newest first.

        `search` is a case-insensitive substring match on title, content or any
        tag; `tag` is an exact tag match. Both filters apply together.
        """
        stmt = select(Note).where(Note.owner_id == owner_id)
        if search:
            stmt = stmt.where(
                Note.title.icontains(search, autoescape=True)
                | Note.content.icontains(search, autoescape=True)
                | Note.tag_rows.any(NoteTag.name.icontains(search, autoescape=True))
            )
        if tag:
            stmt = stmt.where(Note.tag_rows.any(NoteTag.name == tag))
        stmt = stmt.order_by(Note.is_pinned.desc(), Note.created_at.desc(), Note.id.desc())
        return list(self.db.scalars(stmt).all())

    # PUBLIC_INTERFACE
    def get(self, owner_id: int, note_id: int) -> Note:
        """Return the note when it exists and belongs to `owner_id`, else raise NotFound."""
        if not 0 < note_id <= MAX_NOTE_ID:
            raise NotFound("Note not found")
        note = self.db.get(Note, note_id)
        if note is None or note.owner_id != owner_id:
            raise NotFound("Note not found")
        return note

    # PUBLIC_INTERFACE
    def update(self, owner_id: int, note_id: int, changes: NoteUpdateRequest) -> Note:
        note = self.get(owner_id, note_id)
        if _filled(changes.title):
            note.title = changes.title
        if _filled(changes.content):
            note.content = changes.content
        if changes.tags is not None:
            note.tags = clean_tags(changes.tags)
        # Tag rows live in their own table, so stamp the note explicitly
        note.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(note)
        return note

    # PUBLIC_INTERFACE
    def delete(self, owner_id: int, note_id: int) -> None:
        note = self.get(owner_id, note_id)
        self.db.delete(note)
        self.db.commit()
        logger.info("Note deleted", extra={"user_id": owner_id, "note_id": note_id})

    # PUBLIC_INTERFACE
    def toggle_pin(self, owner_id: int, note_id: int) -> bool:
        """Flip the pinned flag and return its new value."""
        note = self.get(owner_id, note_id)
        note.is_pinned = not note.is_pinned
        self.db.commit()
        return note.is_pinned

    # PUBLIC_INTERFACE
    def counts(self, owner_id: int) -> dict:
        """Total, summarized and pinned note counts for the owner."""
        owned = Note.owner_id == owner_id
        total = self.db.scalar(select(func.count(Note.id)).where(owned))
        summarized = self.db.scalar(select(func.count(Note.id)).where(owned, Note.summary.is_not(None)))
        pinned = self.db.scalar(select(func.count(Note.id)).where(owned, Note.is_pinned.is_(True)))
        return {
            "total_notes": total or 0,
            "total_summarized": summarized or 0,
            "pinned_notes": pinned or 0,
        }

    # PUBLIC_INTERFACE
    def top_tags(self, owner_id: int, limit: int = TOP_TAGS_LIMIT) -> List[dict]:
        """
        Most used tags across the owner's notes.

        Every tag entry counts; ties go to the tag that appeared first.
        """
        usage = func.count(NoteTag.id)
        stmt = (
            select(NoteTag.name, usage.label("count"))
            .join(Note, Note.id == NoteTag.note_id)
            .where(Note.owner_id == owner_id)
            .group_by(NoteTag.name)
            .order_by(usage.desc(), func.min(NoteTag.id))
            .limit(limit)
        )
        return [{"name": name, "count": count} for name, count in self.db.execute(stmt).all()]

    # PUBLIC_INTERFACE
    def stats(self, owner_id: int) -> dict:
        stats = self.counts(owner_id)
        stats["most_used_tags"] = self.top_tags(owner_id)
        return stats
