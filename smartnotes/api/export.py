"""
PDF export of one note or of all of a user's notes.

Documents are laid out with reportlab platypus. Paragraph text is a small
XML-like markup language, so every user-supplied string is escaped before it
is embedded. The whole document is rendered into an in-memory buffer that is
closed on every exit path; callers get complete bytes or an ExportFailed.
"""

import io
import logging
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from smartnotes.api.errors import ExportFailed, NotFound
from smartnotes.api.models import Note
from smartnotes.api.notes import NoteService

logger = logging.getLogger(__name__)

PRIMARY = colors.HexColor("#1e40af")
MUTED = colors.HexColor("#4b5563")
SUMMARY_BG = colors.HexColor("#eff6ff")
FILENAME_MAX = 50

Section = Tuple[str, str]


def escape_text(text: Optional[str]) -> str:
    """Escape text for Paragraph markup, keeping line breaks."""
    if not text:
        return ""
    return escape(text).replace("\r\n", "\n").replace("\n", "<br/>")


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%B %d, %Y %H:%M") if value else ""


def safe_filename(title: str) -> str:
    """Derive an ASCII download name from a note title."""
    base = re.sub(r"[^\w\s-]", "", title or "", flags=re.ASCII)
    base = re.sub(r"\s+", "_", base.strip())[:FILENAME_MAX]
    return f"{base or 'note'}.pdf"


def collection_filename(today: Optional[datetime] = None) -> str:
    today = today or datetime.now(tz=timezone.utc)
    return f"Smart_Notes_{today.strftime('%Y-%m-%d')}.pdf"


def note_sections(note: Note, heading: str = "title") -> List[Section]:
    """Markup blocks for one note as (style name, escaped markup) pairs."""
    sections: List[Section] = [(heading, escape_text(note.title))]

    meta = [f"<b>Created:</b> {_format_date(note.created_at)}"]
    if note.updated_at and note.updated_at != note.created_at:
        meta.append(f"<b>Updated:</b> {_format_date(note.updated_at)}")
    status = [label for flag, label in ((note.is_pinned, "Pinned"), (note.is_shared, "Shared")) if flag]
    if status:
        meta.append(f"<b>Status:</b> {', '.join(status)}")
    sections.append(("meta", "<br/>".join(meta)))

    sections.append(("content", escape_text(note.content)))
    if note.summary:
        sections.append(("summary_heading", "AI Summary"))
        sections.append(("summary", escape_text(note.summary)))
    tags = list(note.tags)
    if tags:
        sections.append(("tags", "<b>Tags:</b> " + ", ".join(escape_text(tag) for tag in tags)))
    return sections


def _styles() -> dict:
    base = getSampleStyleSheet()
    body = ParagraphStyle("NoteBody", parent=base["BodyText"], fontSize=10.5, leading=14, spaceAfter=8)
    return {
        "doc_title": ParagraphStyle("DocTitle", parent=base["Title"], textColor=PRIMARY, spaceAfter=6),
        "title": ParagraphStyle("NoteTitle", parent=base["Heading1"], textColor=PRIMARY, fontSize=18, spaceAfter=8),
        "note_heading": ParagraphStyle("NoteHeading", parent=base["Heading2"], textColor=PRIMARY, spaceBefore=14),
        "meta": ParagraphStyle("Meta", parent=body, fontSize=9, leading=12, textColor=MUTED),
        "content": body,
        "summary_heading": ParagraphStyle("SummaryHeading", parent=base["Heading4"], textColor=PRIMARY),
        "summary": ParagraphStyle(
            "Summary", parent=body, fontSize=10, textColor=PRIMARY,
            backColor=SUMMARY_BG, borderPadding=6, spaceBefore=4, spaceAfter=12,
        ),
        "tags": ParagraphStyle("Tags", parent=body, fontSize=9, textColor=MUTED),
        "footer": ParagraphStyle("Footer", parent=body, fontSize=8, textColor=MUTED, alignment=1, spaceBefore=18),
    }


@contextmanager
def render_session() -> Iterator[io.BytesIO]:
    """Scratch buffer for one render; always closed when the block exits."""
    buf = io.BytesIO()
    try:
        yield buf
    finally:
        buf.close()


def render_pdf(sections: List[Section], title: str) -> bytes:
    """
    Lay out markup sections into a PDF.

    Raises:
        ExportFailed if reportlab fails or produces an empty/non-PDF result.
    """
    styles = _styles()
    story = []
    for style_name, markup in sections:
        story.append(Paragraph(markup, styles[style_name]))
        if style_name in ("content", "tags"):
            story.append(Spacer(1, 4))
    generated = datetime.now(tz=timezone.utc).strftime("%B %d, %Y")
    story.append(Paragraph(f"Generated by Smart Notes - {generated}", styles["footer"]))

    with render_session() as buf:
        try:
            doc = SimpleDocTemplate(
                buf,
                pagesize=A4,
                leftMargin=18 * mm,
                rightMargin=18 * mm,
                topMargin=20 * mm,
                bottomMargin=20 * mm,
                title=title,
                author="Smart Notes",
            )
            doc.build(story)
        except Exception as exc:
            raise ExportFailed("Failed to export PDF", error=str(exc)) from exc
        pdf = buf.getvalue()

    if not pdf or not pdf.startswith(b"%PDF-"):
        raise ExportFailed("Failed to export PDF", error="Generated PDF is empty or malformed")
    return pdf


# PUBLIC_INTERFACE
def render_note(notes: NoteService, owner_id: int, note_id: int) -> Tuple[bytes, str]:
    """Render one owned note; returns (pdf bytes, download filename)."""
    note = notes.get(owner_id, note_id)
    try:
        pdf = render_pdf(note_sections(note), title=note.title)
    except ExportFailed as exc:
        logger.error("PDF export failed", extra={"note_id": note_id, "detail": exc.error})
        raise
    filename = safe_filename(note.title)
    logger.info("PDF exported", extra={"note_id": note_id, "bytes": len(pdf)})
    return pdf, filename


# PUBLIC_INTERFACE
def render_all_notes(notes: NoteService, owner_id: int) -> Tuple[bytes, str]:
    """Render every note of the owner, pinned first then newest first."""
    owned = notes.list(owner_id)
    if not owned:
        raise NotFound("No notes found to export")

    today = datetime.now(tz=timezone.utc)
    sections: List[Section] = [
        ("doc_title", "Smart Notes Collection"),
        ("meta", f"<b>Total Notes:</b> {len(owned)}<br/><b>Exported:</b> {today.strftime('%B %d, %Y')}"),
    ]
    for note in owned:
        sections.extend(note_sections(note, heading="note_heading"))

    try:
        pdf = render_pdf(sections, title="Smart Notes Collection")
    except ExportFailed as exc:
        logger.error("Bulk PDF export failed", extra={"user_id": owner_id, "detail": exc.error})
        raise
    logger.info("Bulk PDF exported", extra={"user_id": owner_id, "notes": len(owned), "bytes": len(pdf)})
    return pdf, collection_filename(today)
