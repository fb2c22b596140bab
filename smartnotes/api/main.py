import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Path, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from smartnotes.api.auth import authenticate_user, get_current_user, issue_token, register_user
from smartnotes.api.config import get_settings
from smartnotes.api.database import get_db, init_db
from smartnotes.api.errors import NotesError
from smartnotes.api.export import render_all_notes, render_note
from smartnotes.api.logging_config import setup_logging
from smartnotes.api.models import Note, User
from smartnotes.api.notes import NoteService
from smartnotes.api.schemas import (
    AuthResponse,
    HealthResponse,
    LoginRequest,
    MessageResponse,
    NoteCreateRequest,
    NoteResponse,
    NoteStatsResponse,
    NoteUpdateRequest,
    PinResponse,
    ProfileResponse,
    RegisterRequest,
    SharedNoteResponse,
    ShareResponse,
    SummaryResponse,
    UserStats,
)
from smartnotes.api.sharing import get_shared_note, toggle_share
from smartnotes.api.summarizer import SummarizerClient, summarize_note

VERSION = "1.0.0"

logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(
    title="Smart Notes API",
    description="Notes backend with JWT auth, AI summaries, public share links and PDF export.",
    version=VERSION,
    openapi_tags=[
        {"name": "Health", "description": "Service health and status."},
        {"name": "Auth", "description": "User registration, login and profile."},
        {"name": "Notes", "description": "CRUD, pinning, search and statistics for notes."},
        {"name": "AI", "description": "Note summarization."},
        {"name": "Share", "description": "Public read-only share links."},
        {"name": "Export", "description": "PDF export of notes."},
    ],
)

# CORS setup - allow frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_origin],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

router = APIRouter()


# -------- Error handling --------

@app.exception_handler(NotesError)
async def handle_notes_error(request: Request, exc: NotesError):
    """Render domain errors as `{message, error?}` with their HTTP status."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        exc.message,
        extra={"path": request.url.path, "status": exc.status_code, "error_type": type(exc).__name__},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    """Invalid or missing input is a 400, like every other validation failure."""
    problems = exc.errors()
    detail = None
    if problems:
        first = problems[0]
        where = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{where}: {first.get('msg')}" if where else first.get("msg")
    logger.warning("Request validation failed", extra={"path": request.url.path, "detail": detail})
    body = {"message": "Invalid request data"}
    if detail:
        body["error"] = detail
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    """Anything outside the error taxonomy still answers as a JSON 500."""
    logger.exception("Unhandled error", extra={"path": request.url.path, "error_type": type(exc).__name__})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error", "error": str(exc)},
    )


# -------- Dependencies --------

def get_note_service(db: Session = Depends(get_db)) -> NoteService:
    return NoteService(db)


def get_summarizer() -> SummarizerClient:
    return SummarizerClient()


def to_note_response(note: Note) -> NoteResponse:
    return NoteResponse(
        id=note.id,
        owner_id=note.owner_id,
        title=note.title,
        content=note.content,
        tags=list(note.tags),
        summary=note.summary,
        is_pinned=note.is_pinned,
        is_shared=note.is_shared,
        share_id=note.share_token,
        created_at=note.created_at,
        updated_at=note.updated_at,
    )


def pdf_response(pdf: bytes, filename: str) -> Response:
    """Attachment response for fully rendered PDF bytes."""
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-store, no-cache, must-revalidate",
            "Pragma": "no-cache",
        },
    )


# -------- Health --------

# PUBLIC_INTERFACE
@app.get("/", tags=["Health"], summary="API index")
def index():
    """
    Root endpoint listing the API entry points.
    """
    prefix = settings.api_prefix
    return {
        "message": "Welcome to Smart Notes API",
        "version": VERSION,
        "endpoints": {
            "auth": f"{prefix}/auth",
            "notes": f"{prefix}/notes",
            "share": f"{prefix}/share",
            "health": f"{prefix}/health",
        },
    }


# PUBLIC_INTERFACE
@router.get("/health", response_model=HealthResponse, tags=["Health"], summary="Health Check")
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON object indicating service status.
    """
    return HealthResponse(
        message="Smart Notes API is running!",
        timestamp=datetime.now(tz=timezone.utc),
        version=VERSION,
    )


# -------- Auth Routes --------

# PUBLIC_INTERFACE
@router.post(
    "/auth/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Auth"],
    summary="Register a new user",
)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new user.

    Body:
        name: display name
        email: valid email address
        password: plaintext password (min 6 chars)

    Returns:
        AuthResponse with a bearer token.

    Raises:
        400 if the email is taken or invalid.
    """
    user = register_user(db, payload.name, payload.email, payload.password)
    return AuthResponse(id=user.id, name=user.name, email=user.email, token=issue_token(user))


# PUBLIC_INTERFACE
@router.post("/auth/login", response_model=AuthResponse, tags=["Auth"], summary="Login and obtain JWT access token")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    """
    Exchange email and password for a bearer token.

    Raises:
        401 on invalid credentials.
    """
    user = authenticate_user(db, payload.email, payload.password)
    return AuthResponse(id=user.id, name=user.name, email=user.email, token=issue_token(user))


# PUBLIC_INTERFACE
@router.get("/auth/profile", response_model=ProfileResponse, tags=["Auth"], summary="Current user profile")
def profile(
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Profile of the authenticated user with note counters.
    """
    return ProfileResponse(
        id=current_user.id,
        name=current_user.name,
        email=current_user.email,
        created_at=current_user.created_at,
        stats=UserStats(**notes.counts(current_user.id)),
    )


# -------- Notes Routes --------

# PUBLIC_INTERFACE
@router.get("/notes", response_model=List[NoteResponse], tags=["Notes"], summary="List, search and filter notes")
def list_notes(
    search: Optional[str] = Query(None, description="Substring to match in title, content or tags"),
    tag: Optional[str] = Query(None, description="Exact tag to filter by"),
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    List notes belonging to the current user, pinned first then newest first.

    Query params:
        search: optional case-insensitive text to match in title, content or tags
        tag: optional tag the note must carry
    """
    return [to_note_response(n) for n in notes.list(current_user.id, search=search, tag=tag)]


# PUBLIC_INTERFACE
@router.post(
    "/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Notes"],
    summary="Create a new note",
)
def create_note(
    payload: NoteCreateRequest,
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Create a new note for the authenticated user.

    Body:
        title: note title (required)
        content: note content (required)
        tags: optional list of tags
    """
    note = notes.create(current_user.id, payload.title, payload.content, payload.tags)
    return to_note_response(note)


# PUBLIC_INTERFACE
@router.get("/notes/stats", response_model=NoteStatsResponse, tags=["Notes"], summary="Dashboard statistics")
def note_stats(
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Note counters and the ten most used tags.
    """
    return NoteStatsResponse(**notes.stats(current_user.id))


# PUBLIC_INTERFACE
@router.get("/notes/export/all", tags=["Export"], summary="Export all notes as PDF")
def export_all_notes(
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Download every note of the current user as one PDF.

    Raises:
        404 if the user has no notes, 500 if rendering fails.
    """
    pdf, filename = render_all_notes(notes, current_user.id)
    return pdf_response(pdf, filename)


# PUBLIC_INTERFACE
@router.get("/notes/{note_id}", response_model=NoteResponse, tags=["Notes"], summary="Get a note by ID")
def get_note(
    note_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Retrieve a single note by ID. Only the owner can access it.
    """
    return to_note_response(notes.get(current_user.id, note_id))


# PUBLIC_INTERFACE
@router.put("/notes/{note_id}", response_model=NoteResponse, tags=["Notes"], summary="Update a note by ID")
def update_note(
    payload: NoteUpdateRequest,
    note_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Update a note. Only the owner can modify it.
    """
    return to_note_response(notes.update(current_user.id, note_id, payload))


# PUBLIC_INTERFACE
@router.delete("/notes/{note_id}", response_model=MessageResponse, tags=["Notes"], summary="Delete a note by ID")
def delete_note(
    note_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Delete a note. Only the owner can delete it.
    """
    notes.delete(current_user.id, note_id)
    return MessageResponse(message="Note deleted successfully")


# PUBLIC_INTERFACE
@router.put("/notes/{note_id}/pin", response_model=PinResponse, tags=["Notes"], summary="Toggle pin")
def toggle_pin(
    note_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Pin or unpin a note.
    """
    is_pinned = notes.toggle_pin(current_user.id, note_id)
    message = "Note pinned successfully" if is_pinned else "Note unpinned successfully"
    return PinResponse(message=message, is_pinned=is_pinned)


# PUBLIC_INTERFACE
@router.post("/notes/{note_id}/summarize", response_model=SummaryResponse, tags=["AI"], summary="Summarize a note")
def summarize(
    note_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
    summarizer: SummarizerClient = Depends(get_summarizer),
):
    """
    Generate the note's AI summary, or return the stored one.

    Raises:
        503 while the model is loading, 429 when rate limited,
        500 when misconfigured or the upstream call fails.
    """
    summary, created = summarize_note(notes, summarizer, current_user.id, note_id)
    message = "Note summarized successfully" if created else "Note already summarized"
    return SummaryResponse(message=message, summary=summary)


# PUBLIC_INTERFACE
@router.put("/notes/{note_id}/share", response_model=ShareResponse, tags=["Share"], summary="Toggle public sharing")
def share_note(
    note_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Enable or disable the note's public share link.
    """
    return ShareResponse(**toggle_share(notes, current_user.id, note_id, settings.public_base_url))


# PUBLIC_INTERFACE
@router.get("/notes/{note_id}/export", tags=["Export"], summary="Export a note as PDF")
def export_note(
    note_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
):
    """
    Download a single note as PDF.
    """
    pdf, filename = render_note(notes, current_user.id, note_id)
    return pdf_response(pdf, filename)


# -------- Public Share Routes --------

# PUBLIC_INTERFACE
@router.get(
    "/share/public/{share_id}",
    response_model=SharedNoteResponse,
    tags=["Share"],
    summary="Read a shared note",
)
def read_shared_note(share_id: str, db: Session = Depends(get_db)):
    """
    Public, unauthenticated read of a shared note.

    Raises:
        404 if the token is unknown or sharing was disabled.
    """
    return SharedNoteResponse(**get_shared_note(db, share_id))


app.include_router(router, prefix=settings.api_prefix)


@app.on_event("startup")
def on_startup():
    setup_logging()
    init_db()
    logger.info("Smart Notes API started", extra={"version": VERSION})


def run():
    """Serve the API with uvicorn; host and port come from HOST/PORT."""
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    run()
