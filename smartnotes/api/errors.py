"""Error taxonomy shared by every service; each error knows its HTTP status."""

from typing import Optional


class NotesError(Exception):
    """Base class for all errors surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(NotesError):
    """Missing or invalid input."""

    status_code = 400


class Unauthorized(NotesError):
    """Missing, malformed or rejected credential."""

    status_code = 401


class NotFound(NotesError):
    """Resource is missing or belongs to another user; the two are indistinguishable."""

    status_code = 404


class RateLimited(NotesError):
    status_code = 429


class ServiceUnavailable(NotesError):
    """Upstream dependency is transiently down; the caller may retry later."""

    status_code = 503


class Misconfigured(NotesError):
    """A required external credential is not configured."""

    status_code = 500


class SummarizationFailed(NotesError):
    status_code = 500


class ExportFailed(NotesError):
    status_code = 500
