"""Error taxonomy. Operations raise these; the API turns them into { error, details }."""

from __future__ import annotations


class PolyindexError(Exception):
    """Base error carrying an HTTP status, a client-facing message and optional details."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None, details: str | None = None) -> None:
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class InvalidRequest(PolyindexError):
    status_code = 400
    message = "Invalid request"


class AuthenticationRequired(PolyindexError):
    status_code = 401
    message = "Unauthorized"


class Forbidden(PolyindexError):
    status_code = 403
    message = "Forbidden"


class NotFound(PolyindexError):
    status_code = 404
    message = "Not found"


class DatastoreUnavailable(PolyindexError):
    status_code = 503
    message = "Database not configured. Set up the datastore to create indexes."
