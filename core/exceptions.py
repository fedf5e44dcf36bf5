"""
Typed failures of the token rotation protocol.

Each error carries the HTTP status and detail the transport layer answers
with, so routers never have to inspect messages to pick a response.
"""

from starlette import status


class AuthError(Exception):
    """Base class for every failure the token service reports to callers."""

    status_code: int = status.HTTP_401_UNAUTHORIZED
    detail: str = "Authentication failed"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class InvalidToken(AuthError):
    """Bad signature, wrong algorithm or malformed token. Hostile input."""

    detail = "Invalid token"


class TokenExpired(AuthError):
    detail = "Token expired"


class SessionNotFound(AuthError):
    detail = "Session not found"


class TokenMismatch(AuthError):
    """The token does not match the digest stored for its session."""

    detail = "Token does not match session"


class SessionExpired(AuthError):
    """The session existed but was stale. It has been deleted."""

    detail = "Session expired"


class SessionConflict(AuthError):
    """A live session already exists for the user."""

    status_code = status.HTTP_409_CONFLICT
    detail = "Session already exists"


class InternalError(AuthError):
    """Store or codec failure not attributable to the caller's input."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Internal server error"


class SessionStoreError(Exception):
    """Infrastructure failure inside a session store (connection, query, commit)."""
