from __future__ import annotations

from typing import Protocol

from services.dto import RefreshSession


class SessionStore(Protocol):
    """
    Persistence of refresh sessions, one row per session id.

    Implementations must reject a second live session for the same user
    on ``save`` by raising ``SessionConflict``, and report infrastructure
    failures from any method as ``SessionStoreError``.
    """

    def save(self, session: RefreshSession) -> None:
        """Insert a new session. Raises ``SessionConflict`` on duplicates."""

    def get_by_id(self, session_id: str) -> RefreshSession | None:
        """Fetch a session, or ``None`` when absent."""

    def delete_by_id(self, session_id: str) -> None:
        """Delete a session. Deleting an absent id is not an error."""

    def exists_for_user(self, user_id: str) -> bool:
        """Whether the user currently holds a live session."""


class AlertSink(Protocol):
    """Best-effort notification channel for anomaly events."""

    def send(self, subject: str, body: str) -> bool:
        """Deliver an alert. Returns ``False`` on failure."""
