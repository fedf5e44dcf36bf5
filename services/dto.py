from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class TokenClaims:
    """
    Verified claim set of an access or refresh token.

    ``subject`` and ``source_address`` are only populated on access tokens.
    """

    session_id: str
    issued_at: datetime
    expires_at: datetime
    subject: str | None = None
    source_address: str | None = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class RefreshSession:
    """
    Server-side record of a live refresh token.

    :ivar session_id: Primary key, 128-bit random hex.
    :ivar user_id: Owner. At most one live session per user.
    :ivar token_digest: Hex fingerprint of the refresh token, never the token.
    :ivar source_address: Client address observed at issuance.
    :ivar created_at: Issuance time (UTC).
    :ivar expires_at: End of the session's life (UTC).
    """

    session_id: str
    user_id: str
    token_digest: str
    source_address: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class IssueStatus(Enum):
    ISSUED = "issued"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class IssueResult:
    """Outcome of an issuance attempt. ``pair`` is set only when issued."""

    status: IssueStatus
    pair: TokenPair | None = None

    @classmethod
    def issued(cls, pair: TokenPair) -> IssueResult:
        return cls(status=IssueStatus.ISSUED, pair=pair)

    @classmethod
    def conflict(cls) -> IssueResult:
        return cls(status=IssueStatus.CONFLICT)

    @property
    def is_conflict(self) -> bool:
        return self.status is IssueStatus.CONFLICT
