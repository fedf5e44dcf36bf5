from core.database import Base
from sqlalchemy import Column, DateTime, String

class RefreshSessionRecord(Base):
    """
    One row per live refresh token.

    Rows are never updated: rotation deletes the row and inserts a new one
    under a fresh session id. Only a digest of the refresh token is kept.
    """
    __tablename__ = "refresh_sessions"

    #pk
    session_id = Column(String(32), primary_key=True)

    # unique: at most one session per user, also under concurrent issuance
    user_id = Column(String(64), nullable=False, unique=True, index=True)

    token_digest = Column(String(16), nullable=False)
    source_address = Column(String(45), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
