from datetime import datetime, timezone
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from core.exceptions import SessionConflict, SessionStoreError
from models.refresh_sessions import RefreshSessionRecord
from services.dto import RefreshSession
from utils.logger import get_logger

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlAlchemySessionStore:
    """
    Relational ``SessionStore`` backed by the ``refresh_sessions`` table.

    The unique constraint on ``user_id`` is what rejects the second of two
    concurrent issuances for the same user. Every other database failure
    leaves as ``SessionStoreError``.
    """

    def __init__(self, db: Session):
        self.db = db

    def save(self, session: RefreshSession) -> None:
        now = datetime.now(timezone.utc)
        try:
            # A stale row would otherwise hold the user_id constraint forever
            self.db.query(RefreshSessionRecord).filter(
                RefreshSessionRecord.user_id == session.user_id,
                RefreshSessionRecord.expires_at <= now
            ).delete(synchronize_session=False)

            self.db.add(RefreshSessionRecord(
                session_id=session.session_id,
                user_id=session.user_id,
                token_digest=session.token_digest,
                source_address=session.source_address,
                created_at=session.created_at,
                expires_at=session.expires_at
            ))
            self.db.commit()

        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                "Refresh session rejected by uniqueness constraint",
                extra={"user_id": session.user_id}
            )
            raise SessionConflict() from exc

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to save refresh session: {str(e)}",
                extra={"user_id": session.user_id, "error_type": type(e).__name__}
            )
            raise SessionStoreError("save failed") from e

    def get_by_id(self, session_id: str) -> RefreshSession | None:
        try:
            record = self.db.query(RefreshSessionRecord).filter(
                RefreshSessionRecord.session_id == session_id
            ).one_or_none()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise SessionStoreError("get_by_id failed") from e

        if record is None:
            return None

        return RefreshSession(
            session_id=record.session_id,
            user_id=record.user_id,
            token_digest=record.token_digest,
            source_address=record.source_address,
            created_at=_as_utc(record.created_at),
            expires_at=_as_utc(record.expires_at)
        )

    def delete_by_id(self, session_id: str) -> None:
        try:
            self.db.query(RefreshSessionRecord).filter(
                RefreshSessionRecord.session_id == session_id
            ).delete(synchronize_session=False)
            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to delete refresh session: {str(e)}",
                extra={"session_id": session_id, "error_type": type(e).__name__}
            )
            raise SessionStoreError("delete_by_id failed") from e

    def exists_for_user(self, user_id: str) -> bool:
        now = datetime.now(timezone.utc)
        try:
            record = self.db.query(RefreshSessionRecord.session_id).filter(
                RefreshSessionRecord.user_id == user_id,
                RefreshSessionRecord.expires_at > now
            ).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise SessionStoreError("exists_for_user failed") from e

        return record is not None
