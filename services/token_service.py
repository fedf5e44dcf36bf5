import secrets
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable
from core.exceptions import (InvalidToken, TokenExpired, SessionNotFound, TokenMismatch,
                             SessionExpired, SessionConflict, InternalError)
from services.dto import IssueResult, RefreshSession, TokenPair
from services.interfaces import AlertSink, SessionStore
from utils.hashing import DigestFormatError, digest, matches
from utils.tokens import Expired, InvalidSignature, TokenCodec, TokenCodecError
from utils.logger import get_logger

logger = get_logger(__name__)

# Fallback scheduler for alerts when no request-scoped one is supplied.
# Created on first use, released by shutdown_alert_executor().
_alert_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _submit_alert(fn: Callable[..., Any], *args, **kwargs) -> None:
    global _alert_executor
    with _executor_lock:
        if _alert_executor is None:
            _alert_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="security-alert")
        _alert_executor.submit(fn, *args, **kwargs)


def shutdown_alert_executor(wait: bool = True) -> None:
    """Stops the fallback alert pool, letting in-flight alerts finish when ``wait``."""
    global _alert_executor
    with _executor_lock:
        executor, _alert_executor = _alert_executor, None
    if executor is not None:
        executor.shutdown(wait=wait)


class TokenService:
    """
    Issues and rotates access/refresh token pairs.

    Holds no session state of its own: every call reads from and writes to
    the session store it was built with. A user has at most one live
    refresh session.
    """

    def __init__(self, codec: TokenCodec, store: SessionStore, alert_sink: AlertSink,
                 schedule: Callable[..., Any] = None):
        self.codec = codec
        self.store = store
        self.alert_sink = alert_sink
        self.schedule = schedule or _submit_alert

    def issue(self, user_id: str, source_address: str) -> IssueResult:
        """
        Creates a token pair and its refresh session.

        Flow:
        1. Refuse if the user already holds a live session
        2. Generate a fresh session id
        3. Sign access + refresh tokens
        4. Persist a digest of the refresh token
        5. Return the pair (never before the session is stored)

        Returns:
            IssueResult, ``CONFLICT`` when a session already exists

        Raises:
            InternalError: If the session store or token signing fails
        """
        try:
            session_exists = self.store.exists_for_user(user_id)
        except Exception as exc:
            logger.error(
                "Failed to check existing session",
                extra={"user_id": user_id, "error_type": type(exc).__name__},
                exc_info=True
            )
            raise InternalError() from exc

        if session_exists:
            logger.warning(
                "Session already exists for user",
                extra={"user_id": user_id}
            )
            return IssueResult.conflict()

        session_id = secrets.token_hex(16)
        now = datetime.now(timezone.utc)

        try:
            access_token = self.codec.create_access_token(user_id, source_address, session_id)
            refresh_token = self.codec.create_refresh_token(session_id)
        except (TokenCodecError, ValueError) as exc:
            logger.error(
                "Failed to sign token pair",
                extra={"user_id": user_id, "error_type": type(exc).__name__},
                exc_info=True
            )
            raise InternalError() from exc

        session = RefreshSession(
            session_id=session_id,
            user_id=user_id,
            token_digest=digest(refresh_token),
            source_address=source_address,
            created_at=now,
            expires_at=now + self.codec.refresh_ttl
        )

        try:
            self.store.save(session)
        except SessionConflict:
            # Another request for this user won the insert
            logger.warning(
                "Concurrent issuance rejected",
                extra={"user_id": user_id}
            )
            return IssueResult.conflict()
        except Exception as exc:
            logger.error(
                "Failed to save refresh session",
                extra={"user_id": user_id, "error_type": type(exc).__name__},
                exc_info=True
            )
            raise InternalError() from exc

        logger.info(
            "Token pair issued",
            extra={"user_id": user_id, "session_id": session_id}
        )

        return IssueResult.issued(TokenPair(access_token=access_token, refresh_token=refresh_token))

    def refresh(self, refresh_token: str, source_address: str) -> TokenPair:
        """
        Redeems a refresh token for a new pair (token rotation).

        The token is verified before any store access. The old session is
        deleted before the new one is created, so a failure in between
        leaves the user with no session rather than a reusable token.

        Args:
            refresh_token: The refresh token presented by the client
            source_address: Client address of this request

        Returns:
            New TokenPair

        Raises:
            InvalidToken, TokenExpired, SessionNotFound, TokenMismatch,
            SessionExpired, SessionConflict, InternalError
        """
        try:
            claims = self.codec.verify(refresh_token)
        except Expired as exc:
            logger.info("Refresh attempted with expired token")
            raise TokenExpired() from exc
        except InvalidSignature as exc:
            logger.warning(
                "Refresh attempted with invalid token",
                extra={"reason": str(exc)}
            )
            raise InvalidToken() from exc

        session_id = claims.session_id

        try:
            session = self.store.get_by_id(session_id)
        except Exception as exc:
            logger.error(
                "Failed to load refresh session",
                extra={"session_id": session_id, "error_type": type(exc).__name__},
                exc_info=True
            )
            raise InternalError() from exc

        if session is None:
            logger.warning(
                "Refresh session not found",
                extra={"session_id": session_id}
            )
            raise SessionNotFound()

        try:
            token_matches = matches(session.token_digest, refresh_token)
        except DigestFormatError as exc:
            logger.error(
                "Stored token digest is corrupted",
                extra={"session_id": session_id, "user_id": session.user_id}
            )
            raise InternalError() from exc

        if not token_matches:
            logger.warning(
                "Refresh token does not match stored digest",
                extra={"session_id": session_id, "user_id": session.user_id}
            )
            raise TokenMismatch()

        if session.is_expired(datetime.now(timezone.utc)):
            try:
                self.store.delete_by_id(session_id)
            except Exception:
                logger.error(
                    "Failed to delete expired session",
                    extra={"session_id": session_id},
                    exc_info=True
                )
            logger.info(
                "Refresh session expired",
                extra={"session_id": session_id, "user_id": session.user_id}
            )
            raise SessionExpired()

        if session.source_address != source_address:
            logger.warning(
                "Source address mismatch on refresh",
                extra={
                    "user_id": session.user_id,
                    "session_id": session_id,
                    "stored_ip": session.source_address,
                    "current_ip": source_address
                }
            )
            self._dispatch_address_alert(session, source_address)

        try:
            self.store.delete_by_id(session_id)
        except Exception as exc:
            logger.error(
                "Failed to delete old session during rotation",
                extra={"session_id": session_id, "user_id": session.user_id},
                exc_info=True
            )
            raise InternalError() from exc

        result = self.issue(session.user_id, source_address)
        if result.is_conflict:
            raise SessionConflict()

        logger.info(
            "Refresh session rotated",
            extra={"user_id": session.user_id, "old_session_id": session_id}
        )

        return result.pair

    def _dispatch_address_alert(self, session: RefreshSession, current_address: str) -> None:
        subject = "Security warning: IP address mismatch"
        body = (
            f"A refresh token for user {session.user_id} was used from a new address.\n"
            f"Session: {session.session_id}\n"
            f"Previous address: {session.source_address}\n"
            f"Current address: {current_address}\n"
        )
        try:
            self.schedule(self._deliver_alert, subject, body)
        except Exception:
            logger.error("Failed to schedule security alert", exc_info=True)

    def _deliver_alert(self, subject: str, body: str) -> None:
        try:
            delivered = self.alert_sink.send(subject, body)
        except Exception:
            logger.error("Security alert delivery raised", exc_info=True)
            return

        if not delivered:
            logger.error("Security alert was not delivered", extra={"subject": subject})
