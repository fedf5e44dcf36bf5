from core.database import SessionLocal
from datetime import timedelta
from functools import lru_cache
from typing import Annotated
from fastapi import BackgroundTasks, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from core.config import settings
from core.exceptions import InvalidToken, TokenExpired
from services.dto import TokenClaims
from services.email_service import EmailAlertSink
from services.session_store import SqlAlchemySessionStore
from services.token_service import TokenService
from utils.tokens import Expired, InvalidSignature, TokenCodec

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec(
        secret_key=settings.SECRET_KEY,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl=timedelta(hours=settings.REFRESH_TOKEN_EXPIRE_HOURS)
    )


@lru_cache
def get_alert_sink() -> EmailAlertSink:
    return EmailAlertSink.from_settings(settings)


def get_token_service(db: db_dependency, bg: BackgroundTasks,
                      codec: Annotated[TokenCodec, Depends(get_token_codec)],
                      alert_sink: Annotated[EmailAlertSink, Depends(get_alert_sink)]) -> TokenService:
    # Alerts go out after the response has been sent
    return TokenService(
        codec=codec,
        store=SqlAlchemySessionStore(db),
        alert_sink=alert_sink,
        schedule=bg.add_task
    )

token_service_dependency = Annotated[TokenService, Depends(get_token_service)]


def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(HTTPBearer(auto_error=False))],
    codec: Annotated[TokenCodec, Depends(get_token_codec)]
) -> TokenClaims:
    if credentials is None:
        raise InvalidToken("Could not validate credentials.")

    try:
        return codec.decode_access_token(credentials.credentials)
    except Expired:
        raise TokenExpired()
    except InvalidSignature:
        raise InvalidToken("Could not validate credentials.")


identity_dependency = Annotated[TokenClaims, Depends(get_current_identity)]
