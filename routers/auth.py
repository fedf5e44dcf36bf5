from uuid import UUID
from fastapi import APIRouter, HTTPException, Request
from starlette import status
from schemas.auth_schemas import Token, RefreshTokenRequest, IdentityResponse
from utils.deps import token_service_dependency, identity_dependency
from middleware.rate_limiter import limiter
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


def get_client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/tokens", response_model=Token)
@limiter.limit("5/minute")
def issue_tokens(request: Request, user_id: UUID, token_service: token_service_dependency):
    """
    Issue an access + refresh token pair for a user.

    Only one live session per user: a second call answers 409 until the
    session is rotated away or expires.
    """
    result = token_service.issue(str(user_id), get_client_ip(request))

    if result.is_conflict:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
        detail="Session already exists")

    return Token(access_token=result.pair.access_token,
                 refresh_token=result.pair.refresh_token)


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
def refresh_tokens(request: Request, body: RefreshTokenRequest, token_service: token_service_dependency):
    """
    Exchange a refresh token for a new pair. The presented token is spent.
    """
    pair = token_service.refresh(body.refresh_token, get_client_ip(request))

    logger.info("Token pair refreshed")

    return Token(access_token=pair.access_token, refresh_token=pair.refresh_token)


@router.get("/me", response_model=IdentityResponse)
async def read_identity(identity: identity_dependency):
    """
    Claims of the presented access token.
    """
    return IdentityResponse(
        user_id=identity.subject,
        source_address=identity.source_address,
        session_id=identity.session_id,
        expires_at=identity.expires_at
    )
