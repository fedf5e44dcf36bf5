from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from utils.deps import get_token_codec
from utils.tokens import TokenCodecError

def get_rate_limit_key(request: Request):
    """Rate-limit per user when a valid access token is sent, else per client IP."""
    token = request.headers.get("Authorization")
    if token and token.startswith("Bearer "):
        try:
            claims = get_token_codec().decode_access_token(token[len("Bearer "):])
            return f"user:{claims.subject}"
        except TokenCodecError:
            pass

    return get_remote_address(request)

limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=["200/hour"]
)
