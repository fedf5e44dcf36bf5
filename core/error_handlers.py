from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from core.exceptions import AuthError, InternalError
from middleware.request_id import get_request_id
from utils.logger import get_logger

logger = get_logger(__name__)


def _context(request: Request, exc: Exception) -> dict:
    return {
        "path": request.url.path,
        "method": request.method,
        "error_type": type(exc).__name__,
        "request_id": get_request_id(request)
    }


async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
    """Answer a token-service failure with the status its type maps to."""
    if isinstance(exc, InternalError):
        logger.error(f"Auth internal error: {exc.detail}", extra=_context(request, exc), exc_info=exc)
    else:
        logger.warning(f"Auth request rejected: {exc.detail}", extra=_context(request, exc))

    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    # Full stack trace in the log, nothing internal in the response
    logger.error(f"Unhandled exception: {str(exc)}", extra=_context(request, exc), exc_info=exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, handle_auth_error)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, handle_unexpected_error)
