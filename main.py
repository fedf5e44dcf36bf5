import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from routers import auth

# Registers the ORM tables on Base.metadata
import models

from core.config import settings
from core.database import Base, engine
from core.error_handlers import register_exception_handlers
from core.logging_config import setup_logging
from middleware import RequestIDMiddleware, limiter
from services.token_service import shutdown_alert_executor
from utils.logger import get_logger, log_request

setup_logging(log_level=settings.LOG_LEVEL, log_dir=settings.LOG_DIR)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Auth service started", extra={"event": "startup", "env": settings.ENV})
    yield
    shutdown_alert_executor()
    logger.info("Auth service stopping", extra={"event": "shutdown"})


app = FastAPI(
    title="Auth Service API",
    description="Issues and rotates access/refresh token pairs, one live session per user",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)

    log_request(
        logger,
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        client_ip=request.client.host if request.client else None
    )
    return response


# Outermost, so the request id is set before anything logs
app.add_middleware(RequestIDMiddleware)

register_exception_handlers(app)


@app.get("/health")
async def health_check():
    return {"status": "Healthy"}


app.include_router(auth.router)
