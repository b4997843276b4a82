"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from studyhub.config import settings
from studyhub.exceptions import AppError
from studyhub.schemas.common import ErrorResponse
from studyhub.api import (
    health_router,
    users_router,
    content_router,
    quiz_router,
    attempts_router,
    communities_router,
    community_content_router,
    community_chat_router,
    community_quiz_router,
    analytics_router,
)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 StudyHub backend starting (%s)…", settings.ENV)
    yield
    logger.info("✅ StudyHub backend shut down")


app = FastAPI(
    title="StudyHub API",
    description="AI-assisted study platform: content, quizzes and communities",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware ─────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# ── Error envelope ────────────────────────────────────────────────────────────


def _error(status_code: int, error_code: str, message: str, details: dict | None = None):
    body = ErrorResponse(error_code=error_code, message=message, details=details)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.warning("%s %s → %s: %s", request.method, request.url.path, exc.error_code, exc.message)
    return _error(exc.status_code, exc.error_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        {"errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(SQLAlchemyError)
async def persistence_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    message = str(exc) if settings.DEBUG else "A database error occurred"
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "PERSISTENCE_ERROR", message)


# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(health_router, tags=["Health"])
app.include_router(users_router, prefix="/api/users", tags=["Users"])
app.include_router(content_router, prefix="/api/content", tags=["Content"])
app.include_router(quiz_router, prefix="/api/quiz", tags=["Quiz"])
app.include_router(attempts_router, prefix="/api/attempts", tags=["Attempts"])
app.include_router(communities_router, prefix="/api/communities", tags=["Communities"])
app.include_router(
    community_content_router, prefix="/api/community-content", tags=["Community content"]
)
app.include_router(community_chat_router, prefix="/api/community-chat", tags=["Community chat"])
app.include_router(community_quiz_router, prefix="/api/community-quiz", tags=["Community quiz"])
app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])


@app.get("/")
async def root():
    return {
        "name": "StudyHub API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
