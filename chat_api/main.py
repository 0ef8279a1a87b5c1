"""
main.py
-------
FastAPI application factory and entry point.

Application lifecycle:
  1. App is created by create_application().
  2. lifespan runs on startup: logging, database, migrations, services.
     A failing migration aborts startup, so the app never serves traffic on
     a partially migrated schema.
  3. Routers are registered with their URL prefixes.
  4. Global exception handlers render every error in the JSON envelope.

Run with:
    uvicorn chat_api.main:app --reload              # development
    uvicorn chat_api.main:app --workers 4           # production (no --reload)
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chat_api.api.routes import auth, messages, users
from chat_api.core.config import settings
from chat_api.core.exceptions import AppError, RateLimitError
from chat_api.core.logging import configure_logging, get_logger
from chat_api.core.rate_limit import RateLimiter
from chat_api.db.migrations.runner import MigrationRunner
from chat_api.db.session import Database
from chat_api.repositories.message_repository import MessageRepository
from chat_api.repositories.user_repository import UserRepository
from chat_api.services.auth_service import AuthService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup / shutdown lifecycle hook.

    Startup:
      - Configure structured logging
      - Open the database and apply pending migrations
      - Build repositories, services and rate limiters once, share them
        via app.state

    Shutdown:
      - Dispose the async engine (graceful connection pool drain)
    """
    configure_logging()
    logger.info("Starting up", app=settings.APP_NAME, env=settings.APP_ENV, debug=settings.DEBUG)

    database = Database(app.state.database_url)
    try:
        await MigrationRunner(database).run()
    except Exception:
        logger.error("Startup aborted: migrations failed", exc_info=True)
        await database.dispose()
        raise

    user_repository = UserRepository(database)
    app.state.database = database
    app.state.user_repository = user_repository
    app.state.message_repository = MessageRepository(database)
    app.state.auth_service = AuthService(user_repository)
    app.state.change_password_limiter = RateLimiter(
        max_requests=settings.CHANGE_PASSWORD_RATE_LIMIT,
        window_seconds=settings.CHANGE_PASSWORD_RATE_WINDOW_SECONDS,
        max_entries=settings.RATE_LIMIT_MAX_ENTRIES,
    )

    yield

    logger.info("Shutting down, disposing DB engine")
    await database.dispose()


def _envelope(status_code: int, message: str, error: str, headers=None, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error, **extra},
        headers=headers,
    )


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    cause = first.get("ctx", {}).get("error")
    if cause is not None:
        return str(cause)
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")


def create_application(database_url: Optional[str] = None) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Messaging backend: registration and bearer-token auth, direct, "
            "room and broadcast messages with search and pagination."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.database_url = database_url or settings.DATABASE_URL

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(messages.router)

    # ── Global Exception Handlers ─────────────────────────────────────────────

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                path=request.url.path,
                method=request.method,
                error=exc.code,
                cause=str(exc.__cause__) if exc.__cause__ else None,
            )
        if isinstance(exc, RateLimitError):
            return _envelope(
                exc.status_code,
                exc.message,
                exc.code,
                headers={"Retry-After": str(exc.retry_after)},
                retryAfter=exc.retry_after,
            )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _envelope(exc.status_code, exc.message, exc.code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _envelope(
            status.HTTP_400_BAD_REQUEST, _validation_message(exc), "VALIDATION_ERROR"
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _envelope(exc.status_code, str(exc.detail), "HTTP_ERROR", headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return _envelope(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "INTERNAL_ERROR"
        )

    # ── Health Check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], summary="Service health check")
    async def health() -> dict:
        return {"status": "ok", "app": settings.APP_NAME, "env": settings.APP_ENV}

    return app


app = create_application()
