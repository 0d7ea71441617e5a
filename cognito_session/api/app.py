"""FastAPI application exposing the session operations over HTTP.

Endpoints:
  POST   /session          — Sign in ({username, password}) or resume ({password, state})
  POST   /session/restore  — Confirm a saved {poolId, clientId} session is still live
  DELETE /session          — Sign out
  GET    /health           — Health check
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import cognito_session
from cognito_session.api.routes.session import router as session_router
from cognito_session.auth_providers.factory import provider_from_settings
from cognito_session.config import Settings, settings as default_settings
from cognito_session.core.orchestrator import Authenticator
from cognito_session.core.session import SessionStore
from cognito_session.exceptions import ChallengeRequiredError, CognitoSessionError
from cognito_session.logging_config import log_startup_info, setup_logging

logger = logging.getLogger("cognito_session.api")

_UNSET = object()


def _write_session_cookie(request: Request, response: Response, settings: Settings) -> None:
    """Apply the session id a route left on ``request.state.session_cookie``."""
    session_id = getattr(request.state, "session_cookie", _UNSET)
    if session_id is _UNSET:
        return
    if session_id is None:
        response.delete_cookie(settings.session_cookie_name, httponly=True, samesite="lax")
        return
    response.set_cookie(
        settings.session_cookie_name,
        session_id,
        max_age=int(settings.session_ttl),
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def create_app(
    authenticator: Authenticator | None = None, settings: Settings | None = None
) -> FastAPI:
    """Build the app. Without an authenticator one is created from settings."""
    if settings is None:
        settings = authenticator.settings if authenticator is not None else default_settings
    if authenticator is None:
        authenticator = Authenticator(provider_from_settings(settings), settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings)
        log_startup_info(settings, authenticator.provider.name)
        yield
        logger.info("Shutdown complete")

    app = FastAPI(
        title="cognito-session",
        description="Resumable user pool sign-in for browser session layers.",
        version=cognito_session.__version__,
        lifespan=lifespan,
    )
    app.state.authenticator = authenticator
    app.state.settings = settings
    app.state.sessions = SessionStore(
        idle_ttl=settings.session_ttl,
        max_sessions=settings.max_sessions,
        challenge_ttl=settings.challenge_ttl,
        max_pending=settings.max_pending_challenges,
    )
    app.include_router(session_router)

    # -----------------------------------------------------------------------
    # Error handlers
    # -----------------------------------------------------------------------
    @app.exception_handler(CognitoSessionError)
    async def cognito_session_error_handler(
        request: Request, exc: CognitoSessionError
    ) -> JSONResponse:
        """Centralized handler for package exceptions."""
        request_id = getattr(request.state, "request_id", "unknown")
        content = {
            "error": exc.error_type,
            "message": exc.message,
            "request_id": request_id,
        }
        if isinstance(exc, ChallengeRequiredError):
            content["state"] = {
                "name": exc.state.name.value,
                "token": exc.state.to_token(),
                "requiredAttributes": exc.state.context.required_attributes,
            }
        return JSONResponse(status_code=exc.status_code, content=content)

    # -----------------------------------------------------------------------
    # CORS middleware
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Request logging middleware (also sets request_id on state for error handler)
    # -----------------------------------------------------------------------
    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next) -> Response:
        request_id = str(uuid4())[:8]
        request.state.request_id = request_id
        start = time.monotonic()
        response: Response = await call_next(request)
        elapsed_ms = round((time.monotonic() - start) * 1000, 1)
        logger.info(
            "%s %s %s %.1fms [%s]",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )
        _write_session_cookie(request, response, settings)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/health", tags=["health"])
    async def health():
        return {
            "status": "ok",
            "version": cognito_session.__version__,
            "pool_id": settings.pool_id,
            "provider": authenticator.provider.name,
        }

    return app
