"""FastAPI application factory.

Serve with ``uvicorn babylog.main:create_app --factory``; configuration is
loaded when the app is built, not when this module is imported.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .boundary import Boundary
from .clock import Clock, utc_now
from .config import AppConfig, load_config
from .errors import BabylogError, IntegrityFailure
from .gate import AccessGate
from .repositories import Repositories, build_repositories
from .routes import auth as auth_routes
from .routes import event_types as event_type_routes
from .routes import events as events_routes
from .session import SessionCodec

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    clock: Clock = utc_now,
    repositories: Optional[Repositories] = None,
) -> FastAPI:
    """Build the API around one configuration and one repository backend."""

    config = config or load_config()
    repos = repositories or build_repositories(config, clock=clock)
    codec = SessionCodec(config.session_secret, ttl_seconds=config.session_ttl_seconds, clock=clock)

    app = FastAPI(
        title="Babylog API",
        version="0.1.0",
        description="Shared baby-care activity log for two caregivers",
    )
    app.state.config = config
    app.state.gate = AccessGate(codec, cookie_name=config.cookie_name)
    app.state.boundary = Boundary(repos, codec)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.exception_handler(BabylogError)
    async def handle_babylog_error(request: Request, exc: BabylogError) -> JSONResponse:
        if isinstance(exc, IntegrityFailure):
            logger.error(
                "integrity failure",
                extra={"method": request.method, "path": request.url.path, "error": str(exc)},
            )
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_detail})
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    app.include_router(auth_routes.router)
    app.include_router(event_type_routes.router)
    app.include_router(events_routes.router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "backend": config.backend}

    return app

