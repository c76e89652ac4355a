from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes.auth import router as auth_router
from .api.routes.users import router as users_router
from .core.config import get_settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .db import dispose_engine, init_db
from .telemetry import RequestContextMiddleware, configure_tracing, setup_prometheus

logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    app = FastAPI(title=settings.project_name, version="0.1.0")

    allow_origins = settings.cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in allow_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.on_event("startup")
    async def _startup() -> None:
        await init_db()
        logger.info(
            "api_started",
            environment=settings.environment,
            storage_backend=settings.storage_backend,
            mail_backend=settings.mail_backend,
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await dispose_engine()

    @app.get("/healthz")
    def healthz() -> dict[str, str | bool]:
        return {"ok": True, "service": "api"}

    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(users_router, prefix=settings.api_prefix)

    if settings.enable_prometheus_metrics:
        setup_prometheus(app)
    configure_tracing(app)
    app.add_middleware(RequestContextMiddleware)

    return app


app = create_app()
