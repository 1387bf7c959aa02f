"""
GestTeam API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core import database
from app.core.config import get_settings
from app.core.errors import GestTeamError
from app.core.logging import configure_logging
from app.core.middleware import SecurityHeadersMiddleware
from app.core.redis import close_redis, get_redis
from app.api.v1 import router as api_v1_router

settings = get_settings()
log = structlog.get_logger()


async def gestteam_error_handler(request: Request, exc: GestTeamError) -> JSONResponse:
    """Render typed service errors as ``{ok: false, error, code, detail?}``."""
    if exc.status_code >= 500:
        log.warning(
            "request.failed",
            path=request.url.path,
            code=exc.error_code,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="GestTeam",
        description="University administration backend with GitHub account linking and repository provisioning.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (outermost first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(GestTeamError, gestteam_error_handler)

    app.include_router(api_v1_router)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Liveness check."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: database and Redis must answer."""
        checks = {}
        try:
            async with database.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as exc:
            log.warning("ready.database_unavailable", error=str(exc))
            checks["database"] = "unavailable"
        try:
            await (await get_redis()).ping()
            checks["redis"] = "ok"
        except Exception as exc:
            log.warning("ready.redis_unavailable", error=str(exc))
            checks["redis"] = "unavailable"

        ready = all(v == "ok" for v in checks.values())
        return JSONResponse(
            status_code=200 if ready else 503,
            content={"status": "ready" if ready else "degraded", "checks": checks},
        )

    @app.on_event("startup")
    async def on_startup():
        log.info("gestteam.starting", institution_domain=settings.institution_domain)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("gestteam.stopping")
        await close_redis()
        await database.engine.dispose()

    return app


app = create_app()
