import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from labvault.api.v1 import api_router
from labvault.config import settings
from labvault.core.error_handlers import register_error_handlers
from labvault.core.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from labvault.database import Database

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A database installed before startup (tests) is left to its owner
    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database.from_settings(settings)
        logger.info("Database engine created for %s", app.state.database.engine.url.render_as_string())
    yield
    if owns_database:
        await app.state.database.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # --- Middleware (outermost first) ---

    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=not settings.DEBUG)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID", "X-Actor-Id", "X-Actor-Email"],
    )

    # --- Error handlers ---
    register_error_handlers(app)

    # --- Routes ---
    app.include_router(api_router)
    app.add_api_route("/api/health", health_check, methods=["GET"])

    return app


async def health_check(request: Request):
    """Deep health check: verifies database connectivity."""
    checks: dict = {"version": settings.APP_VERSION}
    healthy = True

    start = time.monotonic()
    try:
        async with request.app.state.database.session() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = {
            "status": "ok",
            "latency_ms": round((time.monotonic() - start) * 1000, 1),
        }
    except (SQLAlchemyError, OSError) as exc:
        healthy = False
        logger.warning("Health check database probe failed: %s", exc)
        checks["database"] = {"status": "error", "detail": str(exc)[:200]}

    checks["status"] = "healthy" if healthy else "degraded"
    return JSONResponse(content=checks, status_code=200 if healthy else 503)


app = create_app()
