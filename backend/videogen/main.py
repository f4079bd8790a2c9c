"""FastAPI application entry point and lifespan management.

Configures CORS, registers API routers and exception handlers, and manages
the application lifespan (database table creation, orphaned-job recovery,
provider connectivity check, HTTP client shutdown).
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from videogen.config import get_settings
from videogen.database import create_tables
from videogen.exceptions import VideoGenerationError
from videogen.schemas.common import HealthResponse
from videogen.api.v1.router import router as v1_router


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Suppress noisy third-party HTTP loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _validation_details(exc: RequestValidationError) -> list[dict]:
    """One entry per violated field, e.g. ``{"field": "duration", "message": ...}``."""
    details = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        details.append({
            "field": ".".join(loc) or "body",
            "message": err.get("msg", "Invalid value"),
        })
    return details


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Runs on startup: create DB tables, recover orphans, check the provider."""
    settings = get_settings()
    _setup_logging(settings.LOG_LEVEL)
    log = logging.getLogger(__name__)

    if settings.sqlite_path is not None:
        settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    create_tables()
    log.info("Database tables ready")

    from videogen.utils.startup import cleanup_orphaned_jobs
    cleanup_orphaned_jobs()

    from videogen.services.prediction_provider import ReplicateClient
    if settings.REPLICATE_API_TOKEN:
        await ReplicateClient.from_settings(settings).test_connection()
    else:
        log.warning("REPLICATE_API_TOKEN is not set; generation requests will fail")

    yield  # Application runs here

    from videogen.services.http_client_manager import close_all_clients
    await close_all_clients()
    log.info("Shutting down")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Validation failed", "details": _validation_details(exc)},
        )

    @app.exception_handler(VideoGenerationError)
    async def domain_exception_handler(request: Request, exc: VideoGenerationError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logging.getLogger(__name__).exception(f"Unhandled error: {exc}")
        content = {"error": "Internal server error"}
        if settings.DEBUG:
            content["detail"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health():
        return HealthResponse(
            status="healthy",
            version=settings.APP_VERSION,
            timestamp=datetime.now(timezone.utc),
        )

    app.include_router(v1_router)

    return app


app = create_app()
