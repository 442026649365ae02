"""
LEADFLOW API - Entry point
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leadflow import __version__
from leadflow.config import get_settings
from leadflow.domain.exceptions import (
    InvalidPoolOrder,
    LeadflowError,
    MissingFacility,
    NotAssignee,
    NotFound,
    NotPending,
    PermissionDenied,
)
from leadflow.infrastructure.database import init_db
from leadflow.infrastructure.jobs.acceptance_job import get_acceptance_monitor
from leadflow.infrastructure.logging_config import setup_logging

# Routers
from leadflow.api.routes import (
    leads_router,
    seller_pools_router,
    monitor_router,
    users_router,
)

settings = get_settings()
logger = logging.getLogger(__name__)


# ============================================================
# 🔁 LIFESPAN
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(logging.DEBUG if settings.debug else logging.INFO)
    logger.info("🚀 Starting LeadFlow API...")

    await init_db()
    logger.info("✅ Tables ready")

    monitor = get_acceptance_monitor()
    if settings.acceptance_monitor_enabled:
        monitor.start()
    else:
        logger.info("⏸️ Acceptance monitor disabled by configuration")

    yield

    await monitor.stop()
    logger.info("👋 LeadFlow API stopped")


# ============================================================
# FASTAPI APP
# ============================================================
app = FastAPI(
    title="LeadFlow API",
    description="Lead assignment and acceptance for dealership sales teams",
    version=__version__,
    lifespan=lifespan,
)

# ============================================================
# ⭐ CORS
# ============================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:3000",
        "http://localhost:5000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# ERRORS
# ============================================================
_STATUS_CODES = (
    (NotFound, 404),
    (NotAssignee, 403),
    (PermissionDenied, 403),
    (NotPending, 409),
    (MissingFacility, 400),
    (InvalidPoolOrder, 400),
)


def status_code_for(exc: LeadflowError) -> int:
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return 500


@app.exception_handler(LeadflowError)
async def leadflow_error_handler(request: Request, exc: LeadflowError):
    code = status_code_for(exc)
    if code >= 500:
        logger.error(f"❌ {type(exc).__name__} on {request.url.path}: {exc.message}", exc_info=exc)
    else:
        logger.info(f"⚠️ {type(exc).__name__} on {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# ============================================================
# ROUTES
# ============================================================
app.include_router(leads_router, prefix="/api/v1")
app.include_router(seller_pools_router, prefix="/api/v1")
app.include_router(monitor_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.get("/api/v1/health")
async def health():
    return {
        "status": "ok",
        "version": __version__,
        "environment": settings.environment,
        "acceptance_monitor": get_acceptance_monitor().running,
    }
