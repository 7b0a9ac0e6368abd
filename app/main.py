"""
Civic Pulse - FastAPI Application Entry Point

Real-time analytics and remediation for citizen-reported incidents
(noise, crowd, traffic, pollution).

DESIGN PRINCIPLES:
- Views are recomputed from one complete snapshot, never from a mix
- Trend detection is a deterministic heuristic, not a prediction
- At most one in-flight status change per report and per location
- Every remediation request gets an explicit outcome (success, failure, busy)
"""

import logging
import traceback
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.core.settings import settings
from app.services.errors import IngestFailure
from app.services.pulse_runtime import get_runtime
from app.routes import health, dashboard, reports, remediation


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Live counts, hotspots, trend and remediation for citizen incident reports",
    debug=settings.DEBUG
)


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    logger.error(
        f"🔥 Unhandled exception on {request.method} {request.url.path}\n"
        f"{''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"}
    )


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Catch Pydantic validation errors and log them."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)}
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {key: (str(value) if key == "ctx" else value) for key, value in error.items()}
        for error in exc.errors()
    ]


# CORS configuration - local dev frontends by default.
# For production, configure allowed origins explicitly via CORS_ORIGINS, not "*".
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Currently: report store + live report feed
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        runtime = get_runtime()
        runtime.start()
    except (IngestFailure, RuntimeError) as e:
        logger.warning(f"⚠️ Report feed failed to start: {e}")
        logger.warning("   The app will start but views will be empty until the feed recovers.")
        return

    logger.info(f"Report feed live: {len(runtime.snapshot().reports)} reports in first snapshot")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Release the report feed and the outcome sink on application shutdown.
    In-flight remediation is allowed to finish.
    """
    get_runtime().shutdown()
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(dashboard.router)
app.include_router(reports.router)
app.include_router(remediation.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "dashboard": "/dashboard/summary"
    }
