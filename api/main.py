"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from api.routes import health, migration, events
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.logging import setup_logging
from core.exceptions import (
    MigrationException,
    RunStateError,
    RunAlreadyActiveError,
    WriteSweepError,
)
from schemas.api import ErrorResponse
import logging

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Billing Migration API",
    description="Orchestrates billing data migration with human approval before write-back",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add middleware
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(health.router)
app.include_router(migration.router)
app.include_router(events.router)


def _status_for(error: MigrationException) -> int:
    if isinstance(error, RunAlreadyActiveError):
        return 409
    if isinstance(error, RunStateError):
        return 400
    if isinstance(error, WriteSweepError):
        return 502
    return 500


@app.exception_handler(MigrationException)
async def migration_exception_handler(request: Request, exc: MigrationException):
    """Render pipeline errors as ErrorResponse with a status matching the failure"""
    status_code = _status_for(exc)
    request_id = getattr(request.state, "request_id", "-")
    logger.warning(f"[{request_id}] {request.method} {request.url.path} -> {status_code}: {exc.message}")

    body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Billing Migration API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Destination: {settings.DESTINATION_URL}")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Billing Migration API")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Billing Migration API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "start": "/api/migration/start",
            "approve": "/api/migration/approve",
            "complete": "/api/migration/complete",
            "status": "/api/migration/status",
            "entities": "/api/migration/entities",
            "events": "/ws"
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=settings.API_HOST, port=settings.API_PORT)
