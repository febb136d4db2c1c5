"""
Health check endpoint with current run status
"""

from fastapi import APIRouter, Depends
from api.dependencies import get_orchestrator
from migration.orchestrator import MigrationOrchestrator
from schemas.api import HealthCheckResponse
from core.config import settings
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """
    Health check endpoint.

    Returns:
    - Service status
    - Status and progress of the current migration run
    - Number of connected observers
    """
    snapshot = orchestrator.get_snapshot()

    return HealthCheckResponse(
        status="healthy",
        environment=settings.ENVIRONMENT,
        run_status=snapshot.status,
        run_progress=snapshot.progress,
        observers=orchestrator.broadcaster.subscriber_count,
    )
