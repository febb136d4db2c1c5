"""
Migration control endpoints: start, approve, complete, status
"""

from fastapi import APIRouter, Depends, Request
from typing import List
from api.dependencies import get_orchestrator
from migration.entities import RULE_SETS
from migration.orchestrator import MigrationOrchestrator
from schemas.api import (
    StartMigrationRequest,
    ApprovalRequest,
    ApprovalResponse,
    CompleteMigrationRequest,
    EntityInfo,
)
from schemas.migration import CompletionReport, DestinationConfig, LedgerSnapshot
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/migration", tags=["Migration"])


@router.post("/start", response_model=LedgerSnapshot)
async def start_migration(
    body: StartMigrationRequest,
    request: Request,
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator)
):
    """
    Run fetch, classify and transform for one entity type.

    Responds once results are ready for approval. Fails with 409 while
    another run is in flight.
    """
    request_id = getattr(request.state, "request_id", "-")
    logger.info(f"[{request_id}] POST /api/migration/start - entity_type={body.entity_type.value}")
    return await orchestrator.start(body.entity_type, body.schema_)


@router.post("/approve", response_model=ApprovalResponse)
async def approve_items(
    body: ApprovalRequest,
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator)
):
    """Approve or unapprove result ids; repeating a call changes nothing"""
    approved_ids = orchestrator.set_approval(body.item_ids, body.approved)
    return ApprovalResponse(approved_ids=approved_ids)


@router.post("/complete", response_model=CompletionReport)
async def complete_migration(
    request: Request,
    body: CompleteMigrationRequest = None,
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator)
):
    """Write every approved result to the destination"""
    request_id = getattr(request.state, "request_id", "-")
    destination = None
    if body is not None and body.destination is not None:
        destination = DestinationConfig(**body.destination.model_dump())
    logger.info(f"[{request_id}] POST /api/migration/complete")
    return await orchestrator.complete(destination)


@router.get("/status", response_model=LedgerSnapshot)
async def migration_status(orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Full state of the current run"""
    return orchestrator.get_snapshot()


@router.get("/entities", response_model=List[EntityInfo])
async def list_entities():
    """Supported entity types with their default target schemas"""
    return [
        EntityInfo(
            entity_type=entity_type,
            id_field=rule_set.id_field,
            default_schema=rule_set.default_schema,
            endpoint=rule_set.endpoint,
        )
        for entity_type, rule_set in RULE_SETS.items()
    ]
