"""
Pydantic schemas for data validation and serialization.

Schemas:
    migration: Records, work items, run snapshots and pushed events
    api: API endpoint request/response schemas

Features:
    - Automatic data validation
    - JSON serialization of run state for observers
    - OpenAPI schema generation for FastAPI

Usage:
    from schemas.migration import WorkItem, LedgerSnapshot, MigrationEvent
    from schemas.api import StartMigrationRequest, ApprovalRequest

Example:
    item = WorkItem(
        id="p1",
        original={"id": "p1", "billingFrequency": "monthly"},
        transformed={"id": "p1", "billingFrequency": "monthly", "cohort": "standard"}
    )
    assert item.id == "p1"
"""

__all__ = [
    "LogEntry",
    "EnrichedRecord",
    "WorkItem",
    "WriteResult",
    "DestinationConfig",
    "CompletionReport",
    "LedgerSnapshot",
    "MigrationEvent",
    "StartMigrationRequest",
    "ApprovalRequest",
    "CompleteMigrationRequest",
    "HealthCheckResponse",
]
