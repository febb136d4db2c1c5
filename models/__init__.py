"""
In-memory models for a migration run.

Models:
    base: Shared enums (EntityType, FieldType, RunStatus, LogLevel, EventType)
    run_ledger: The mutable state of one migration run

Lifecycle:
    A RunLedger lives exactly as long as its run is current. Starting a new
    run builds a fresh ledger and drops the previous one; nothing is
    persisted beyond the process.

Usage:
    from models.base import EntityType, RunStatus
    from models.run_ledger import RunLedger

Example:
    ledger = RunLedger.begin(EntityType.PLANS)
    ledger.append_log("Fetched 2 plans")
    ledger.advance(10, "Fetching plans from source")
"""

__all__ = [
    "EntityType",
    "FieldType",
    "RunStatus",
    "LogLevel",
    "EventType",
    "RunLedger",
]
