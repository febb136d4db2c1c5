"""
Pydantic schemas for records, run state and pushed events
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from uuid import UUID
from models.base import EntityType, RunStatus, LogLevel, EventType, FieldType


TargetSchema = Dict[str, FieldType]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_http_url(value: str) -> str:
    """Reject endpoints that are not absolute http(s) URLs"""
    value = value.strip()
    scheme, sep, rest = value.partition("://")
    if not sep or scheme.lower() not in ("http", "https") or not rest.split("/", 1)[0]:
        raise ValueError("endpoint must be an absolute http:// or https:// URL")
    return value


class LogEntry(BaseModel):
    """A single line of the run log"""
    timestamp: datetime = Field(default_factory=utcnow)
    message: str
    level: LogLevel = LogLevel.INFO

    class Config:
        use_enum_values = True


class EnrichedRecord(BaseModel):
    """A source record paired with its copy carrying the assigned cohort"""
    original: Dict[str, Any]
    enriched: Dict[str, Any]

    @property
    def cohort(self) -> Optional[str]:
        return self.enriched.get("cohort")


class WorkItem(BaseModel):
    """
    Unit that flows from mapping to review and write-back.

    `id` is the approval key, taken from the transformed record's
    identifier field.
    """
    id: str
    original: Dict[str, Any]
    transformed: Dict[str, Any]


class WriteResult(BaseModel):
    """Outcome of writing one record to the destination"""
    record_id: Optional[str] = None
    success: bool
    detail: Optional[Any] = None


class DestinationConfig(BaseModel):
    """Where and how approved records are written"""
    endpoint: str = Field(..., min_length=1)
    api_key: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)

    @validator("endpoint")
    def endpoint_is_http(cls, v):
        return require_http_url(v)


class CompletionReport(BaseModel):
    """Summary of a write-back sweep"""
    run_id: UUID
    attempted: int = 0
    written: int = 0
    failed: int = 0
    results: List[WriteResult] = Field(default_factory=list)


class LedgerSnapshot(BaseModel):
    """Read-only copy of a run ledger"""
    run_id: Optional[UUID] = None
    entity_type: Optional[EntityType] = None
    status: RunStatus = RunStatus.IDLE
    progress: int = Field(default=0, ge=0, le=100)
    current_step: str = ""
    logs: List[LogEntry] = Field(default_factory=list)
    results: Optional[List[WorkItem]] = None
    approved_ids: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        use_enum_values = True


class MigrationEvent(BaseModel):
    """Event pushed to every run observer"""
    type: EventType
    data: Any

    class Config:
        use_enum_values = True
