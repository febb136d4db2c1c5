"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import EntityType, FieldType, RunStatus
from schemas.migration import require_http_url, utcnow


# ============================================================================
# Migration Control Schemas
# ============================================================================

class StartMigrationRequest(BaseModel):
    """Start a run for one entity type"""
    entity_type: EntityType
    schema_: Optional[Dict[str, FieldType]] = Field(
        None,
        alias="schema",
        description="Target schema; the entity type's default schema when omitted"
    )

    @validator("schema_")
    def schema_not_empty(cls, v):
        if v is not None and not v:
            raise ValueError("schema must declare at least one field")
        return v

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "entity_type": "plans",
                "schema": {
                    "id": "string",
                    "name": "string",
                    "price": "number",
                    "billingFrequency": "string",
                    "currency": "string",
                    "cohort": "string"
                }
            }
        }


class ApprovalRequest(BaseModel):
    """Approve or unapprove result ids"""
    item_ids: List[str] = Field(..., description="Result ids to change")
    approved: bool = True


class ApprovalResponse(BaseModel):
    success: bool = True
    approved_ids: List[str]


class DestinationRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)
    api_key: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)

    @validator("endpoint")
    def endpoint_is_http(cls, v):
        return require_http_url(v)


class CompleteMigrationRequest(BaseModel):
    """Write the approved results; server defaults apply when `destination` is omitted"""
    destination: Optional[DestinationRequest] = None


class EntityInfo(BaseModel):
    entity_type: EntityType
    id_field: str
    default_schema: Dict[str, FieldType]
    endpoint: str

    class Config:
        use_enum_values = True


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(default="healthy", description="Overall service status")
    timestamp: datetime = Field(default_factory=utcnow)
    environment: str
    run_status: RunStatus
    run_progress: int = 0
    observers: int = 0

    class Config:
        use_enum_values = True


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[Any] = None
    timestamp: datetime = Field(default_factory=utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "RunAlreadyActiveError",
                "detail": "Migration already in progress",
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }
