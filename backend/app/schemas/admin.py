"""
Admin API Schema Definitions.

Pydantic schemas for audit log and settings endpoints.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_email: Optional[str]
    action: str
    target_user_id: Optional[int]
    target_email: Optional[str]
    meta_data: Optional[dict]
    ip_address: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int


class PassingScoreResponse(BaseModel):
    passing_score: float


class PassingScoreUpdate(BaseModel):
    passing_score: float = Field(..., ge=0, le=100)
