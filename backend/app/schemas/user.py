"""
User Schema Definitions.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, List
from backend.app.models.enums import UserRole


class UserResponse(BaseModel):
    id: int
    email: str
    display_name: str
    role: UserRole
    is_approved: bool
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RoleChangeRequest(BaseModel):
    role: UserRole


class UserCreate(BaseModel):
    email: EmailStr
    display_name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.AREA_MANAGER


class BulkImportEntry(BaseModel):
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Optional[str] = None


class BulkImportRequest(BaseModel):
    users: List[BulkImportEntry] = Field(..., min_length=1)


class BulkImportResponse(BaseModel):
    added: int
    skipped: int
    errors: List[str]
