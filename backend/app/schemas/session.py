"""
Session Administration Schema Definitions.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List
from backend.app.models.enums import UserRole


class ActiveSessionItem(BaseModel):
    id: int
    token_preview: str
    user_id: int
    email: str
    display_name: str
    role: UserRole
    created_at: datetime
    last_activity: Optional[datetime] = None
    expires_at: datetime
    session_count: int


class UserSessionEntry(BaseModel):
    id: int
    token_preview: str
    created_at: datetime
    last_activity: Optional[datetime] = None
    expires_at: datetime


class UserSessionsGroup(BaseModel):
    user_id: int
    email: str
    display_name: str
    role: UserRole
    session_count: int
    sessions: List[UserSessionEntry]


class SessionActionResponse(BaseModel):
    success: bool
    deleted: int
