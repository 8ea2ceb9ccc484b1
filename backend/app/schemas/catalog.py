"""
Question and Store Schema Definitions.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1, max_length=2000)
    coefficient: float = Field(1.0, gt=0)
    sort_order: int = Field(0, ge=0)


class QuestionUpdate(QuestionCreate):
    pass


class QuestionResponse(BaseModel):
    id: int
    question_text: str
    coefficient: float
    sort_order: int
    is_active: bool
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QuestionReorderRequest(BaseModel):
    question_ids: List[int] = Field(..., min_length=1)


class TotalCoefficientResponse(BaseModel):
    total_coefficient: float


class StoreCreate(BaseModel):
    store_name: str = Field(..., min_length=1, max_length=200)
    store_code: str = Field(..., min_length=1, max_length=50)


class StoreUpdate(StoreCreate):
    pass


class StoreResponse(BaseModel):
    id: int
    store_name: str
    store_code: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AssignmentRequest(BaseModel):
    store_id: int
    user_id: int


class AssignmentResponse(BaseModel):
    id: int
    user_id: int
    user_name: str
    user_email: str
    store_id: int
    store_name: str
    store_code: str
    assigned_at: datetime
    assigned_by_name: Optional[str] = None
    is_active: bool
