"""
Checklist Schema Definitions.

Pydantic schemas for checklist submission, score preview and read models.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List
from backend.app.models.enums import AnswerValue
from backend.app.schemas.auth import IdentityUserResponse
from backend.app.schemas.catalog import QuestionResponse, StoreResponse


class AnswerIn(BaseModel):
    """One answered question; the coefficient is the one shown on the form."""
    question_id: int
    coefficient: float = Field(..., allow_inf_nan=False)
    answer: AnswerValue
    comment: Optional[str] = Field(None, max_length=2000)


class ChecklistCreate(BaseModel):
    """Schema for submitting a checklist through the JSON API."""
    store_id: int
    audit_date: date
    notes: Optional[str] = Field(None, max_length=4000)
    answers: List[AnswerIn]


class ScoreItem(BaseModel):
    coefficient: float = Field(..., gt=0, allow_inf_nan=False)
    answer: AnswerValue


class ScorePreviewRequest(BaseModel):
    """Live preview of a partially or fully answered checklist."""
    items: List[ScoreItem]


class ScorePreviewResponse(BaseModel):
    total_coefficient: float
    applicable_coefficient: float
    earned: float
    percentage: float


class ChecklistAnswerResponse(BaseModel):
    id: int
    position: int
    question_id: int
    question_text: Optional[str] = None
    answer: AnswerValue
    coefficient: float
    earned_value: float
    comment: Optional[str] = None
    image_path: Optional[str] = None

    class Config:
        from_attributes = True


class ChecklistSummary(BaseModel):
    """Checklist header as shown in lists."""
    id: int
    document_number: str
    store_id: int
    store_name: Optional[str] = None
    store_code: Optional[str] = None
    audit_date: date
    submitted_by: int
    submitted_by_name: Optional[str] = None
    total_coefficient: float
    total_earned: float
    score_percentage: float
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ChecklistDetail(ChecklistSummary):
    """Checklist header with its ordered answers."""
    answers: List[ChecklistAnswerResponse]


class ChecklistStats(BaseModel):
    total_checklists: int
    average_score: Optional[float] = None
    min_score: Optional[float] = None
    max_score: Optional[float] = None
    passing_score: Optional[float] = None
    passed_checklists: Optional[int] = None


class ChecklistSubmitted(BaseModel):
    """Outcome of a successful form submission."""
    document_number: str
    checklist_id: int
    store_name: Optional[str] = None
    audit_date: date
    score_percentage: float
    passing_score: float
    passed: bool


class ChecklistFormResponse(BaseModel):
    """Everything needed to fill in a new checklist."""
    stores: List[StoreResponse]
    questions: List[QuestionResponse]
    total_coefficient: float
    passing_score: float


class DashboardResponse(BaseModel):
    user: IdentityUserResponse
    real_user: IdentityUserResponse
    is_impersonating: bool
    stats: ChecklistStats
    recent_checklists: List[ChecklistSummary]
    stores: List[StoreResponse]
    passing_score: float
