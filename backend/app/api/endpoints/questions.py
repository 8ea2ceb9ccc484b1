"""
Question Management Endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.guards import CHECKLIST_ROLES, MANAGEMENT_ROLES, require_role
from backend.app.core.identity import Identity
from backend.app.db.session import get_db
from backend.app.schemas.catalog import (
    QuestionCreate,
    QuestionReorderRequest,
    QuestionResponse,
    QuestionUpdate,
    TotalCoefficientResponse,
)
from backend.app.services import question_service

router = APIRouter(prefix="/api/questions", tags=["Questions"])


@router.get("", response_model=List[QuestionResponse])
async def list_questions(
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Active questions in form order."""
    return await question_service.list_active_questions(db)


@router.get("/all", response_model=List[QuestionResponse])
async def list_all_questions(
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await question_service.list_all_questions(db)


@router.get("/total-coefficient", response_model=TotalCoefficientResponse)
async def total_coefficient(
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return TotalCoefficientResponse(total_coefficient=await question_service.total_active_coefficient(db))


@router.post("", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(
    payload: QuestionCreate,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await question_service.create_question(
        db,
        question_text=payload.question_text,
        coefficient=payload.coefficient,
        sort_order=payload.sort_order,
        created_by=identity.real.id,
    )


@router.post("/reorder", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_questions(
    payload: QuestionReorderRequest,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    await question_service.reorder_questions(db, payload.question_ids)


@router.get("/{question_id}", response_model=QuestionResponse)
async def get_question(
    question_id: int,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    question = await question_service.get_question(db, question_id)
    if question is None:
        raise ResourceNotFoundError("Question", question_id)
    return question


@router.put("/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: int,
    payload: QuestionUpdate,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await question_service.update_question(
        db, question_id, payload.question_text, payload.coefficient, payload.sort_order,
    )


@router.post("/{question_id}/toggle", response_model=QuestionResponse)
async def toggle_question(
    question_id: int,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await question_service.toggle_question(db, question_id)


@router.delete("/{question_id}", response_model=QuestionResponse)
async def delete_question(
    question_id: int,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete; past checklists keep their answers."""
    return await question_service.delete_question(db, question_id)
