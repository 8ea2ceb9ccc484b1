"""
Checklist question management.

Questions are soft-deleted (``is_active`` False) so answers stored on past
checklists keep pointing at a real row.
"""

from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError, ValidationFailedError
from backend.app.models.question import Question


async def list_active_questions(db: AsyncSession) -> List[Question]:
    result = await db.execute(
        select(Question).where(Question.is_active.is_(True)).order_by(Question.sort_order, Question.id)
    )
    return result.scalars().all()


async def list_all_questions(db: AsyncSession) -> List[Question]:
    result = await db.execute(select(Question).order_by(Question.sort_order, Question.id))
    return result.scalars().all()


async def get_question(db: AsyncSession, question_id: int) -> Optional[Question]:
    result = await db.execute(select(Question).where(Question.id == question_id))
    return result.scalar_one_or_none()


async def _require_question(db: AsyncSession, question_id: int) -> Question:
    question = await get_question(db, question_id)
    if question is None:
        raise ResourceNotFoundError("Question", question_id)
    return question


async def create_question(
    db: AsyncSession,
    question_text: str,
    coefficient: float = 1.0,
    sort_order: int = 0,
    created_by: Optional[int] = None,
) -> Question:
    question = Question(
        question_text=question_text,
        coefficient=coefficient,
        sort_order=sort_order,
        is_active=True,
        created_by=created_by,
    )
    db.add(question)
    await db.commit()
    await db.refresh(question)
    return question


async def update_question(
    db: AsyncSession,
    question_id: int,
    question_text: str,
    coefficient: float,
    sort_order: int,
) -> Question:
    question = await _require_question(db, question_id)
    question.question_text = question_text
    question.coefficient = coefficient
    question.sort_order = sort_order
    await db.commit()
    await db.refresh(question)
    return question


async def toggle_question(db: AsyncSession, question_id: int) -> Question:
    question = await _require_question(db, question_id)
    question.is_active = not question.is_active
    await db.commit()
    await db.refresh(question)
    return question


async def delete_question(db: AsyncSession, question_id: int) -> Question:
    """Soft delete."""
    question = await _require_question(db, question_id)
    question.is_active = False
    await db.commit()
    await db.refresh(question)
    return question


async def total_active_coefficient(db: AsyncSession) -> float:
    result = await db.execute(
        select(func.coalesce(func.sum(Question.coefficient), 0)).where(Question.is_active.is_(True))
    )
    return float(result.scalar_one())


async def reorder_questions(db: AsyncSession, question_ids: List[int]) -> None:
    """Assign sort orders 1..n following ``question_ids``."""
    if len(set(question_ids)) != len(question_ids):
        raise ValidationFailedError("Question ids must be unique")

    result = await db.execute(select(Question).where(Question.id.in_(question_ids)))
    by_id = {question.id: question for question in result.scalars().all()}
    missing = [question_id for question_id in question_ids if question_id not in by_id]
    if missing:
        raise ResourceNotFoundError("Question", missing[0])

    for position, question_id in enumerate(question_ids, start=1):
        by_id[question_id].sort_order = position
    await db.commit()
