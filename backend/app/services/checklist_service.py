"""
Checklist submission pipeline and checklist queries.

``submit_checklist`` validates the submission, reserves a document number,
scores the answers and writes the header and all answer rows in one
transaction. Checklists are never updated; resubmitting creates a new one.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import select, func, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ValidationFailedError, ResourceNotFoundError, InsufficientPermissionsError
from backend.app.core.identity import UserIdentity
from backend.app.domain.scoring.scoring_engine import score, earned_value, round_percentage
from backend.app.models.checklist import Checklist, ChecklistAnswer
from backend.app.models.enums import AnswerValue, UserRole
from backend.app.models.question import Question
from backend.app.models.store import Store, StoreAssignment
from backend.app.services.document_numbers import issue_document_number

logger = logging.getLogger("checklist")


@dataclass
class AnswerInput:
    question_id: int
    coefficient: float
    answer: str
    comment: Optional[str] = None
    image_path: Optional[str] = None


@dataclass
class ChecklistSubmission:
    store_id: int
    audit_date: date
    submitted_by: int
    answers: List[AnswerInput] = field(default_factory=list)
    notes: Optional[str] = None


def validate_answers(answers: List[AnswerInput]) -> None:
    """
    Structural checks that need no database access.

    Raises:
        ValidationFailedError: empty list, duplicate question, bad answer or
            non-positive coefficient
    """
    if not answers:
        raise ValidationFailedError("At least one answer is required")

    seen = set()
    for index, item in enumerate(answers):
        if item.question_id in seen:
            raise ValidationFailedError(
                f"Question {item.question_id} is answered more than once",
                details={"question_id": item.question_id},
            )
        seen.add(item.question_id)

        if item.answer not in {value.value for value in AnswerValue}:
            raise ValidationFailedError(
                f"Answer for question {item.question_id} must be Yes, No or NA",
                details={"question_id": item.question_id, "position": index},
            )
        if item.coefficient is None or not (math.isfinite(item.coefficient) and item.coefficient > 0):
            raise ValidationFailedError(
                f"Coefficient for question {item.question_id} must be a positive number",
                details={"question_id": item.question_id, "position": index},
            )


async def _validate_references(db: AsyncSession, submission: ChecklistSubmission) -> None:
    store = (await db.execute(select(Store).where(Store.id == submission.store_id))).scalar_one_or_none()
    if store is None or not store.is_active:
        raise ValidationFailedError(
            "Store does not exist or is inactive",
            details={"store_id": submission.store_id},
        )

    question_ids = {item.question_id for item in submission.answers}
    found = set((await db.execute(select(Question.id).where(Question.id.in_(question_ids)))).scalars().all())
    missing = sorted(question_ids - found)
    if missing:
        raise ValidationFailedError("Unknown question(s)", details={"question_ids": missing})


def _build_answer(position: int, item: AnswerInput) -> ChecklistAnswer:
    return ChecklistAnswer(
        position=position,
        question_id=item.question_id,
        answer=AnswerValue(item.answer),
        coefficient=item.coefficient,
        earned_value=earned_value(item.coefficient, item.answer),
        comment=item.comment or None,
        image_path=item.image_path or None,
    )


async def ensure_can_submit_for_store(db: AsyncSession, user: UserIdentity, store_id: int) -> None:
    """Area managers may only audit stores actively assigned to them."""
    if user.role != UserRole.AREA_MANAGER:
        return
    result = await db.execute(
        select(StoreAssignment.id).where(
            StoreAssignment.store_id == store_id,
            StoreAssignment.user_id == user.id,
            StoreAssignment.is_active.is_(True),
        )
    )
    if result.scalar_one_or_none() is None:
        raise InsufficientPermissionsError(
            "Store is not assigned to you",
            details={"store_id": store_id},
        )


async def submit_checklist(db: AsyncSession, submission: ChecklistSubmission) -> Checklist:
    """
    Validate, number, score and persist a checklist.

    All rows are written in one transaction: if any answer insert fails the
    header, the answers and the counter step are rolled back together.

    Raises:
        ValidationFailedError: before anything is written
        SQLAlchemyError: persistence failed, nothing was kept
    """
    validate_answers(submission.answers)
    await _validate_references(db, submission)

    result = score((item.coefficient, item.answer) for item in submission.answers)

    try:
        document_number = await issue_document_number(db)

        checklist = Checklist(
            document_number=document_number,
            store_id=submission.store_id,
            audit_date=submission.audit_date,
            submitted_by=submission.submitted_by,
            total_coefficient=result.applicable_coefficient,
            total_earned=result.earned,
            score_percentage=round_percentage(result.percentage),
            notes=submission.notes or None,
            answers=[],
        )
        db.add(checklist)
        await db.flush()

        for position, item in enumerate(submission.answers):
            checklist.answers.append(_build_answer(position, item))
            await db.flush()

        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Checklist submission failed for store %s", submission.store_id)
        raise

    logger.info(
        "Checklist %s submitted by user %s for store %s: %.2f%%",
        checklist.document_number, submission.submitted_by, submission.store_id, checklist.score_percentage,
    )
    return await get_checklist(db, checklist.id)


def _detail_query():
    return select(Checklist).execution_options(populate_existing=True)


async def get_checklist(db: AsyncSession, checklist_id: int) -> Optional[Checklist]:
    result = await db.execute(_detail_query().where(Checklist.id == checklist_id))
    return result.unique().scalar_one_or_none()


async def get_by_document_number(db: AsyncSession, document_number: str) -> Optional[Checklist]:
    result = await db.execute(_detail_query().where(Checklist.document_number == document_number))
    return result.unique().scalar_one_or_none()


def _apply_filters(query, store_id=None, submitted_by=None, from_date=None, to_date=None):
    if store_id:
        query = query.where(Checklist.store_id == store_id)
    if submitted_by:
        query = query.where(Checklist.submitted_by == submitted_by)
    if from_date:
        query = query.where(Checklist.audit_date >= from_date)
    if to_date:
        query = query.where(Checklist.audit_date <= to_date)
    return query


async def list_checklists(
    db: AsyncSession,
    store_id: Optional[int] = None,
    submitted_by: Optional[int] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    limit: Optional[int] = None,
) -> List[Checklist]:
    """Checklists matching the filters, newest first."""
    query = _apply_filters(select(Checklist), store_id, submitted_by, from_date, to_date)
    query = query.order_by(Checklist.created_at.desc(), Checklist.id.desc())
    if limit:
        query = query.limit(limit)
    result = await db.execute(query)
    return result.unique().scalars().all()


async def list_submitted_by(db: AsyncSession, user_id: int) -> List[Checklist]:
    return await list_checklists(db, submitted_by=user_id)


async def get_stats(
    db: AsyncSession,
    store_id: Optional[int] = None,
    submitted_by: Optional[int] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    passing_score: Optional[float] = None,
) -> Dict:
    """Count, average, min and max score, plus passes when a threshold is given."""
    query = _apply_filters(
        select(
            func.count(Checklist.id),
            func.avg(Checklist.score_percentage),
            func.min(Checklist.score_percentage),
            func.max(Checklist.score_percentage),
        ),
        store_id, submitted_by, from_date, to_date,
    )
    total, average, minimum, maximum = (await db.execute(query)).one()

    stats = {
        "total_checklists": total or 0,
        "average_score": round_percentage(average) if average is not None else None,
        "min_score": minimum,
        "max_score": maximum,
    }
    if passing_score is not None:
        passed_query = _apply_filters(
            select(func.count(Checklist.id)).where(Checklist.score_percentage >= passing_score),
            store_id, submitted_by, from_date, to_date,
        )
        stats["passing_score"] = passing_score
        stats["passed_checklists"] = (await db.execute(passed_query)).scalar_one()
    return stats


async def delete_checklist(db: AsyncSession, checklist_id: int) -> Checklist:
    """Administrative removal of a checklist and its answers."""
    checklist = await get_checklist(db, checklist_id)
    if checklist is None:
        raise ResourceNotFoundError("Checklist", checklist_id)

    await db.execute(delete(ChecklistAnswer).where(ChecklistAnswer.checklist_id == checklist_id))
    await db.execute(delete(Checklist).where(Checklist.id == checklist_id))
    await db.commit()
    logger.info("Checklist %s deleted", checklist.document_number)
    return checklist


def is_management(user: UserIdentity) -> bool:
    return user.role in (UserRole.ADMIN, UserRole.HEAD_OF_OPERATIONS)


def ensure_can_view(checklist: Checklist, user: UserIdentity) -> None:
    """Management sees every checklist, everyone else only their own."""
    if is_management(user) or checklist.submitted_by == user.id:
        return
    raise InsufficientPermissionsError(
        "You can only view checklists you submitted",
        details={"checklist_id": checklist.id},
    )
