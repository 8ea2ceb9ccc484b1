"""
Checklist form endpoints.

Browser-facing flow: load the form data, post the filled-in form
(multipart, with optional images per question), land on the success page.
"""

import re
from datetime import date
from typing import Dict, List, Tuple

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData, UploadFile

from backend.app.api.endpoints.checklists import record_submission
from backend.app.core.exceptions import ResourceNotFoundError, ValidationFailedError
from backend.app.core.guards import CHECKLIST_ROLES, require_role
from backend.app.core.identity import Identity, UserIdentity
from backend.app.db.session import get_db
from backend.app.schemas.checklist import ChecklistDetail, ChecklistFormResponse, ChecklistSubmitted
from backend.app.schemas.catalog import QuestionResponse, StoreResponse
from backend.app.services import checklist_service, image_storage, question_service, settings_service, store_service
from backend.app.services.checklist_service import AnswerInput

router = APIRouter(prefix="/checklist", tags=["Checklist Forms"])

_QUESTION_FIELD = re.compile(r"^questions\[(\d+)\]\[(id|coefficient|answer|comment)\]$")
_IMAGE_FIELD = re.compile(r"^image_(\d+)$")


async def stores_for(db: AsyncSession, user: UserIdentity):
    if checklist_service.is_management(user):
        return await store_service.list_active_stores(db)
    return await store_service.list_stores_for_user(db, user.id)


def parse_submission_form(form: FormData) -> Tuple[int, date, str, List[AnswerInput], Dict[int, UploadFile]]:
    """
    Read ``storeId``, ``auditDate``, ``notes``, ``questions[i][...]`` and
    ``image_<questionId>`` fields. Answers keep the order of ``i``.

    Raises:
        ValidationFailedError: missing or unparsable field
    """
    try:
        store_id = int(form.get("storeId") or "")
    except ValueError:
        raise ValidationFailedError("A valid store is required") from None

    try:
        audit_date = date.fromisoformat(form.get("auditDate") or "")
    except ValueError:
        raise ValidationFailedError("A valid audit date is required") from None

    rows: Dict[int, Dict[str, str]] = {}
    images: Dict[int, UploadFile] = {}
    for key, value in form.multi_items():
        match = _QUESTION_FIELD.match(key)
        if match:
            rows.setdefault(int(match.group(1)), {})[match.group(2)] = value
            continue
        match = _IMAGE_FIELD.match(key)
        if match and isinstance(value, UploadFile):
            images[int(match.group(1))] = value

    answers = []
    for index in sorted(rows):
        row = rows[index]
        try:
            question_id = int(row.get("id", ""))
            coefficient = float(row.get("coefficient", ""))
        except ValueError:
            raise ValidationFailedError(
                f"Question row {index} has an invalid id or coefficient",
                details={"position": index},
            ) from None
        answer = row.get("answer")
        if not answer:
            raise ValidationFailedError(
                f"Question {question_id} has no answer",
                details={"question_id": question_id},
            )
        answers.append(AnswerInput(
            question_id=question_id,
            coefficient=coefficient,
            answer=answer,
            comment=(row.get("comment") or "").strip() or None,
        ))

    return store_id, audit_date, (form.get("notes") or "").strip(), answers, images


@router.get("/new", response_model=ChecklistFormResponse)
async def new_checklist(
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return ChecklistFormResponse(
        stores=[StoreResponse.model_validate(store) for store in await stores_for(db, identity.effective)],
        questions=[QuestionResponse.model_validate(q) for q in await question_service.list_active_questions(db)],
        total_coefficient=await question_service.total_active_coefficient(db),
        passing_score=await settings_service.get_passing_score(db),
    )


@router.post("/submit")
async def submit_checklist_form(
    request: Request,
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Store uploaded images, run the submission pipeline, redirect."""
    user = identity.effective
    form = await request.form()
    store_id, audit_date, notes, answers, images = parse_submission_form(form)

    checklist_service.validate_answers(answers)
    await checklist_service.ensure_can_submit_for_store(db, user, store_id)

    stored = []
    try:
        for item in answers:
            upload = images.get(item.question_id)
            if upload is not None:
                item.image_path = await image_storage.save_image(upload)
                if item.image_path:
                    stored.append(item.image_path)

        checklist = await checklist_service.submit_checklist(
            db,
            checklist_service.ChecklistSubmission(
                store_id=store_id,
                audit_date=audit_date,
                submitted_by=user.id,
                answers=answers,
                notes=notes or None,
            ),
        )
    except Exception:
        image_storage.discard_images(stored)
        raise

    await record_submission(db, identity, checklist)

    return RedirectResponse(
        f"/checklist/success/{checklist.document_number}",
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("/success/{document_number}", response_model=ChecklistSubmitted)
async def submission_success(
    document_number: str,
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    checklist = await checklist_service.get_by_document_number(db, document_number)
    if checklist is None:
        raise ResourceNotFoundError("Checklist", document_number)
    checklist_service.ensure_can_view(checklist, identity.effective)

    passing_score = await settings_service.get_passing_score(db)
    return ChecklistSubmitted(
        document_number=checklist.document_number,
        checklist_id=checklist.id,
        store_name=checklist.store_name,
        audit_date=checklist.audit_date,
        score_percentage=checklist.score_percentage,
        passing_score=passing_score,
        passed=checklist.score_percentage >= passing_score,
    )


@router.get("/view/{checklist_id}", response_model=ChecklistDetail)
async def view_checklist(
    checklist_id: int,
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    checklist = await checklist_service.get_checklist(db, checklist_id)
    if checklist is None:
        raise ResourceNotFoundError("Checklist", checklist_id)
    checklist_service.ensure_can_view(checklist, identity.effective)
    return checklist
