"""
Tests for the checklist submission pipeline.

Covers scoring of persisted checklists, document numbering (including
under concurrency), transactional rollback, validation and the
store-assignment and visibility rules.
"""

import asyncio
import json
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backend.app.db.session import Base
from backend.app.models.audit_log import AuditLog
from backend.app.models.checklist import Checklist, ChecklistAnswer
from backend.app.models.document_counter import DocumentCounter
from backend.app.models.enums import UserRole
from backend.app.services import checklist_service
from backend.app.services.audit import AuditAction
from backend.app.services.checklist_service import AnswerInput, ChecklistSubmission
from backend.app.services.document_numbers import ensure_counter, issue_document_number
from backend.tests.helpers import assign, create_question, create_store, create_user, login_headers


@pytest.fixture
async def catalog(db_session, manager_user):
    """One store assigned to the area manager and three questions (2, 3, 5)."""
    store = await create_store(db_session, "S001", "Main Street")
    questions = [
        await create_question(db_session, "Floor clean?", 2, sort_order=1),
        await create_question(db_session, "Shelves stocked?", 3, sort_order=2),
        await create_question(db_session, "Fridge at temperature?", 5, sort_order=3),
    ]
    await assign(db_session, store, manager_user)
    return store, questions


def _payload(store, questions, answers=("Yes", "No", "NA"), audit_date="2024-05-01", notes=None):
    return {
        "store_id": store.id,
        "audit_date": audit_date,
        "notes": notes,
        "answers": [
            {"question_id": question.id, "coefficient": question.coefficient, "answer": answer}
            for question, answer in zip(questions, answers)
        ],
    }


async def _counter_value(db):
    result = await db.execute(
        select(DocumentCounter.last_value).where(DocumentCounter.prefix == "AMC")
    )
    return result.scalar_one()


async def _count(db, model):
    return (await db.execute(select(func.count(model.id)))).scalar_one()


# Submission through the JSON API

async def test_submission_is_scored_numbered_and_persisted(client, db_session, catalog, manager_headers, manager_user):
    store, questions = catalog

    response = await client.post("/api/checklists", json=_payload(store, questions, notes="All good"), headers=manager_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["document_number"] == "AMC-000001"
    assert body["total_coefficient"] == 5
    assert body["total_earned"] == 2
    assert body["score_percentage"] == 40.0
    assert body["store_name"] == "Main Street"
    assert body["submitted_by"] == manager_user.id
    assert body["submitted_by_name"] == "Arne Manager"
    assert body["notes"] == "All good"

    answers = body["answers"]
    assert [a["position"] for a in answers] == [0, 1, 2]
    assert [a["answer"] for a in answers] == ["Yes", "No", "NA"]
    assert [a["earned_value"] for a in answers] == [2, 0, 0]
    assert answers[0]["question_text"] == "Floor clean?"

    assert await _count(db_session, Checklist) == 1
    assert await _count(db_session, ChecklistAnswer) == 3
    assert await _counter_value(db_session) == 1


async def test_document_numbers_are_sequential(client, catalog, manager_headers):
    store, questions = catalog
    numbers = []
    for _ in range(3):
        response = await client.post("/api/checklists", json=_payload(store, questions), headers=manager_headers)
        numbers.append(response.json()["document_number"])

    assert numbers == ["AMC-000001", "AMC-000002", "AMC-000003"]


async def test_all_na_checklist_scores_zero(client, catalog, manager_headers):
    store, questions = catalog
    response = await client.post(
        "/api/checklists", json=_payload(store, questions, answers=("NA", "NA", "NA")), headers=manager_headers,
    )
    assert response.status_code == 201
    assert response.json()["score_percentage"] == 0
    assert response.json()["total_coefficient"] == 0


async def test_submitted_coefficient_is_frozen_on_the_answer(client, db_session, catalog, manager_headers):
    store, questions = catalog
    payload = _payload(store, questions[:1], answers=("Yes",))
    payload["answers"][0]["coefficient"] = 7.5

    body = (await client.post("/api/checklists", json=payload, headers=manager_headers)).json()
    assert body["answers"][0]["coefficient"] == 7.5
    assert body["total_coefficient"] == 7.5

    questions[0].coefficient = 1
    await db_session.commit()

    detail = (await client.get(f"/api/checklists/{body['id']}", headers=manager_headers)).json()
    assert detail["answers"][0]["coefficient"] == 7.5


async def test_preview_matches_persisted_score(client, catalog, manager_headers):
    store, questions = catalog
    answers = ("Yes", "Yes", "No")
    items = [{"coefficient": q.coefficient, "answer": a} for q, a in zip(questions, answers)]

    preview = await client.post("/api/checklists/preview", json={"items": items}, headers=manager_headers)
    assert preview.status_code == 200
    assert preview.json()["percentage"] == 50.0

    submitted = await client.post("/api/checklists", json=_payload(store, questions, answers=answers), headers=manager_headers)
    assert submitted.json()["score_percentage"] == preview.json()["percentage"]


# Validation

@pytest.mark.parametrize("mutate", [
    lambda payload: payload.update(answers=[]),
    lambda payload: payload["answers"].append(dict(payload["answers"][0])),
    lambda payload: payload["answers"][0].update(coefficient=0),
    lambda payload: payload["answers"][1].update(coefficient=-2),
    lambda payload: payload["answers"][0].update(question_id=9999),
])
async def test_invalid_submission_is_rejected_before_numbering(client, db_session, catalog, manager_headers, mutate):
    store, questions = catalog
    payload = _payload(store, questions)
    mutate(payload)

    response = await client.post("/api/checklists", json=payload, headers=manager_headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_VALIDATION_001"
    assert await _count(db_session, Checklist) == 0
    assert await _counter_value(db_session) == 0


@pytest.mark.parametrize("number", ["Infinity", "-Infinity", "NaN"])
async def test_non_finite_coefficient_is_rejected(client, db_session, catalog, manager_headers, number):
    store, questions = catalog
    payload = _payload(store, questions)
    payload["answers"][0]["coefficient"] = "COEFFICIENT"
    body = json.dumps(payload).replace('"COEFFICIENT"', number)

    response = await client.post(
        "/api/checklists",
        content=body,
        headers={**manager_headers, "Content-Type": "application/json"},
    )

    assert response.status_code == 422
    assert await _count(db_session, Checklist) == 0
    assert await _counter_value(db_session) == 0

    preview = await client.post(
        "/api/checklists/preview",
        content='{"items": [{"coefficient": ' + number + ', "answer": "Yes"}]}',
        headers={**manager_headers, "Content-Type": "application/json"},
    )
    assert preview.status_code == 422


async def test_unknown_answer_value_is_rejected(client, catalog, manager_headers):
    store, questions = catalog
    response = await client.post(
        "/api/checklists", json=_payload(store, questions, answers=("Yes", "Maybe", "No")), headers=manager_headers,
    )
    assert response.status_code == 422


async def test_inactive_store_is_rejected(client, db_session, catalog, hoo_headers):
    store, questions = catalog
    store.is_active = False
    await db_session.commit()

    response = await client.post("/api/checklists", json=_payload(store, questions), headers=hoo_headers)
    assert response.status_code == 400


# Access rules

async def test_area_manager_cannot_audit_unassigned_store(client, db_session, catalog, manager_headers):
    _, questions = catalog
    other = await create_store(db_session, "S002", "Harbour")

    response = await client.post("/api/checklists", json=_payload(other, questions), headers=manager_headers)

    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_002"
    assert await _count(db_session, Checklist) == 0


async def test_head_of_operations_can_audit_any_store(client, db_session, catalog, hoo_headers):
    _, questions = catalog
    other = await create_store(db_session, "S002", "Harbour")

    response = await client.post("/api/checklists", json=_payload(other, questions), headers=hoo_headers)
    assert response.status_code == 201


async def test_pending_user_cannot_submit(client, db_session, catalog, pending_user):
    store, questions = catalog
    headers = await login_headers(db_session, pending_user)

    response = await client.post("/api/checklists", json=_payload(store, questions), headers=headers)
    assert response.status_code == 302
    assert response.headers["location"] == "/auth/pending"
    assert await _count(db_session, Checklist) == 0


async def test_checklists_are_visible_to_submitter_and_management_only(client, db_session, catalog, manager_headers, hoo_headers):
    store, questions = catalog
    created = (await client.post("/api/checklists", json=_payload(store, questions), headers=manager_headers)).json()

    colleague = await create_user(db_session, "am2@example.com", UserRole.AREA_MANAGER)
    colleague_headers = await login_headers(db_session, colleague)

    assert (await client.get(f"/api/checklists/{created['id']}", headers=manager_headers)).status_code == 200
    assert (await client.get(f"/api/checklists/{created['id']}", headers=hoo_headers)).status_code == 200
    assert (await client.get(f"/api/checklists/{created['id']}", headers=colleague_headers)).status_code == 403

    by_number = await client.get("/api/checklists/by-number/AMC-000001", headers=hoo_headers)
    assert by_number.json()["id"] == created["id"]

    assert (await client.get("/api/checklists", headers=colleague_headers)).json() == []
    assert len((await client.get("/api/checklists", headers=hoo_headers)).json()) == 1


async def test_missing_checklist_is_404(client, manager_headers):
    response = await client.get("/api/checklists/12345", headers=manager_headers)
    assert response.status_code == 404


async def test_impersonated_submission_is_attributed_to_effective_user(client, db_session, catalog, admin_user, manager_user):
    store, questions = catalog
    headers = await login_headers(db_session, admin_user, impersonate=manager_user.id)

    response = await client.post("/api/checklists", json=_payload(store, questions), headers=headers)

    assert response.status_code == 201
    assert response.json()["submitted_by"] == manager_user.id

    entry = (await db_session.execute(
        select(AuditLog).where(AuditLog.action == AuditAction.CHECKLIST_SUBMITTED)
    )).scalar_one()
    assert entry.actor_id == admin_user.id
    assert entry.meta_data["acting_as"] == "am@example.com"


# Statistics and removal

async def test_stats_use_the_passing_threshold(client, catalog, manager_headers, hoo_headers):
    store, questions = catalog
    await client.post("/api/checklists", json=_payload(store, questions, answers=("Yes", "Yes", "Yes")), headers=manager_headers)
    await client.post("/api/checklists", json=_payload(store, questions, answers=("Yes", "No", "NA")), headers=manager_headers)

    stats = (await client.get("/api/checklists/stats", headers=hoo_headers)).json()
    assert stats["total_checklists"] == 2
    assert stats["average_score"] == 70.0
    assert stats["min_score"] == 40.0
    assert stats["max_score"] == 100.0
    assert stats["passing_score"] == 80.0
    assert stats["passed_checklists"] == 1

    response = await client.put("/api/settings/passing-score", json={"passing_score": 40}, headers=hoo_headers)
    assert response.status_code == 200
    stats = (await client.get("/api/checklists/stats", headers=hoo_headers)).json()
    assert stats["passed_checklists"] == 2


async def test_admin_can_delete_checklist(client, db_session, catalog, manager_headers, admin_headers):
    store, questions = catalog
    created = (await client.post("/api/checklists", json=_payload(store, questions), headers=manager_headers)).json()

    assert (await client.delete(f"/api/checklists/{created['id']}", headers=manager_headers)).status_code == 403

    response = await client.delete(f"/api/checklists/{created['id']}", headers=admin_headers)
    assert response.status_code == 204
    assert await _count(db_session, Checklist) == 0
    assert await _count(db_session, ChecklistAnswer) == 0
    assert (await client.get(f"/api/checklists/{created['id']}", headers=admin_headers)).status_code == 404


# Transaction boundaries

async def test_failed_answer_insert_rolls_back_everything(db_session, catalog, manager_user, mocker):
    store, questions = catalog
    build_answer = checklist_service._build_answer

    def broken(position, item):
        answer = build_answer(position, item)
        if position == 1:
            answer.coefficient = None
        return answer

    mocker.patch.object(checklist_service, "_build_answer", side_effect=broken)

    submission = ChecklistSubmission(
        store_id=store.id,
        audit_date=date(2024, 5, 1),
        submitted_by=manager_user.id,
        answers=[AnswerInput(q.id, q.coefficient, a) for q, a in zip(questions, ("Yes", "No", "NA"))],
    )
    with pytest.raises(IntegrityError):
        await checklist_service.submit_checklist(db_session, submission)

    assert await _count(db_session, Checklist) == 0
    assert await _count(db_session, ChecklistAnswer) == 0
    assert await _counter_value(db_session) == 0

    mocker.stopall()
    checklist = await checklist_service.submit_checklist(db_session, submission)
    assert checklist.document_number == "AMC-000001"
    assert len(checklist.answers) == 3


async def test_counter_row_is_created_on_demand(db_session):
    await db_session.execute(DocumentCounter.__table__.delete())
    await db_session.commit()

    assert await issue_document_number(db_session) == "AMC-000001"
    assert await issue_document_number(db_session) == "AMC-000002"
    await db_session.commit()
    assert await _counter_value(db_session) == 2


async def test_concurrent_issuance_never_repeats_a_number(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'numbers.db'}")
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with factory() as db:
        await ensure_counter(db)

    async def reserve():
        async with factory() as db:
            number = await issue_document_number(db)
            await db.commit()
            return number

    try:
        numbers = await asyncio.gather(*(reserve() for _ in range(20)))
    finally:
        await engine.dispose()

    assert len(set(numbers)) == 20
    assert sorted(numbers) == [f"AMC-{value:06d}" for value in range(1, 21)]


# Browser form flow

async def test_form_lists_assigned_stores_and_active_questions(client, db_session, catalog, manager_headers):
    await create_store(db_session, "S002", "Harbour")

    body = (await client.get("/checklist/new", headers=manager_headers)).json()

    assert [store["store_code"] for store in body["stores"]] == ["S001"]
    assert [q["question_text"] for q in body["questions"]] == ["Floor clean?", "Shelves stocked?", "Fridge at temperature?"]
    assert body["total_coefficient"] == 10
    assert body["passing_score"] == 80.0


def _form(store, questions, answers=("Yes", "No", "NA")):
    data = {"storeId": str(store.id), "auditDate": "2024-05-01", "notes": "  Spot check  "}
    for index, (question, answer) in enumerate(zip(questions, answers)):
        data[f"questions[{index}][id]"] = str(question.id)
        data[f"questions[{index}][coefficient]"] = str(question.coefficient)
        data[f"questions[{index}][answer]"] = answer
    return data


async def test_form_submission_redirects_to_success_page(client, db_session, catalog, manager_headers, tmp_path, monkeypatch):
    from backend.app.core.config import settings
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path))
    store, questions = catalog

    data = _form(store, questions)
    data["questions[1][comment]"] = "Empty shelf in aisle 3"
    files = {f"image_{questions[1].id}": ("shelf.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")}

    response = await client.post("/checklist/submit", data=data, files=files, headers=manager_headers)

    assert response.status_code == 303
    assert response.headers["location"] == "/checklist/success/AMC-000001"

    success = (await client.get(response.headers["location"], headers=manager_headers)).json()
    assert success["score_percentage"] == 40.0
    assert success["passed"] is False
    assert success["store_name"] == "Main Street"

    detail = (await client.get(f"/checklist/view/{success['checklist_id']}", headers=manager_headers)).json()
    assert detail["notes"] == "Spot check"
    assert detail["answers"][1]["comment"] == "Empty shelf in aisle 3"
    stored = detail["answers"][1]["image_path"]
    assert stored and stored.endswith(".jpg")
    assert (Path(tmp_path) / stored).read_bytes() == b"\xff\xd8\xff fake jpeg"
    assert detail["answers"][0]["image_path"] is None


async def test_form_rejects_non_image_upload(client, db_session, catalog, manager_headers, tmp_path, monkeypatch):
    from backend.app.core.config import settings
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path))
    store, questions = catalog

    files = {f"image_{questions[0].id}": ("notes.txt", b"hello", "text/plain")}
    response = await client.post("/checklist/submit", data=_form(store, questions), files=files, headers=manager_headers)

    assert response.status_code == 400
    assert await _count(db_session, Checklist) == 0
    assert list(Path(tmp_path).iterdir()) == []


async def test_form_requires_store_and_date(client, catalog, manager_headers):
    store, questions = catalog
    data = _form(store, questions)
    del data["auditDate"]

    response = await client.post("/checklist/submit", data=data, headers=manager_headers)
    assert response.status_code == 400


async def test_form_rejects_infinite_coefficient(client, db_session, catalog, manager_headers):
    store, questions = catalog
    data = _form(store, questions)
    data["questions[0][coefficient]"] = "inf"

    response = await client.post("/checklist/submit", data=data, headers=manager_headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_VALIDATION_001"
    assert await _count(db_session, Checklist) == 0
    assert await _counter_value(db_session) == 0


async def test_rejected_form_leaves_no_stored_images(client, db_session, catalog, manager_headers, tmp_path, monkeypatch):
    from backend.app.core.config import settings
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path))
    store, questions = catalog

    data = _form(store, questions)
    data["questions[3][id]"] = "9999"
    data["questions[3][coefficient]"] = "1"
    data["questions[3][answer]"] = "Yes"
    files = {f"image_{questions[0].id}": ("floor.png", b"\x89PNG fake png", "image/png")}

    response = await client.post("/checklist/submit", data=data, files=files, headers=manager_headers)

    assert response.status_code == 400
    assert response.json()["details"] == {"question_ids": [9999]}
    assert await _count(db_session, Checklist) == 0
    assert list(Path(tmp_path).iterdir()) == []
