"""
Store and Store Assignment Endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.guards import CHECKLIST_ROLES, MANAGEMENT_ROLES, require_role
from backend.app.core.identity import Identity
from backend.app.db.session import get_db
from backend.app.schemas.catalog import (
    AssignmentRequest,
    AssignmentResponse,
    StoreCreate,
    StoreResponse,
    StoreUpdate,
)
from backend.app.schemas.user import UserResponse
from backend.app.services import store_service

router = APIRouter(prefix="/api/stores", tags=["Stores"])
assignments_router = APIRouter(prefix="/api/assignments", tags=["Store Assignments"])


@router.get("", response_model=List[StoreResponse])
async def list_stores(
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await store_service.list_active_stores(db)


@router.get("/all", response_model=List[StoreResponse])
async def list_all_stores(
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await store_service.list_all_stores(db)


@router.get("/my", response_model=List[StoreResponse])
async def my_stores(
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Stores assigned to the (effective) caller."""
    return await store_service.list_stores_for_user(db, identity.effective.id)


@router.post("", response_model=StoreResponse, status_code=status.HTTP_201_CREATED)
async def create_store(
    payload: StoreCreate,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await store_service.create_store(db, payload.store_name, payload.store_code)


@router.get("/{store_id}", response_model=StoreResponse)
async def get_store(
    store_id: int,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    store = await store_service.get_store(db, store_id)
    if store is None:
        raise ResourceNotFoundError("Store", store_id)
    return store


@router.put("/{store_id}", response_model=StoreResponse)
async def update_store(
    store_id: int,
    payload: StoreUpdate,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await store_service.update_store(db, store_id, payload.store_name, payload.store_code)


@router.post("/{store_id}/toggle", response_model=StoreResponse)
async def toggle_store(
    store_id: int,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await store_service.toggle_store(db, store_id)


@router.get("/{store_id}/users", response_model=List[UserResponse])
async def store_users(
    store_id: int,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await store_service.list_users_for_store(db, store_id)


@assignments_router.get("", response_model=List[AssignmentResponse])
async def list_assignments(
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await store_service.list_assignments(db)


@assignments_router.post("", status_code=status.HTTP_201_CREATED)
async def assign_store(
    payload: AssignmentRequest,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Assign, or reactivate an earlier assignment."""
    assignment = await store_service.assign_store(db, payload.store_id, payload.user_id, identity.real.id)
    return {"success": True, "assignment_id": assignment.id}


@assignments_router.post("/remove")
async def remove_assignment(
    payload: AssignmentRequest,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    removed = await store_service.unassign_store(db, payload.store_id, payload.user_id)
    if not removed:
        raise ResourceNotFoundError("Assignment")
    return {"success": True}
