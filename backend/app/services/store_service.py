"""
Store catalogue and area-manager store assignments.
"""

from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import aliased
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.exceptions import ConflictError, ResourceNotFoundError
from backend.app.models.store import Store, StoreAssignment
from backend.app.models.user import User


async def list_active_stores(db: AsyncSession) -> List[Store]:
    result = await db.execute(select(Store).where(Store.is_active.is_(True)).order_by(Store.store_name))
    return result.scalars().all()


async def list_all_stores(db: AsyncSession) -> List[Store]:
    result = await db.execute(select(Store).order_by(Store.store_name))
    return result.scalars().all()


async def get_store(db: AsyncSession, store_id: int) -> Optional[Store]:
    result = await db.execute(select(Store).where(Store.id == store_id))
    return result.scalar_one_or_none()


async def _require_store(db: AsyncSession, store_id: int) -> Store:
    store = await get_store(db, store_id)
    if store is None:
        raise ResourceNotFoundError("Store", store_id)
    return store


async def _ensure_code_free(db: AsyncSession, store_code: str, exclude_id: Optional[int] = None) -> None:
    query = select(Store.id).where(Store.store_code == store_code)
    if exclude_id is not None:
        query = query.where(Store.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise ConflictError("Store code already in use", details={"store_code": store_code})


async def create_store(db: AsyncSession, store_name: str, store_code: str) -> Store:
    await _ensure_code_free(db, store_code)
    store = Store(store_name=store_name, store_code=store_code, is_active=True)
    db.add(store)
    await db.commit()
    await db.refresh(store)
    return store


async def update_store(db: AsyncSession, store_id: int, store_name: str, store_code: str) -> Store:
    store = await _require_store(db, store_id)
    await _ensure_code_free(db, store_code, exclude_id=store_id)
    store.store_name = store_name
    store.store_code = store_code
    await db.commit()
    await db.refresh(store)
    return store


async def toggle_store(db: AsyncSession, store_id: int) -> Store:
    store = await _require_store(db, store_id)
    store.is_active = not store.is_active
    await db.commit()
    await db.refresh(store)
    return store


async def list_stores_for_user(db: AsyncSession, user_id: int) -> List[Store]:
    """Active stores actively assigned to ``user_id``."""
    result = await db.execute(
        select(Store)
        .join(StoreAssignment, StoreAssignment.store_id == Store.id)
        .where(
            StoreAssignment.user_id == user_id,
            StoreAssignment.is_active.is_(True),
            Store.is_active.is_(True),
        )
        .order_by(Store.store_name)
    )
    return result.scalars().all()


async def list_users_for_store(db: AsyncSession, store_id: int) -> List[User]:
    await _require_store(db, store_id)
    result = await db.execute(
        select(User)
        .join(StoreAssignment, StoreAssignment.user_id == User.id)
        .where(StoreAssignment.store_id == store_id, StoreAssignment.is_active.is_(True))
        .order_by(User.display_name)
    )
    return result.scalars().all()


async def assign_store(db: AsyncSession, store_id: int, user_id: int, assigned_by: Optional[int]) -> StoreAssignment:
    """Create the assignment, or reactivate the earlier one for this pair."""
    await _require_store(db, store_id)
    if (await db.execute(select(User.id).where(User.id == user_id))).first() is None:
        raise ResourceNotFoundError("User", user_id)

    result = await db.execute(
        select(StoreAssignment).where(StoreAssignment.store_id == store_id, StoreAssignment.user_id == user_id)
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        assignment = StoreAssignment(store_id=store_id, user_id=user_id, assigned_by=assigned_by, is_active=True)
        db.add(assignment)
    else:
        assignment.is_active = True
        assignment.assigned_by = assigned_by
        assignment.assigned_at = utcnow()

    await db.commit()
    await db.refresh(assignment)
    return assignment


async def unassign_store(db: AsyncSession, store_id: int, user_id: int) -> bool:
    """Soft-deactivate; returns False when no such assignment exists."""
    result = await db.execute(
        select(StoreAssignment).where(StoreAssignment.store_id == store_id, StoreAssignment.user_id == user_id)
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        return False
    assignment.is_active = False
    await db.commit()
    return True


async def list_assignments(db: AsyncSession) -> List[Dict]:
    """Active assignments with user, store and assigner details."""
    assigner = aliased(User)
    result = await db.execute(
        select(StoreAssignment, User, Store, assigner.display_name)
        .join(User, User.id == StoreAssignment.user_id)
        .join(Store, Store.id == StoreAssignment.store_id)
        .outerjoin(assigner, assigner.id == StoreAssignment.assigned_by)
        .where(StoreAssignment.is_active.is_(True))
        .order_by(User.display_name, Store.store_name)
    )
    return [
        {
            "id": assignment.id,
            "user_id": user.id,
            "user_name": user.display_name,
            "user_email": user.email,
            "store_id": store.id,
            "store_name": store.store_name,
            "store_code": store.store_code,
            "assigned_at": assignment.assigned_at,
            "assigned_by_name": assigned_by_name,
            "is_active": assignment.is_active,
        }
        for assignment, user, store, assigned_by_name in result.all()
    ]
