"""
Test data helpers shared by the test modules.
"""

from backend.app.core.cookies import IMPERSONATION_COOKIE, SESSION_COOKIE
from backend.app.models.enums import UserRole
from backend.app.models.question import Question
from backend.app.models.store import Store, StoreAssignment
from backend.app.models.user import User
from backend.app.services import session_store


async def create_user(db, email, role=UserRole.AREA_MANAGER, display_name=None, is_active=True):
    user = User(
        email=email,
        display_name=display_name or email.split("@")[0].title(),
        role=role,
        is_approved=role != UserRole.PENDING,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_store(db, code="S001", name="Main Street"):
    store = Store(store_name=name, store_code=code, is_active=True)
    db.add(store)
    await db.commit()
    await db.refresh(store)
    return store


async def create_question(db, text, coefficient=1.0, sort_order=0):
    question = Question(question_text=text, coefficient=coefficient, sort_order=sort_order, is_active=True)
    db.add(question)
    await db.commit()
    await db.refresh(question)
    return question


async def assign(db, store, user):
    assignment = StoreAssignment(store_id=store.id, user_id=user.id, is_active=True)
    db.add(assignment)
    await db.commit()
    return assignment


def cookie_headers(token, impersonate=None):
    cookie = f"{SESSION_COOKIE}={token}"
    if impersonate is not None:
        cookie = f"{cookie}; {IMPERSONATION_COOKIE}={impersonate}"
    return {"Cookie": cookie}


async def login_headers(db, user, impersonate=None):
    """Cookie header for a fresh session of ``user``."""
    issued = await session_store.create_session(db, user.id)
    return cookie_headers(issued.token, impersonate)
