"""
Database seeding script for initial users and reference data.

Creates the configured admin user, the document counter, the default
passing score and a small sample catalogue of stores and questions.
Run this script after the database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.core.config import settings
from backend.app.db import session as db_session
from backend.app.db.session import Base
from backend.app.models.enums import UserRole
from backend.app.models.question import Question
from backend.app.models.store import Store
from backend.app.models.user import User
# Import models to ensure they are registered with Base
from backend.app.models.session import AuthSession
from backend.app.models.checklist import Checklist, ChecklistAnswer
from backend.app.models.document_counter import DocumentCounter
from backend.app.models.setting import AppSetting
from backend.app.models.audit_log import AuditLog
from backend.app.services import settings_service
from backend.app.services.document_numbers import ensure_counter
from sqlalchemy import select

SAMPLE_STORES = [
    ("Main Street", "S001"),
    ("Harbour Front", "S002"),
]

SAMPLE_QUESTIONS = [
    ("Is the shop floor clean and free of obstacles?", 2.0),
    ("Are shelves fully stocked and price-labelled?", 3.0),
    ("Are chilled cabinets at the required temperature?", 5.0),
    ("Is the staff rota displayed and up to date?", 1.0),
]


async def seed_users():
    """
    Seed the admin user and reference data.

    Creates:
    - 1 ADMIN user (settings.admin_email)
    - the document counter row
    - the passing score setting
    - sample stores and questions when none exist
    """
    session_factory = db_session.init_engine()

    async with db_session.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as db:
        print("🌱 Starting seeding...")

        await ensure_counter(db)
        print(f"✅ Document counter ready ({settings.document_prefix})")

        if await settings_service.get_setting(db, settings_service.PASSING_SCORE_KEY) is None:
            await settings_service.set_setting(
                db, settings_service.PASSING_SCORE_KEY, settings.default_passing_score,
            )
            print(f"✅ Passing score set to {settings.default_passing_score}")

        admin_email = settings.admin_email.strip().lower()
        if not admin_email:
            print("ℹ️  ADMIN_EMAIL is not configured, skipping admin user")
        else:
            result = await db.execute(select(User).where(User.email == admin_email))
            if result.scalar_one_or_none():
                print("ℹ️  ADMIN user already exists, skipping")
            else:
                db.add(User(
                    email=admin_email,
                    display_name="Administrator",
                    role=UserRole.ADMIN,
                    is_approved=True,
                    is_active=True,
                ))
                print(f"✅ Created ADMIN user ({admin_email})")

        if (await db.execute(select(Store.id).limit(1))).first() is None:
            for name, code in SAMPLE_STORES:
                db.add(Store(store_name=name, store_code=code, is_active=True))
            print(f"✅ Created {len(SAMPLE_STORES)} sample stores")

        if (await db.execute(select(Question.id).limit(1))).first() is None:
            for position, (text, coefficient) in enumerate(SAMPLE_QUESTIONS, start=1):
                db.add(Question(question_text=text, coefficient=coefficient, sort_order=position, is_active=True))
            print(f"✅ Created {len(SAMPLE_QUESTIONS)} sample questions")

        await db.commit()

    await db_session.dispose_engine()
    print("\n🎉 Seeding completed successfully!")
    print("\nNote: other users register by signing in; they stay Pending until promoted")


if __name__ == "__main__":
    asyncio.run(seed_users())
