"""
API Router.

Aggregates all endpoint routers. Browser-facing routes live under /auth,
/checklist and /dashboard; JSON APIs under /api.
"""

from fastapi import APIRouter
from backend.app.api.endpoints import (
    auth, dashboard, checklist_forms, checklists,
    questions, stores, users, admin, admin_sessions, impersonation
)

router = APIRouter()

# Authentication subsystem (exempt from the pending gate)
router.include_router(auth.router)

# Browser flow
router.include_router(dashboard.router)
router.include_router(checklist_forms.router)

# Checklist API
router.include_router(checklists.router)

# Administration
router.include_router(questions.router)
router.include_router(stores.router)
router.include_router(stores.assignments_router)
router.include_router(users.router)
router.include_router(admin.router)
router.include_router(admin_sessions.router)
router.include_router(impersonation.router)
