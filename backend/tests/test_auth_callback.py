"""
Integration tests for the login flow.

Login start, identity-provider callback, user resolution and logout. The
identity provider is replaced by ``FakeIdentityProvider`` from conftest.
"""

from sqlalchemy import select, func

from backend.app.core.config import settings
from backend.app.models.audit_log import AuditLog
from backend.app.models.enums import UserRole
from backend.app.models.session import AuthSession
from backend.app.models.user import User
from backend.app.services.audit import AuditAction
from backend.app.services.identity_provider import IdentityProfile
from backend.tests.helpers import cookie_headers, create_user, login_headers


def _cookie_value(response, name):
    for header in response.headers.get_list("set-cookie"):
        if header.startswith(f"{name}="):
            return header.split(";", 1)[0].split("=", 1)[1]
    return None


async def _user_by_email(db, email):
    result = await db.execute(
        select(User).where(User.email == email).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _audit_actions(db):
    result = await db.execute(select(AuditLog.action).order_by(AuditLog.id))
    return result.scalars().all()


# Login start

async def test_login_redirects_to_provider_with_state(client, identity_provider):
    response = await client.get("/auth/login", params={"returnUrl": "/checklist/new"})
    assert response.status_code == 302
    assert response.headers["location"].startswith("https://login.example.com/authorize")
    assert "state=/checklist/new" in response.headers["location"]


async def test_login_drops_unsafe_return_url(client, identity_provider):
    response = await client.get("/auth/login", params={"returnUrl": "//evil.example.com"})
    assert response.status_code == 302
    assert "state=" not in response.headers["location"]


async def test_login_error_is_reported_with_retry_url(client, identity_provider):
    response = await client.get("/auth/login", params={"error": "auth_failed", "returnUrl": "/dashboard"})
    assert response.status_code == 401
    body = response.json()
    assert body["error"] == "auth_failed"
    assert body["login_url"] == "/auth/login?returnUrl=%2Fdashboard"


async def test_auth_config_is_public(client, identity_provider):
    response = await client.get("/auth/config")
    assert response.status_code == 200
    assert response.json()["client_id"] == "test"


# Callback

async def test_callback_without_code(client, identity_provider):
    response = await client.get("/auth/callback")
    assert response.status_code == 302
    assert response.headers["location"] == "/auth/login?error=no_code"
    assert identity_provider.exchanged_codes == []


async def test_first_login_creates_pending_user_and_session(client, db_session, identity_provider):
    response = await client.get("/auth/callback", params={"code": "abc"})

    assert response.status_code == 302
    assert response.headers["location"] == "/dashboard"
    token = _cookie_value(response, "auth_token")
    assert token is not None and token.startswith("sess_")

    user = await _user_by_email(db_session, "someone@example.com")
    assert user.role == UserRole.PENDING
    assert user.is_approved is False
    assert user.external_id == "ext-1"
    assert user.last_login_at is not None

    stored = (await db_session.execute(select(AuthSession).where(AuthSession.user_id == user.id))).scalar_one()
    assert stored.token == token
    assert stored.delegated_access_token == "access-abc"
    assert stored.delegated_refresh_token == "refresh-abc"

    assert AuditAction.LOGIN_SUCCESS in await _audit_actions(db_session)


async def test_callback_clears_stale_impersonation(client, identity_provider):
    response = await client.get("/auth/callback", params={"code": "abc"})
    cleared = [h for h in response.headers.get_list("set-cookie") if h.startswith("impersonate_user=")]
    assert cleared and "Max-Age=0" in cleared[0]


async def test_new_session_reaches_pending_page(client, identity_provider):
    response = await client.get("/auth/callback", params={"code": "abc"})
    token = _cookie_value(response, "auth_token")

    response = await client.get("/dashboard", headers=cookie_headers(token))
    assert response.status_code == 302
    assert response.headers["location"] == "/auth/pending"


async def test_configured_admin_mailbox_becomes_admin(client, db_session, identity_provider, monkeypatch):
    monkeypatch.setattr(settings, "admin_email", "Boss@Example.com")
    identity_provider.profile = IdentityProfile(external_id="ext-boss", email="boss@example.com", display_name="Boss")

    response = await client.get("/auth/callback", params={"code": "abc"})
    assert response.status_code == 302

    user = await _user_by_email(db_session, "boss@example.com")
    assert user.role == UserRole.ADMIN
    assert user.is_approved is True


async def test_existing_user_matched_by_email_keeps_role(client, db_session, identity_provider):
    await create_user(db_session, "someone@example.com", UserRole.AREA_MANAGER, "Old Name")

    await client.get("/auth/callback", params={"code": "abc"})

    user = await _user_by_email(db_session, "someone@example.com")
    assert user.role == UserRole.AREA_MANAGER
    assert user.external_id == "ext-1"
    assert user.display_name == "Someone"
    assert (await db_session.execute(select(func.count(User.id)))).scalar_one() == 1


async def test_existing_user_matched_by_subject_after_email_change(client, db_session, identity_provider):
    user = await create_user(db_session, "old@example.com", UserRole.HEAD_OF_OPERATIONS)
    user.external_id = "ext-1"
    await db_session.commit()

    await client.get("/auth/callback", params={"code": "abc"})

    assert await _user_by_email(db_session, "old@example.com") is None
    renamed = await _user_by_email(db_session, "someone@example.com")
    assert renamed.id == user.id
    assert renamed.role == UserRole.HEAD_OF_OPERATIONS


async def test_provider_failure_redirects_with_error(client, db_session, identity_provider):
    identity_provider.fail = True

    response = await client.get("/auth/callback", params={"code": "abc"})

    assert response.status_code == 302
    assert response.headers["location"] == "/auth/login?error=auth_failed"
    assert _cookie_value(response, "auth_token") is None
    assert AuditAction.LOGIN_FAILED in await _audit_actions(db_session)


async def test_deactivated_user_cannot_log_in(client, db_session, identity_provider):
    await create_user(db_session, "someone@example.com", UserRole.AREA_MANAGER, is_active=False)

    response = await client.get("/auth/callback", params={"code": "abc"})

    assert response.headers["location"] == "/auth/login?error=account_disabled"
    assert (await db_session.execute(select(func.count(AuthSession.id)))).scalar_one() == 0


async def test_callback_follows_safe_state_only(client, identity_provider):
    response = await client.get("/auth/callback", params={"code": "a", "state": "/checklist/new"})
    assert response.headers["location"] == "/checklist/new"

    for unsafe in ("//evil.example.com", "https://evil.example.com", "/\\evil.example.com"):
        response = await client.get("/auth/callback", params={"code": "a", "state": unsafe})
        assert response.headers["location"] == "/dashboard"


async def test_second_login_replaces_first_session(client, db_session, identity_provider):
    first = _cookie_value(await client.get("/auth/callback", params={"code": "one"}), "auth_token")
    second = _cookie_value(await client.get("/auth/callback", params={"code": "two"}), "auth_token")

    tokens = (await db_session.execute(select(AuthSession.token))).scalars().all()
    assert tokens == [second]
    assert first != second


# Logout

async def test_logout_deletes_session_and_clears_cookies(client, db_session, manager_user):
    headers = await login_headers(db_session, manager_user)

    response = await client.get("/auth/logout", headers=headers)

    assert response.status_code == 302
    assert response.headers["location"] == "/auth/login"
    set_cookies = response.headers.get_list("set-cookie")
    assert any(h.startswith("auth_token=") and "Max-Age=0" in h for h in set_cookies)
    assert any(h.startswith("impersonate_user=") and "Max-Age=0" in h for h in set_cookies)

    assert (await db_session.execute(select(func.count(AuthSession.id)))).scalar_one() == 0
    assert AuditAction.LOGOUT in await _audit_actions(db_session)

    response = await client.get("/api/checklists", headers=headers)
    assert response.status_code == 401


async def test_logout_without_session_is_harmless(client):
    response = await client.get("/auth/logout")
    assert response.status_code == 302
    assert response.headers["location"] == "/auth/login"

    response = await client.get("/auth/logout", headers=cookie_headers("junk"))
    assert response.status_code == 302
