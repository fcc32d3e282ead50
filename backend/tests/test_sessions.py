"""
Session and role context tests.

Verifies:
- Login issues a session token and CSRF token; bad credentials are logged
- Idle and absolute timeouts end a session
- Only real administrators may impersonate
- Site-bound impersonation targets fall back to the first active site,
  or revert to the real view when no active site exists
- reset-view restores the real role and site
"""

from datetime import timedelta

from casework.models import SecurityEvent, SessionToken
from casework.permissions import roles
from casework.services import session_service
from casework.time_utils import utcnow
from conftest import PASSWORD, auth_headers, get_auth_token, login


class TestLogin:

    def test_login_returns_token_and_context(self, client, staff, site):
        payload = login(client, "sam_staff")
        assert len(payload["token"]) == 64
        assert payload["csrf_token"]
        assert payload["context"]["real_role"] == roles.AZWK_STAFF
        assert payload["context"]["active_site_id"] == site.id
        assert payload["context"]["is_impersonating"] is False

    def test_bad_password_logged(self, client, db_session, staff):
        response = client.post("/api/auth/login", json={"username": "sam_staff", "password": "nope"})
        assert response.status_code == 401
        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.success is False

    def test_missing_fields(self, client, db_session):
        response = client.post("/api/auth/login", json={"username": "sam_staff"})
        assert response.status_code == 400

    def test_inactive_user_cannot_login(self, client, make_user):
        make_user("gone_user", roles.DIRECTOR, is_active=False)
        response = client.post("/api/auth/login", json={"username": "gone_user", "password": PASSWORD})
        assert response.status_code == 401

    def test_finance_department_flag(self, client, finance_staff):
        assert login(client, "fran_finance")["context"]["is_finance_dept"] is True


class TestSessionLifetime:

    def test_session_route_requires_token(self, client, db_session):
        assert client.get("/api/auth/session").status_code == 401

    def test_idle_timeout_revokes(self, client, db_session, staff):
        token = get_auth_token(client, "sam_staff")
        record = db_session.query(SessionToken).one()
        record.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert client.get("/api/auth/session", headers=auth_headers(token)).status_code == 401
        db_session.refresh(record)
        assert record.is_revoked is True
        assert record.revoked_reason == "Idle timeout"

    def test_absolute_timeout(self, client, db_session, staff):
        token = get_auth_token(client, "sam_staff")
        record = db_session.query(SessionToken).one()
        record.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert client.get("/api/auth/session", headers=auth_headers(token)).status_code == 401

    def test_deactivated_user_loses_session(self, client, db_session, staff):
        token = get_auth_token(client, "sam_staff")
        staff.is_active = False
        db_session.commit()

        assert client.get("/api/auth/session", headers=auth_headers(token)).status_code == 401

    def test_logout_revokes(self, client, db_session, staff):
        token = get_auth_token(client, "sam_staff")
        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/session", headers=auth_headers(token)).status_code == 401
        assert session_service.validate_session(token) is None


class TestImpersonation:

    def test_non_admin_denied(self, client, db_session, director):
        token = get_auth_token(client, "dana_director")
        response = client.post(
            "/api/auth/impersonate",
            json={"role": roles.AZWK_STAFF, "site_id": "all"},
            headers=auth_headers(token),
        )
        assert response.status_code == 403
        event = db_session.query(SecurityEvent).filter_by(action="IMPERSONATE").one()
        assert event.success is False

    def test_admin_becomes_director(self, client, db_session, administrator, site):
        token = get_auth_token(client, "ari_admin")
        response = client.post(
            "/api/auth/impersonate",
            json={"role": roles.DIRECTOR, "site_id": site.id},
            headers=auth_headers(token),
        )
        assert response.status_code == 200
        context = response.get_json()["context"]
        assert context["real_role"] == roles.ADMINISTRATOR
        assert context["active_role"] == roles.DIRECTOR
        assert context["active_site_id"] == site.id
        assert context["is_impersonating"] is True

        # The overlay persists on the session
        current = client.get("/api/auth/session", headers=auth_headers(token)).get_json()["context"]
        assert current["active_role"] == roles.DIRECTOR

    def test_staff_target_falls_back_to_first_active_site(self, client, db_session, administrator, site, other_site):
        token = get_auth_token(client, "ari_admin")
        response = client.post(
            "/api/auth/impersonate",
            json={"role": roles.AZWK_STAFF, "site_id": "all"},
            headers=auth_headers(token),
        )
        assert response.status_code == 200
        context = response.get_json()["context"]
        assert context["active_role"] == roles.AZWK_STAFF
        assert context["active_site_id"] == site.id

    def test_staff_target_without_sites_reverts(self, client, db_session, administrator):
        token = get_auth_token(client, "ari_admin")
        response = client.post(
            "/api/auth/impersonate",
            json={"role": roles.OUTSIDE_STAFF},
            headers=auth_headers(token),
        )
        assert response.status_code == 200
        context = response.get_json()["context"]
        assert context["active_role"] == roles.ADMINISTRATOR
        assert context["is_impersonating"] is False

    def test_disallowed_target_role(self, client, db_session, administrator):
        token = get_auth_token(client, "ari_admin")
        response = client.post(
            "/api/auth/impersonate",
            json={"role": roles.FINANCE},
            headers=auth_headers(token),
        )
        assert response.status_code == 400

    def test_inactive_site_rejected(self, client, db_session, administrator, site):
        site.is_active = False
        db_session.commit()
        token = get_auth_token(client, "ari_admin")
        response = client.post(
            "/api/auth/impersonate",
            json={"role": roles.DIRECTOR, "site_id": site.id},
            headers=auth_headers(token),
        )
        assert response.status_code == 400

    def test_reset_view(self, client, db_session, administrator, site):
        token = get_auth_token(client, "ari_admin")
        client.post(
            "/api/auth/impersonate",
            json={"role": roles.DIRECTOR, "site_id": site.id},
            headers=auth_headers(token),
        )

        response = client.post("/api/auth/reset-view", headers=auth_headers(token))
        assert response.status_code == 200
        context = response.get_json()["context"]
        assert context["active_role"] == roles.ADMINISTRATOR
        assert context["active_site_id"] is None

        events = [e.event_type for e in db_session.query(SecurityEvent).order_by(SecurityEvent.id)]
        assert events == ["IMPERSONATION_START", "IMPERSONATION_RESET"]

    def test_permissions_follow_active_role(self, client, db_session, administrator, site, staff_budget, vendor):
        token = get_auth_token(client, "ari_admin")
        url = f"/api/allocations/field-permissions?budget_id={staff_budget.id}"

        # Administrators do not see allocation budgets in their own right
        assert client.get(url, headers=auth_headers(token)).status_code == 404

        client.post(
            "/api/auth/impersonate",
            json={"role": roles.DIRECTOR, "site_id": "all"},
            headers=auth_headers(token),
        )
        response = client.get(url, headers=auth_headers(token))
        assert response.status_code == 200
        body = response.get_json()
        assert body["active_role"] == roles.DIRECTOR
        assert body["payment_status_editable"] is True
        assert body["finance_editable"] is False
