"""
CLI command tests (flask system / users / apikeys / maintenance).
"""

from datetime import timedelta

from casework.models import ApiKey, Department, SecurityEvent, SessionToken, Site, User
from casework.permissions import roles
from casework.services import api_key_service
from casework.time_utils import utcnow


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init", "--site", "Central Office"])
    assert result.exit_code == 0, result.output
    result = runner.invoke(args=["system", "init", "--site", "Central Office"])
    assert result.exit_code == 0, result.output

    assert db_session.query(Site).filter_by(name="Central Office").count() == 1
    assert db_session.query(Department).filter_by(slug=roles.FINANCE_DEPT_SLUG).count() == 1
    admin = db_session.query(User).filter_by(username="admin").one()
    assert admin.role == roles.ADMINISTRATOR


def test_users_create(app, db_session, site):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--username", "kiosk1",
        "--full-name", "Front Desk",
        "--password", "Password123!",
        "--role", roles.KIOSK,
        "--site-id", str(site.id),
    ])
    assert result.exit_code == 0, result.output
    assert "PASS" in result.output
    assert db_session.query(User).filter_by(username="kiosk1").one().site_id == site.id


def test_apikeys_create_and_revoke(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "apikeys", "create",
        "--name", "Reporting",
        "--permission", "generate:reports",
        "--permission", "read:all_checkin_data",
    ])
    assert result.exit_code == 0, result.output

    plaintext = next(
        line.split()[1] for line in result.output.splitlines() if line.startswith("KEY")
    )
    key = api_key_service.authenticate_api_key(plaintext)
    assert key is not None
    assert key.permissions == ["generate:reports", "read:all_checkin_data"]

    result = runner.invoke(args=["apikeys", "revoke", str(key.id)])
    assert "PASS" in result.output
    assert db_session.get(ApiKey, key.id).revoked_at is not None


def test_apikeys_rejects_unknown_permission(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["apikeys", "create", "--name", "Bad", "--permission", "delete:everything"])
    assert result.exit_code != 0
    assert db_session.query(ApiKey).count() == 0


def test_maintenance_cleanup(app, db_session, staff):
    old = utcnow() - timedelta(days=120)
    db_session.add(SecurityEvent(event_type="LOGOUT", success=True, occurred_at=old))
    db_session.add(SecurityEvent(event_type="LOGOUT", success=True, occurred_at=utcnow()))
    db_session.add(SessionToken(
        user_id=staff.id,
        token_hash="a" * 64,
        csrf_token="b" * 64,
        created_at=old,
        last_used_at=old,
        expires_at=old + timedelta(hours=24),
    ))
    db_session.commit()

    runner = app.test_cli_runner()
    result = runner.invoke(args=["maintenance", "cleanup-security-events"])
    assert "Deleted 1 security events" in result.output
    result = runner.invoke(args=["maintenance", "cleanup-sessions"])
    assert "Deleted 1 expired or revoked sessions" in result.output

    assert db_session.query(SecurityEvent).count() == 1
    assert db_session.query(SessionToken).count() == 0


def test_apikeys_permissions_listing(app):
    result = app.test_cli_runner().invoke(args=["apikeys", "permissions"])
    assert result.exit_code == 0, result.output
    assert "[REPORTS]" in result.output
    assert "read:own_allocation_data" in result.output
