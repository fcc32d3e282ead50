"""
Pytest fixtures for casework backend tests.

Provides test database setup, a site / department / grant skeleton, one
user per role, budgets of both types, vendors, and API-key helpers.
"""

from datetime import date

import pytest
from casework import create_app
from casework.extensions import db
from casework.models import (
    Budget,
    Department,
    FinanceDepartmentAccess,
    Grant,
    Site,
    User,
    Vendor,
)
from casework.permissions import roles
from casework.services import api_key_service, session_service
from casework.services.auth_service import hash_password


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INTERNAL_API_KEY': 'internal-test-key',
        'INTERNAL_API_BASE_URL': 'http://internal.test/api/v1',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash(app):
    """bcrypt is slow; hash the shared test password once."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def site(db_session):
    site = Site(name="Central Office", is_active=True)
    db_session.add(site)
    db_session.commit()
    return site


@pytest.fixture(scope='function')
def other_site(db_session):
    site = Site(name="East Office", is_active=True)
    db_session.add(site)
    db_session.commit()
    return site


@pytest.fixture(scope='function')
def finance_dept(db_session):
    department = Department(name="Finance", slug=roles.FINANCE_DEPT_SLUG)
    db_session.add(department)
    db_session.commit()
    return department


@pytest.fixture(scope='function')
def workforce_dept(db_session):
    department = Department(name="Workforce", slug="workforce")
    db_session.add(department)
    db_session.commit()
    return department


@pytest.fixture(scope='function')
def grant(db_session):
    grant = Grant(name="WIOA Adult", grant_code="WIOA-A")
    db_session.add(grant)
    db_session.commit()
    return grant


@pytest.fixture(scope='function')
def make_user(db_session, password_hash):
    """Factory: make_user("alice", roles.DIRECTOR, site_id=..., department_id=...)."""
    def _make(username, role, *, site_id=None, department_id=None, is_active=True):
        user = User(
            username=username,
            full_name=username.replace("_", " ").title(),
            email=f"{username}@example.org",
            password_hash=password_hash,
            role=role,
            site_id=site_id,
            department_id=department_id,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def director(make_user):
    return make_user("dana_director", roles.DIRECTOR)


@pytest.fixture(scope='function')
def administrator(make_user):
    return make_user("ari_admin", roles.ADMINISTRATOR)


@pytest.fixture(scope='function')
def staff(make_user, site, workforce_dept):
    """azwk_staff outside the finance department."""
    return make_user("sam_staff", roles.AZWK_STAFF, site_id=site.id, department_id=workforce_dept.id)


@pytest.fixture(scope='function')
def other_staff(make_user, site, workforce_dept):
    return make_user("olive_staff", roles.AZWK_STAFF, site_id=site.id, department_id=workforce_dept.id)


@pytest.fixture(scope='function')
def finance_staff(make_user, site, finance_dept):
    """azwk_staff in the finance department."""
    return make_user("fran_finance", roles.AZWK_STAFF, site_id=site.id, department_id=finance_dept.id)


@pytest.fixture(scope='function')
def finance_user(make_user, finance_dept):
    """Holder of the finance role."""
    return make_user("fin_role", roles.FINANCE, department_id=finance_dept.id)


@pytest.fixture(scope='function')
def finance_access(db_session, finance_user, workforce_dept):
    """Lets finance_user see the workforce department's budgets."""
    access = FinanceDepartmentAccess(
        finance_user_id=finance_user.id,
        accessible_department_id=workforce_dept.id,
    )
    db_session.add(access)
    db_session.commit()
    return access


@pytest.fixture(scope='function')
def vendor(db_session):
    vendor = Vendor(name="Community College", client_name_required=False, is_active=True)
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture(scope='function')
def named_vendor(db_session):
    """Vendor whose allocations must carry a client name."""
    vendor = Vendor(name="Truck Driving School", client_name_required=True, is_active=True)
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture(scope='function')
def staff_budget(db_session, staff, grant, workforce_dept, site):
    budget = Budget(
        name="Sam FY26",
        budget_type="Staff",
        user_id=staff.id,
        grant_id=grant.id,
        department_id=workforce_dept.id,
        site_id=site.id,
        fiscal_year_start=date(2025, 7, 1),
        fiscal_year_end=date(2026, 6, 30),
    )
    db_session.add(budget)
    db_session.commit()
    return budget


@pytest.fixture(scope='function')
def admin_budget(db_session, grant, workforce_dept):
    budget = Budget(
        name="Workforce Admin FY26",
        budget_type="Admin",
        user_id=None,
        grant_id=grant.id,
        department_id=workforce_dept.id,
        fiscal_year_start=date(2025, 7, 1),
        fiscal_year_end=date(2026, 6, 30),
    )
    db_session.add(budget)
    db_session.commit()
    return budget


def context_for(user, session=None):
    """RequestContext for a user, as @require_auth would build it."""
    return session_service.build_context(user, session)


@pytest.fixture(scope='function')
def make_api_key(db_session):
    """Factory returning the plaintext of a new v1 key."""
    def _make(*permissions, site_id=None, user_id=None, name="test key"):
        _, plaintext = api_key_service.create_api_key(
            name=name,
            permissions=list(permissions),
            associated_site_id=site_id,
            associated_user_id=user_id,
        )
        return plaintext
    return _make


def login(client, username: str, password: str = PASSWORD) -> dict:
    """Log in and return the response JSON (token, csrf_token, context)."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    assert response.status_code == 200, response.get_json()
    return response.get_json()


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    return login(client, username, password)['token']


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def key_headers(plaintext: str) -> dict:
    return {'X-API-Key': plaintext}
