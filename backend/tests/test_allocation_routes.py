"""
AJAX allocation handler tests.

Verifies:
- add / edit / delete require a CSRF token matching the session
- reads do not need CSRF and only show visible budgets
- server-side predicates apply whatever the client sends
- {"success": false, "message"} error shape
"""

from decimal import Decimal

import pytest

from casework.models import BudgetAllocation
from casework.services import allocation_service
from conftest import auth_headers, context_for, login


AJAX = "/api/allocations/ajax"


def _session(client, username):
    payload = login(client, username)
    return auth_headers(payload["token"]), payload["csrf_token"]


@pytest.fixture
def allocation(db_session, staff, staff_budget, vendor):
    return allocation_service.add_allocation(
        context_for(staff),
        staff_budget.id,
        {"transaction_date": "2025-09-15", "vendor_id": vendor.id, "funding_dw": "10"},
    )


@pytest.fixture
def admin_allocation(db_session, finance_user, finance_access, admin_budget, vendor):
    return allocation_service.add_allocation(
        context_for(finance_user),
        admin_budget.id,
        {"transaction_date": "2025-09-15", "vendor_id": vendor.id},
    )


class TestCsrf:

    @pytest.mark.parametrize("action", ["add", "edit", "delete"])
    def test_mutations_require_csrf(self, client, db_session, staff, action):
        headers, _ = _session(client, "sam_staff")
        response = client.post(AJAX, json={"action": action}, headers=headers)
        assert response.status_code == 403
        body = response.get_json()
        assert body["success"] is False
        assert "CSRF" in body["message"]

    def test_wrong_csrf(self, client, db_session, staff, staff_budget, vendor):
        headers, _ = _session(client, "sam_staff")
        response = client.post(
            AJAX,
            json={"action": "add", "csrf_token": "not-it", "budget_id": staff_budget.id},
            headers=headers,
        )
        assert response.status_code == 403
        assert db_session.query(BudgetAllocation).count() == 0

    def test_mutation_over_get_rejected(self, client, db_session, staff):
        headers, csrf = _session(client, "sam_staff")
        response = client.get(f"{AJAX}?action=delete&csrf_token={csrf}", headers=headers)
        assert response.status_code == 405

    def test_unknown_action(self, client, db_session, staff):
        headers, _ = _session(client, "sam_staff")
        response = client.post(AJAX, json={"action": "drop"}, headers=headers)
        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_requires_session(self, client, db_session):
        assert client.post(AJAX, json={"action": "add"}).status_code == 401


class TestAddEdit:

    def test_add(self, client, db_session, staff, staff_budget, vendor):
        headers, csrf = _session(client, "sam_staff")
        response = client.post(
            AJAX,
            json={
                "action": "add",
                "budget_id": staff_budget.id,
                "transaction_date": "2025-09-15",
                "vendor_id": vendor.id,
                "funding_dw": "75.50",
            },
            headers={**headers, "X-CSRF-Token": csrf},
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["success"] is True
        assert body["allocation"]["funding_dw"] == "75.50"

    def test_add_named_vendor_without_client_name(self, client, db_session, staff, staff_budget, named_vendor):
        headers, csrf = _session(client, "sam_staff")
        response = client.post(
            AJAX,
            json={
                "action": "add",
                "csrf_token": csrf,
                "budget_id": staff_budget.id,
                "transaction_date": "2025-09-15",
                "vendor_id": named_vendor.id,
            },
            headers=headers,
        )
        assert response.status_code == 400
        assert response.get_json()["success"] is False
        assert db_session.query(BudgetAllocation).count() == 0

    def test_staff_void_rejected(self, client, db_session, staff, allocation):
        headers, csrf = _session(client, "sam_staff")
        response = client.post(
            AJAX,
            json={
                "action": "edit",
                "csrf_token": csrf,
                "allocation_id": allocation.id,
                "payment_status": "Void",
            },
            headers=headers,
        )
        assert response.status_code == 403
        db_session.expire_all()
        assert db_session.get(BudgetAllocation, allocation.id).payment_status == "U"

    def test_director_edit_reports_dropped_fields(self, client, db_session, director, allocation):
        headers, csrf = _session(client, "dana_director")
        response = client.post(
            AJAX,
            json={
                "action": "edit",
                "csrf_token": csrf,
                "allocation_id": allocation.id,
                "funding_dw": 100,
                "fin_comments": "ignored",
                "payment_status": "Void",
            },
            headers=headers,
        )
        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["updated_fields"] == ["funding_dw", "payment_status"]
        assert body["dropped_fields"] == ["fin_comments"]

    def test_edit_with_no_permitted_fields(self, client, db_session, director, admin_allocation):
        headers, csrf = _session(client, "dana_director")
        response = client.post(
            AJAX,
            json={"action": "edit", "csrf_token": csrf, "allocation_id": admin_allocation.id, "funding_dw": 1},
            headers=headers,
        )
        assert response.status_code == 403
        assert response.get_json()["dropped_fields"] == ["funding_dw"]

    def test_stale_version(self, client, db_session, staff, allocation):
        headers, csrf = _session(client, "sam_staff")
        stale = allocation.version_id
        allocation_service.update_allocation(context_for(staff), allocation.id, {"funding_dw": "20"})

        response = client.post(
            AJAX,
            json={
                "action": "edit",
                "csrf_token": csrf,
                "allocation_id": allocation.id,
                "version_id": stale,
                "funding_dw": "30",
            },
            headers=headers,
        )
        assert response.status_code == 409
        assert response.get_json()["success"] is False


class TestDelete:

    def test_finance_deletes_admin_allocation(self, client, db_session, finance_user, admin_allocation):
        headers, csrf = _session(client, "fin_role")
        response = client.post(
            AJAX,
            json={"action": "delete", "csrf_token": csrf, "allocation_id": admin_allocation.id},
            headers=headers,
        )
        assert response.status_code == 200
        assert allocation_service.get_allocation(admin_allocation.id) is None

    def test_director_cannot_delete(self, client, db_session, director, admin_allocation):
        headers, csrf = _session(client, "dana_director")
        response = client.post(
            AJAX,
            json={"action": "delete", "csrf_token": csrf, "allocation_id": admin_allocation.id},
            headers=headers,
        )
        assert response.status_code == 403
        assert allocation_service.get_allocation(admin_allocation.id) is not None

    def test_missing_allocation(self, client, db_session, finance_user):
        headers, csrf = _session(client, "fin_role")
        response = client.post(
            AJAX,
            json={"action": "delete", "csrf_token": csrf, "allocation_id": 999},
            headers=headers,
        )
        assert response.status_code == 404


class TestFinanceDepartmentScope:
    """A finance-role user without access to the workforce department."""

    @pytest.fixture
    def workforce_allocation(self, db_session, finance_staff, admin_budget, vendor):
        return allocation_service.add_allocation(
            context_for(finance_staff),
            admin_budget.id,
            {"transaction_date": "2025-09-15", "vendor_id": vendor.id, "funding_dw": "10"},
        )

    def test_add_is_not_found(self, client, db_session, finance_user, admin_budget, vendor):
        headers, csrf = _session(client, "fin_role")
        response = client.post(
            AJAX,
            json={
                "action": "add",
                "csrf_token": csrf,
                "budget_id": admin_budget.id,
                "transaction_date": "2025-09-15",
                "vendor_id": vendor.id,
            },
            headers=headers,
        )
        assert response.status_code == 404
        assert response.get_json()["success"] is False
        assert db_session.query(BudgetAllocation).count() == 0

    def test_edit_is_not_found(self, client, db_session, finance_user, workforce_allocation):
        headers, csrf = _session(client, "fin_role")
        response = client.post(
            AJAX,
            json={
                "action": "edit",
                "csrf_token": csrf,
                "allocation_id": workforce_allocation.id,
                "fin_comments": "Paid",
                "funding_dw": 1,
            },
            headers=headers,
        )
        assert response.status_code == 404
        db_session.expire_all()
        stored = db_session.get(BudgetAllocation, workforce_allocation.id)
        assert stored.fin_comments is None
        assert stored.funding_dw == Decimal("10.00")

    def test_delete_is_not_found(self, client, db_session, finance_user, workforce_allocation):
        headers, csrf = _session(client, "fin_role")
        response = client.post(
            AJAX,
            json={"action": "delete", "csrf_token": csrf, "allocation_id": workforce_allocation.id},
            headers=headers,
        )
        assert response.status_code == 404
        assert allocation_service.get_allocation(workforce_allocation.id) is not None

    def test_other_staff_edit_is_not_found(self, client, db_session, other_staff, allocation):
        headers, csrf = _session(client, "olive_staff")
        response = client.post(
            AJAX,
            json={"action": "edit", "csrf_token": csrf, "allocation_id": allocation.id, "funding_dw": 1},
            headers=headers,
        )
        assert response.status_code == 404


class TestReads:

    def test_details(self, client, db_session, staff, allocation):
        headers, _ = _session(client, "sam_staff")
        response = client.get(
            f"{AJAX}?action=get_allocation_details&allocation_id={allocation.id}", headers=headers
        )
        assert response.status_code == 200
        body = response.get_json()
        assert body["allocation"]["id"] == allocation.id
        assert body["field_permissions"] == {
            "staff_editable": True,
            "finance_editable": False,
            "payment_status_editable": False,
        }

    def test_details_hidden_from_other_staff(self, client, db_session, other_staff, allocation):
        headers, _ = _session(client, "olive_staff")
        response = client.get(
            f"{AJAX}?action=get_allocation_details&allocation_id={allocation.id}", headers=headers
        )
        assert response.status_code == 404

    def test_for_filters(self, client, db_session, staff, allocation, admin_budget, staff_budget):
        headers, _ = _session(client, "sam_staff")
        response = client.post(AJAX, json={"action": "get_allocations_for_filters"}, headers=headers)
        assert response.status_code == 200
        body = response.get_json()
        assert [b["id"] for b in body["budgets"]] == [staff_budget.id]
        assert [a["id"] for a in body["allocations"]] == [allocation.id]

    def test_field_permissions_endpoint(self, client, db_session, finance_staff, staff_budget):
        headers, _ = _session(client, "fran_finance")
        response = client.get(
            f"/api/allocations/field-permissions?budget_id={staff_budget.id}", headers=headers
        )
        assert response.status_code == 200
        body = response.get_json()
        assert body["staff_editable"] is False
        assert body["finance_editable"] is True

    def test_field_permissions_bad_id(self, client, db_session, staff):
        headers, _ = _session(client, "sam_staff")
        response = client.get("/api/allocations/field-permissions?budget_id=x", headers=headers)
        assert response.status_code == 400
