"""
Report query builder tests.

Verifies:
- total_pages = ceil(total / limit), 0 for no rows
- a page past the end returns empty data without error
- site-scoped keys are forced to their site and the ignored filter is logged
- own-scoped keys ignore everything but budget_id
- date validation and inclusive end date
"""

import logging
from datetime import date, datetime

import pytest

from casework.errors import ValidationError
from casework.models import BudgetAllocation, CheckIn
from casework.services import api_key_service, reporting_service


def _checkin(db_session, site, when, first_name="Pat"):
    checkin = CheckIn(
        site_id=site.id,
        first_name=first_name,
        last_name="Visitor",
        check_in_time=when,
    )
    db_session.add(checkin)
    db_session.commit()
    return checkin


def _key(*permissions, site_id=None, user_id=None):
    api_key, _ = api_key_service.create_api_key(
        name="report key",
        permissions=list(permissions),
        associated_site_id=site_id,
        associated_user_id=user_id,
    )
    return api_key


class TestPagination:

    @pytest.mark.parametrize(
        "total,limit,expected_pages",
        [(0, 50, 0), (1, 50, 1), (50, 50, 1), (51, 50, 2), (1000, 1, 1000)],
    )
    def test_total_pages(self, total, limit, expected_pages):
        pagination = reporting_service.build_pagination(1, limit, total)
        assert pagination["total_pages"] == expected_pages
        assert pagination["total_records"] == total

    def test_page_past_end_is_empty(self, db_session, site):
        for day in range(1, 4):
            _checkin(db_session, site, datetime(2025, 9, day, 9, 0))
        key = _key("generate:reports", "read:all_checkin_data")

        report = reporting_service.generate_report(
            key, "checkin_detail", {"page": "5", "limit": "2"}
        )
        assert report["data"] == []
        assert report["pagination"] == {
            "page": 5,
            "limit": 2,
            "total_records": 3,
            "total_pages": 2,
        }

    @pytest.mark.parametrize(
        "args",
        [{"limit": "0"}, {"limit": "1001"}, {"page": "0"}, {"page": "abc"}, {"limit": "2.5"}],
    )
    def test_limit_and_page_bounds(self, args):
        with pytest.raises(ValidationError) as exc:
            reporting_service.parse_report_params(args)
        assert exc.value.code == "INVALID_QUERY_PARAM"

    def test_forum_ceiling_is_distinct(self):
        assert reporting_service.parse_page_limit({"limit": "100"}, 25, 100) == (1, 100)
        with pytest.raises(ValidationError):
            reporting_service.parse_page_limit({"limit": "101"}, 25, 100)


class TestDates:

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            reporting_service.parse_report_params(
                {"start_date": "2025-09-10", "end_date": "2025-09-01"}
            )

    def test_bad_date_format(self):
        with pytest.raises(ValidationError):
            reporting_service.parse_report_params({"start_date": "09/01/2025"})

    def test_end_date_includes_whole_day(self, db_session, site):
        _checkin(db_session, site, datetime(2025, 9, 1, 23, 30), first_name="Late")
        _checkin(db_session, site, datetime(2025, 9, 2, 0, 0, 1), first_name="Next")
        key = _key("generate:reports", "read:all_checkin_data")

        report = reporting_service.generate_report(
            key, "checkin_detail", {"start_date": "2025-09-01", "end_date": "2025-09-01"}
        )
        assert [row["first_name"] for row in report["data"]] == ["Late"]


class TestCheckinScope:

    def test_site_scope_forces_site_and_logs(self, db_session, caplog, site, other_site):
        _checkin(db_session, site, datetime(2025, 9, 1, 9, 0), first_name="Home")
        _checkin(db_session, other_site, datetime(2025, 9, 1, 10, 0), first_name="Away")
        key = _key("generate:reports", "read:site_checkin_data", site_id=site.id)

        with caplog.at_level(logging.WARNING):
            report = reporting_service.generate_report(
                key, "checkin_detail", {"site_id": str(other_site.id)}
            )

        assert [row["first_name"] for row in report["data"]] == ["Home"]
        assert "Report parameter 'site_id' ignored" in caplog.text
        assert f"key ID {key.id}" in caplog.text

    def test_site_scope_ignores_malformed_site_filter(self, db_session, caplog, site):
        _checkin(db_session, site, datetime(2025, 9, 1, 9, 0), first_name="Home")
        key = _key("generate:reports", "read:site_checkin_data", site_id=site.id)

        with caplog.at_level(logging.WARNING):
            report = reporting_service.generate_report(key, "checkin_detail", {"site_id": "abc"})

        assert [row["first_name"] for row in report["data"]] == ["Home"]
        assert "Report parameter 'site_id' ignored" in caplog.text

    def test_all_scope_applies_site_filter(self, db_session, site, other_site):
        _checkin(db_session, site, datetime(2025, 9, 1, 9, 0), first_name="Home")
        _checkin(db_session, other_site, datetime(2025, 9, 1, 10, 0), first_name="Away")
        key = _key("generate:reports", "read:all_checkin_data")

        report = reporting_service.generate_report(
            key, "checkin_detail", {"site_id": str(other_site.id)}
        )
        assert [row["first_name"] for row in report["data"]] == ["Away"]

    def test_newest_first(self, db_session, site):
        _checkin(db_session, site, datetime(2025, 9, 1, 9, 0), first_name="Early")
        _checkin(db_session, site, datetime(2025, 9, 3, 9, 0), first_name="Later")
        key = _key("generate:reports", "read:all_checkin_data")

        report = reporting_service.generate_report(key, "checkin_detail", {})
        assert [row["first_name"] for row in report["data"]] == ["Later", "Early"]


class TestAllocationScope:

    @pytest.fixture
    def rows(self, db_session, staff_budget, admin_budget, vendor, staff):
        for budget, day in ((staff_budget, 1), (admin_budget, 2)):
            db_session.add(BudgetAllocation(
                budget_id=budget.id,
                vendor_id=vendor.id,
                transaction_date=date(2025, 9, day),
                created_by_user_id=staff.id,
            ))
        db_session.commit()

    def test_own_scope_limits_to_owner(self, db_session, caplog, rows, staff, staff_budget, grant):
        key = _key("generate:reports", "read:own_allocation_data", user_id=staff.id)

        with caplog.at_level(logging.WARNING):
            report = reporting_service.generate_report(
                key, "allocation_detail", {"grant_id": str(grant.id)}
            )

        assert [row["budget_id"] for row in report["data"]] == [staff_budget.id]
        assert report["data"][0]["budget_owner_user_id"] == staff.id
        assert "Report parameter 'grant_id' ignored" in caplog.text

    def test_own_scope_ignores_malformed_out_of_scope_filter(self, db_session, rows, staff, staff_budget):
        key = _key("generate:reports", "read:own_allocation_data", user_id=staff.id)

        report = reporting_service.generate_report(key, "allocation_detail", {"department_id": "abc"})
        assert [row["budget_id"] for row in report["data"]] == [staff_budget.id]

    def test_own_scope_still_validates_budget_filter(self, db_session, rows, staff):
        key = _key("generate:reports", "read:own_allocation_data", user_id=staff.id)
        with pytest.raises(ValidationError) as exc:
            reporting_service.generate_report(key, "allocation_detail", {"budget_id": "abc"})
        assert exc.value.code == "INVALID_QUERY_PARAM"

    def test_all_scope_site_filter_uses_budget_site(self, db_session, rows, site, staff_budget):
        key = _key("generate:reports", "read:all_allocation_data")

        report = reporting_service.generate_report(
            key, "allocation_detail", {"site_id": str(site.id)}
        )
        assert [row["budget_id"] for row in report["data"]] == [staff_budget.id]

    def test_all_scope_orders_by_date_desc(self, db_session, rows, admin_budget, staff_budget):
        key = _key("generate:reports", "read:all_allocation_data")

        report = reporting_service.generate_report(key, "allocation_detail", {})
        assert [row["budget_id"] for row in report["data"]] == [admin_budget.id, staff_budget.id]
        assert report["pagination"]["total_records"] == 2

    def test_bad_filter_value(self, db_session, rows):
        key = _key("generate:reports", "read:all_allocation_data")
        with pytest.raises(ValidationError) as exc:
            reporting_service.generate_report(key, "allocation_detail", {"budget_id": "-1"})
        assert exc.value.code == "INVALID_QUERY_PARAM"
