# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Report Query Builder

WHY: Reports are where a mis-scoped filter leaks data across sites or
budget owners. Every query starts from the caller's ReportScope
(casework.permissions.scopes); optional filters are layered on only when
the scope allows them. Filters outside the scope are ignored and logged at
WARNING, never used to broaden the result.

PAGINATION: COUNT and data queries share the same filters.
total_pages = ceil(total_records / limit), 0 when there are no rows.
A page past the end returns an empty data list.

DATES: start_date compares >=; end_date is inclusive of the whole day.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time

from flask import current_app

from ..extensions import db
from ..models import Budget, BudgetAllocation, CheckIn
from ..errors import ValidationError
from ..permissions.scopes import (
    ALLOCATION_FILTERS,
    REPORT_ALLOCATION_DETAIL,
    REPORT_CHECKIN_DETAIL,
    SCOPE_OWN,
    SCOPE_SITE,
    ReportScope,
    report_scope,
)
from casework.time_utils import end_of_day, parse_iso_date, to_iso_date, to_utc_z


REPORT_DEFAULT_LIMIT = 50
REPORT_MAX_LIMIT = 1000

RESERVED_PARAMS = ("type", "start_date", "end_date", "page", "limit")


@dataclass(frozen=True)
class ReportParams:
    start_date: date | None = None
    end_date: date | None = None
    page: int = 1
    limit: int = REPORT_DEFAULT_LIMIT
    other_params: dict = field(default_factory=dict)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _invalid(message: str) -> ValidationError:
    return ValidationError(message, code="INVALID_QUERY_PARAM")


def _parse_bounded_int(raw, name: str, default: int, minimum: int, maximum: int | None) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    text = str(raw).strip()
    if not text.lstrip("-").isdigit():
        raise _invalid(_range_message(name, minimum, maximum))
    value = int(text)
    if value < minimum or (maximum is not None and value > maximum):
        raise _invalid(_range_message(name, minimum, maximum))
    return value


def _range_message(name: str, minimum: int, maximum: int | None) -> str:
    if maximum is None:
        return f"Invalid '{name}' parameter. Must be a positive integer."
    return f"Invalid '{name}' parameter. Must be an integer between {minimum} and {maximum}."


def parse_page_limit(args, default_limit: int, max_limit: int) -> tuple[int, int]:
    """(page, limit) from query args; page >= 1, 1 <= limit <= max_limit."""
    page = _parse_bounded_int(args.get("page"), "page", 1, 1, None)
    limit = _parse_bounded_int(args.get("limit"), "limit", default_limit, 1, max_limit)
    return page, limit


def _parse_date(args, name: str) -> date | None:
    raw = args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise _invalid(f"Invalid '{name}' format. Use YYYY-MM-DD.")


def parse_report_params(args, default_limit: int = REPORT_DEFAULT_LIMIT, max_limit: int = REPORT_MAX_LIMIT) -> ReportParams:
    start = _parse_date(args, "start_date")
    end = _parse_date(args, "end_date")
    if start and end and end < start:
        raise _invalid("'end_date' cannot be before 'start_date'.")

    page, limit = parse_page_limit(args, default_limit, max_limit)

    other = {k: v for k, v in args.items() if k not in RESERVED_PARAMS}
    return ReportParams(start_date=start, end_date=end, page=page, limit=limit, other_params=other)


def _is_blank(raw) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def parse_id_filters(params: dict, names) -> dict:
    """Positive-int filters present (and non-blank) in params."""
    parsed = {}
    for name in names:
        raw = params.get(name)
        if _is_blank(raw):
            continue
        text = str(raw).strip()
        if not text.isdigit() or int(text) < 1:
            raise _invalid(f"Invalid '{name}' parameter. Must be a positive integer.")
        parsed[name] = int(text)
    return parsed


def build_pagination(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total_records": total,
        "total_pages": math.ceil(total / limit) if limit > 0 else 0,
    }


def _log_ignored(scope: ReportScope, ignored: list[str], key_id) -> None:
    for name in ignored:
        current_app.logger.warning(
            "Report parameter '%s' ignored for key ID %s due to '%s' scope on %s report",
            name, key_id, scope.scope, scope.report_type,
        )


def _scoped_filters(scope: ReportScope, params: ReportParams, names, key_id) -> dict:
    """
    Filters the scope lets through, validated.

    Out-of-scope filters are logged and dropped before validation, so a
    malformed value the caller may not apply is never an error.
    """
    raw = {name: params.other_params.get(name) for name in names if not _is_blank(params.other_params.get(name))}
    applied, ignored = scope.split_filters(raw)
    _log_ignored(scope, ignored, key_id)
    return parse_id_filters(applied, applied.keys())


def checkin_detail_report(scope: ReportScope, params: ReportParams, *, key_id=None) -> dict:
    applied = _scoped_filters(scope, params, ("site_id",), key_id)

    query = db.session.query(
        CheckIn.id,
        CheckIn.site_id,
        CheckIn.first_name,
        CheckIn.last_name,
        CheckIn.check_in_time,
        CheckIn.client_email,
        CheckIn.notified_staff_id,
    )

    if scope.scope == SCOPE_SITE:
        query = query.filter(CheckIn.site_id == scope.filter_value)
    elif "site_id" in applied:
        query = query.filter(CheckIn.site_id == applied["site_id"])

    if params.start_date:
        query = query.filter(CheckIn.check_in_time >= datetime.combine(params.start_date, time.min))
    if params.end_date:
        query = query.filter(CheckIn.check_in_time <= end_of_day(params.end_date))

    total = query.count()
    rows = query.order_by(
        CheckIn.check_in_time.desc(),
        CheckIn.id.desc(),
    ).limit(params.limit).offset(params.offset).all()

    data = [
        {
            "id": row.id,
            "site_id": row.site_id,
            "first_name": row.first_name,
            "last_name": row.last_name,
            "check_in_time": to_utc_z(row.check_in_time),
            "client_email": row.client_email,
            "notified_staff_id": row.notified_staff_id,
        }
        for row in rows
    ]
    return {"data": data, "pagination": build_pagination(params.page, params.limit, total)}


def allocation_detail_report(scope: ReportScope, params: ReportParams, *, key_id=None) -> dict:
    applied = _scoped_filters(scope, params, ALLOCATION_FILTERS, key_id)

    query = db.session.query(
        BudgetAllocation.id,
        BudgetAllocation.budget_id,
        Budget.name.label("budget_name"),
        Budget.department_id,
        Budget.grant_id,
        Budget.user_id.label("budget_owner_user_id"),
        BudgetAllocation.transaction_date,
        BudgetAllocation.vendor_id,
        BudgetAllocation.client_name,
        BudgetAllocation.voucher_number,
        BudgetAllocation.payment_status,
        BudgetAllocation.created_at,
    ).join(
        Budget, BudgetAllocation.budget_id == Budget.id
    ).filter(
        BudgetAllocation.deleted_at.is_(None),
        Budget.deleted_at.is_(None),
    )

    if scope.scope == SCOPE_OWN:
        query = query.filter(Budget.user_id == scope.filter_value)

    if "site_id" in applied:
        query = query.filter(Budget.site_id == applied["site_id"])
    if "department_id" in applied:
        query = query.filter(Budget.department_id == applied["department_id"])
    if "grant_id" in applied:
        query = query.filter(Budget.grant_id == applied["grant_id"])
    if "budget_id" in applied:
        query = query.filter(BudgetAllocation.budget_id == applied["budget_id"])
    if "user_id" in applied:
        query = query.filter(Budget.user_id == applied["user_id"])

    if params.start_date:
        query = query.filter(BudgetAllocation.transaction_date >= params.start_date)
    if params.end_date:
        query = query.filter(BudgetAllocation.transaction_date <= params.end_date)

    total = query.count()
    rows = query.order_by(
        BudgetAllocation.transaction_date.desc(),
        BudgetAllocation.id.desc(),
    ).limit(params.limit).offset(params.offset).all()

    data = [
        {
            "id": row.id,
            "budget_id": row.budget_id,
            "budget_name": row.budget_name,
            "department_id": row.department_id,
            "grant_id": row.grant_id,
            "budget_owner_user_id": row.budget_owner_user_id,
            "transaction_date": to_iso_date(row.transaction_date),
            "vendor_id": row.vendor_id,
            "client_name": row.client_name,
            "voucher_number": row.voucher_number,
            "payment_status": row.payment_status,
            "created_at": to_utc_z(row.created_at),
        }
        for row in rows
    ]
    return {"data": data, "pagination": build_pagination(params.page, params.limit, total)}


_REPORT_BUILDERS = {
    REPORT_CHECKIN_DETAIL: checkin_detail_report,
    REPORT_ALLOCATION_DETAIL: allocation_detail_report,
}


def generate_report(api_key, report_type: str | None, args) -> dict:
    """
    Resolve scope from the key's permissions, validate params, run the report.

    Raises ValidationError (INVALID_REPORT_TYPE / INVALID_QUERY_PARAM) or
    AuthorizationError when the key lacks a scope permission.
    """
    scope = report_scope(report_type or "", api_key.permissions, api_key)
    params = parse_report_params(args)
    return _REPORT_BUILDERS[scope.report_type](scope, params, key_id=api_key.id)
