# Overview: Service-layer operations for budgets; encapsulates business logic and database work.

"""
Budget Service

VISIBILITY (active role):
- director: every budget
- azwk_staff in the finance department: every budget
- azwk_staff elsewhere: their own Staff budgets
- finance role: budgets of departments granted via FinanceDepartmentAccess,
  plus the user's own department
- everyone else: none

Mutations (create/update/delete) are limited to BUDGET_MANAGER_ROLES.

INVARIANT: Staff budgets have an owner (user_id); Admin budgets have none.
Soft delete only; allocations of a deleted budget drop out of every query
through the JOIN filter on budgets.deleted_at.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Budget, FinanceDepartmentAccess, User, Grant, Department, Site
from ..models.budgets import BUDGET_TYPES, BUDGET_TYPE_STAFF, BUDGET_TYPE_ADMIN
from ..context import RequestContext
from ..errors import NotFoundError, ValidationError
from ..permissions import roles
from ..permissions.fields import can_view_budget
from ..validation import ModelValidationPolicy, validate_payload, parse_positive_int
from .concurrency import atomic
from .permission_service import require_role
from casework.time_utils import utcnow


BUDGET_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "user_id",
        "grant_id",
        "department_id",
        "site_id",
        "fiscal_year_start",
        "fiscal_year_end",
        "budget_type",
        "notes",
    },
    required_on_create={
        "name",
        "grant_id",
        "department_id",
        "fiscal_year_start",
        "fiscal_year_end",
        "budget_type",
    },
)


def finance_department_ids(ctx: RequestContext) -> set[int]:
    """Departments whose budgets a finance-role user may see."""
    rows = db.session.query(FinanceDepartmentAccess.accessible_department_id).filter_by(
        finance_user_id=ctx.user_id
    ).all()
    ids = {row[0] for row in rows}
    if ctx.department_id is not None:
        ids.add(ctx.department_id)
    return ids


def visible_budgets_query(ctx: RequestContext):
    """Query of non-deleted budgets the actor may see."""
    query = db.session.query(Budget).filter(Budget.deleted_at.is_(None))
    role = ctx.active_role

    if role == roles.DIRECTOR:
        return query
    if role == roles.AZWK_STAFF:
        if ctx.is_finance_dept:
            return query
        return query.filter(
            Budget.budget_type == BUDGET_TYPE_STAFF,
            Budget.user_id == ctx.user_id,
        )
    if role == roles.FINANCE:
        dept_ids = finance_department_ids(ctx)
        if not dept_ids:
            return query.filter(db.false())
        return query.filter(Budget.department_id.in_(dept_ids))
    return query.filter(db.false())


def list_visible_budgets(
    ctx: RequestContext,
    *,
    fiscal_year: int | None = None,
    grant_id: int | None = None,
    department_id: int | None = None,
) -> list[Budget]:
    query = visible_budgets_query(ctx)
    if fiscal_year is not None:
        query = query.filter(db.extract("year", Budget.fiscal_year_start) == fiscal_year)
    if grant_id is not None:
        query = query.filter(Budget.grant_id == grant_id)
    if department_id is not None:
        query = query.filter(Budget.department_id == department_id)
    return query.order_by(Budget.fiscal_year_start.desc(), Budget.name.asc()).all()


def get_budget(budget_id: int) -> Budget:
    budget = db.session.query(Budget).filter(
        Budget.id == budget_id,
        Budget.deleted_at.is_(None),
    ).first()
    if not budget:
        raise NotFoundError("Budget not found")
    return budget


def actor_can_view(ctx: RequestContext, budget: Budget) -> bool:
    finance_ids = finance_department_ids(ctx) if ctx.active_role == roles.FINANCE else ()
    return can_view_budget(
        ctx,
        budget.budget_type,
        budget.user_id,
        budget.department_id,
        finance_ids,
    )


def _validate_references(values: dict) -> None:
    if values.get("grant_id") is not None:
        grant = db.session.query(Grant).filter_by(id=values["grant_id"], deleted_at=None).first()
        if not grant:
            raise ValidationError("Grant not found")
    if values.get("department_id") is not None:
        department = db.session.query(Department).filter_by(id=values["department_id"], deleted_at=None).first()
        if not department:
            raise ValidationError("Department not found")
    if values.get("site_id") is not None:
        if not db.session.query(Site).filter_by(id=values["site_id"]).first():
            raise ValidationError("Site not found")
    if values.get("user_id") is not None:
        owner = db.session.query(User).filter_by(id=values["user_id"], deleted_at=None).first()
        if not owner:
            raise ValidationError("Budget owner not found")


def _normalize_budget(values: dict) -> dict:
    """Apply the owner/type invariant and fiscal year ordering."""
    budget_type = values.get("budget_type")
    if budget_type not in BUDGET_TYPES:
        raise ValidationError(f"budget_type must be one of: {', '.join(BUDGET_TYPES)}")

    if budget_type == BUDGET_TYPE_STAFF and values.get("user_id") is None:
        raise ValidationError("Staff budgets require an owning user")
    if budget_type == BUDGET_TYPE_ADMIN:
        values["user_id"] = None

    start = values.get("fiscal_year_start")
    end = values.get("fiscal_year_end")
    if start and end and start >= end:
        raise ValidationError("Fiscal Year End date must be after the Start date")
    return values


def create_budget(ctx: RequestContext, data: dict, *, ip_address: str | None = None) -> Budget:
    require_role(ctx, roles.BUDGET_MANAGER_ROLES, resource="budgets", ip_address=ip_address)

    values = validate_payload(model=Budget, payload=data, policy=BUDGET_POLICY, partial=False)
    values = _normalize_budget(values)
    _validate_references(values)

    budget = Budget(**values)
    with atomic("create budget", user_id=ctx.user_id):
        db.session.add(budget)
    return budget


def update_budget(ctx: RequestContext, budget_id: int, data: dict, *, ip_address: str | None = None) -> Budget:
    require_role(ctx, roles.BUDGET_MANAGER_ROLES, resource=f"budgets/{budget_id}", ip_address=ip_address)

    budget = get_budget(budget_id)
    patch = validate_payload(model=Budget, payload=data, policy=BUDGET_POLICY, partial=True)

    merged = {field: getattr(budget, field) for field in BUDGET_POLICY.writable_fields}
    merged.update(patch)
    merged = _normalize_budget(merged)
    _validate_references(patch)

    with atomic("update budget", budget_id=budget_id, user_id=ctx.user_id):
        for field, value in merged.items():
            setattr(budget, field, value)
        budget.updated_at = utcnow()
    return budget


def soft_delete_budget(ctx: RequestContext, budget_id: int, *, ip_address: str | None = None) -> Budget:
    require_role(ctx, roles.BUDGET_MANAGER_ROLES, resource=f"budgets/{budget_id}", ip_address=ip_address)

    budget = get_budget(budget_id)
    with atomic("delete budget", budget_id=budget_id, user_id=ctx.user_id):
        budget.deleted_at = utcnow()
    return budget


def parse_budget_filters(args) -> dict:
    """fiscal_year (YYYY), grant_id, department_id from query args."""
    fiscal_year = args.get("fiscal_year")
    year = None
    if fiscal_year not in (None, ""):
        text = str(fiscal_year).strip()
        # Accept a fiscal-year start date as sent by the budgets page filter
        if len(text) == 10 and text[4] == "-":
            text = text[:4]
        if not text.isdigit() or not (1900 <= int(text) <= 9999):
            raise ValidationError("fiscal_year must be a valid year (YYYY)")
        year = int(text)
    return {
        "fiscal_year": year,
        "grant_id": parse_positive_int(args.get("grant_id"), "grant_id"),
        "department_id": parse_positive_int(args.get("department_id"), "department_id"),
    }
