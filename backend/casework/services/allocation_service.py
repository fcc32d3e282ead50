# Overview: Service-layer operations for budget allocations; encapsulates business logic and database work.

"""
Allocation Data Access

WHY: Allocation edits are the most permission-sensitive writes in the
system. Every mutation goes through here so the field-group predicate
(casework.permissions.fields) is enforced server-side on every request.

UPDATE SEMANTICS:
- Submitted fields outside the actor's permitted groups are dropped, not errors
- payment_status = 'Void' from a non-director is rejected outright
  (PermissionDeniedError) and nothing is written
- vendor / client_name rule is re-checked before any write
- A submission where every field was dropped reports no_fields_permitted
- An empty submission is an idempotent success that still stamps updated_by

VISIBILITY: add and update first require the budget to be visible to the
actor (budget_service.actor_can_view); an invisible budget reads as
NotFoundError, the same answer the details action gives.

CLIENT NAME RULE: required when the vendor's client_name_required flag is
set; forced to NULL otherwise.

CONCURRENCY: BudgetAllocation carries version_id. Callers may pass the
version they read as expected_version; a mismatch, or losing a concurrent
flush, raises ConflictError.

Soft delete only. Authorization for delete is the caller's job
(can_delete_allocation); this module just marks deleted_at.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import Budget, BudgetAllocation, Vendor
from ..models.budgets import PAYMENT_STATUS_UNPAID, PAYMENT_STATUS_VOID
from ..context import RequestContext
from ..errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ..permissions import roles
from ..permissions.fields import (
    FieldGroup,
    FINANCE_FIELDS,
    can_add_allocation,
    columns_for_groups,
    is_finance_capable,
    permitted_groups,
)
from ..validation import AllocationPayload, parse_allocation_payload
from .budget_service import actor_can_view
from .concurrency import atomic, lock_for_update
from .permission_service import log_security_event
from .vendor_service import does_vendor_require_client_name
from casework.time_utils import utcnow


@dataclass(frozen=True)
class AllocationUpdateResult:
    allocation: BudgetAllocation
    updated_fields: tuple[str, ...] = ()
    dropped_fields: tuple[str, ...] = ()
    no_fields_permitted: bool = False

    def to_dict(self) -> dict:
        return {
            "allocation": self.allocation.to_dict(),
            "updated_fields": list(self.updated_fields),
            "dropped_fields": list(self.dropped_fields),
            "no_fields_permitted": self.no_fields_permitted,
        }


@dataclass
class _AllocationWrite:
    values: dict = field(default_factory=dict)
    dropped: list[str] = field(default_factory=list)


def _reject_void(ctx: RequestContext, payload: AllocationPayload, allocation_id: int | None) -> None:
    if not payload.has("payment_status") or payload.payment_status != PAYMENT_STATUS_VOID:
        return
    if ctx.active_role == roles.DIRECTOR:
        return

    log_security_event(
        event_type="VOID_REJECTED",
        success=False,
        ctx=ctx,
        resource=f"allocations/{allocation_id}" if allocation_id else "allocations",
        action="SET_PAYMENT_STATUS_VOID",
        reason=f"Role '{ctx.active_role}' cannot void allocations",
    )
    raise PermissionDeniedError("Only a director can set payment status to Void.")


def _split_by_groups(payload: AllocationPayload, groups) -> _AllocationWrite:
    allowed_columns = columns_for_groups(groups)
    write = _AllocationWrite()
    for name, value in payload.changes().items():
        if name in allowed_columns:
            write.values[name] = value
        else:
            write.dropped.append(name)
    write.dropped.sort()
    return write


def _apply_client_name_rule(values: dict, *, vendor_id: int, vendor_changed: bool, current_client_name: str | None) -> None:
    """
    Enforce the vendor's client-name requirement on values in place.

    Raises ValidationError before anything is written.
    """
    if vendor_changed:
        requires = does_vendor_require_client_name(vendor_id)
        if requires is None:
            raise ValidationError("Invalid or inactive vendor selected.", code="INVALID_VENDOR")
    else:
        vendor = db.session.query(Vendor).filter_by(id=vendor_id).first()
        requires = bool(vendor and vendor.client_name_required)

    client_name = values["client_name"] if "client_name" in values else current_client_name
    if requires:
        if not client_name:
            raise ValidationError(
                "Client Name is required for the selected vendor.",
                code="CLIENT_NAME_REQUIRED",
            )
        values["client_name"] = client_name
    else:
        values["client_name"] = None


def _stamp_finance(ctx: RequestContext, allocation: BudgetAllocation, values: dict) -> None:
    if is_finance_capable(ctx) and any(name in values for name in FINANCE_FIELDS):
        allocation.fin_processed_by_user_id = ctx.user_id
        allocation.fin_processed_at = utcnow()


def _require_visible(ctx: RequestContext, budget: Budget, message: str) -> None:
    """Budgets outside the actor's visibility read as missing."""
    if not actor_can_view(ctx, budget):
        raise NotFoundError(message)


def _active_budget(budget_id: int) -> Budget:
    budget = db.session.query(Budget).filter(
        Budget.id == budget_id,
        Budget.deleted_at.is_(None),
    ).first()
    if not budget:
        raise NotFoundError("Budget not found")
    return budget


def get_allocation(allocation_id: int) -> BudgetAllocation | None:
    """Non-deleted allocation whose budget is also non-deleted, or None."""
    return db.session.query(BudgetAllocation).join(
        Budget, BudgetAllocation.budget_id == Budget.id
    ).filter(
        BudgetAllocation.id == allocation_id,
        BudgetAllocation.deleted_at.is_(None),
        Budget.deleted_at.is_(None),
    ).first()


def add_allocation(ctx: RequestContext, budget_id: int, data: dict | None) -> BudgetAllocation:
    """
    Create an allocation on budget_id.

    Raises:
        ValidationError: missing vendor_id / transaction_date, bad values,
            inactive vendor, or missing client name for a vendor that needs one
        NotFoundError: budget missing, deleted, or not visible to the actor
        PermissionDeniedError: actor may not add to this budget, or non-director Void
    """
    payload = parse_allocation_payload({**(data or {}), "budget_id": budget_id}, partial=False)
    budget = _active_budget(payload.budget_id)
    _require_visible(ctx, budget, "Budget not found")

    if not can_add_allocation(ctx, budget.budget_type, budget.user_id):
        log_security_event(
            event_type="PERMISSION_DENIED",
            success=False,
            ctx=ctx,
            resource=f"budgets/{budget.id}/allocations",
            action="ADD_ALLOCATION",
            reason=f"Role '{ctx.active_role}' cannot add allocations to {budget.budget_type} budget",
        )
        raise PermissionDeniedError("You do not have permission to add allocations to this budget.")

    _reject_void(ctx, payload, None)

    groups = set(permitted_groups(ctx, budget.budget_type, budget.user_id))
    # Anyone allowed to add may fill in the core line
    groups.add(FieldGroup.CORE)
    write = _split_by_groups(payload, groups)
    values = write.values

    _apply_client_name_rule(
        values,
        vendor_id=payload.vendor_id,
        vendor_changed=True,
        current_client_name=None,
    )
    values.setdefault("payment_status", PAYMENT_STATUS_UNPAID)

    allocation = BudgetAllocation(
        budget_id=budget.id,
        created_by_user_id=ctx.user_id,
        updated_by_user_id=ctx.user_id,
        **values,
    )
    _stamp_finance(ctx, allocation, values)

    if write.dropped:
        current_app.logger.info(
            "Dropped fields %s on new allocation for budget %s (user %s)",
            write.dropped, budget.id, ctx.user_id,
        )

    with atomic("add allocation", budget_id=budget.id, user_id=ctx.user_id):
        db.session.add(allocation)
    return allocation


def update_allocation(
    ctx: RequestContext,
    allocation_id: int,
    data: dict | None,
    *,
    expected_version: int | None = None,
) -> AllocationUpdateResult:
    """
    Apply the permitted subset of data to an allocation.

    Raises:
        ValidationError: bad values, inactive vendor, missing client name
        NotFoundError: allocation (or its budget) missing, deleted, or not visible
        PermissionDeniedError: non-director attempting Void
        ConflictError: expected_version is stale or a concurrent edit won
    """
    payload = parse_allocation_payload(data, partial=True)

    allocation = lock_for_update(
        db.session.query(BudgetAllocation).join(
            Budget, BudgetAllocation.budget_id == Budget.id
        ).filter(
            BudgetAllocation.id == allocation_id,
            BudgetAllocation.deleted_at.is_(None),
            Budget.deleted_at.is_(None),
        )
    ).first()
    if not allocation:
        raise NotFoundError("Allocation not found")
    budget = allocation.budget
    _require_visible(ctx, budget, "Allocation not found")

    _reject_void(ctx, payload, allocation_id)

    if expected_version is not None and expected_version != allocation.version_id:
        raise ConflictError()

    groups = permitted_groups(ctx, budget.budget_type, budget.user_id)
    write = _split_by_groups(payload, groups)
    values = write.values

    if write.dropped and not values:
        current_app.logger.warning(
            "No permitted fields in update of allocation %s by user %s (role %s); dropped %s",
            allocation_id, ctx.user_id, ctx.active_role, write.dropped,
        )
        return AllocationUpdateResult(
            allocation=allocation,
            dropped_fields=tuple(write.dropped),
            no_fields_permitted=True,
        )

    if "vendor_id" in values or "client_name" in values:
        _apply_client_name_rule(
            values,
            vendor_id=values.get("vendor_id", allocation.vendor_id),
            vendor_changed="vendor_id" in values,
            current_client_name=allocation.client_name,
        )

    with atomic("update allocation", allocation_id=allocation_id, user_id=ctx.user_id):
        for name, value in values.items():
            setattr(allocation, name, value)
        _stamp_finance(ctx, allocation, values)
        allocation.updated_by_user_id = ctx.user_id
        allocation.updated_at = utcnow()

    return AllocationUpdateResult(
        allocation=allocation,
        updated_fields=tuple(sorted(values)),
        dropped_fields=tuple(write.dropped),
    )


def soft_delete_allocation(ctx: RequestContext, allocation_id: int) -> bool:
    """Mark deleted_at. Authorization must already have been checked."""
    allocation = get_allocation(allocation_id)
    if not allocation:
        raise NotFoundError("Allocation not found")

    with atomic("delete allocation", allocation_id=allocation_id, user_id=ctx.user_id):
        allocation.deleted_at = utcnow()
        allocation.updated_by_user_id = ctx.user_id
    return True


def list_allocations_for_budgets(budget_ids, fiscal_year: int | None = None) -> list[BudgetAllocation]:
    ids = [budget_id for budget_id in (budget_ids or []) if budget_id is not None]
    if not ids:
        return []

    query = db.session.query(BudgetAllocation).join(
        Budget, BudgetAllocation.budget_id == Budget.id
    ).filter(
        BudgetAllocation.budget_id.in_(ids),
        BudgetAllocation.deleted_at.is_(None),
        Budget.deleted_at.is_(None),
    )
    if fiscal_year is not None:
        query = query.filter(db.extract("year", Budget.fiscal_year_start) == fiscal_year)
    return query.order_by(
        BudgetAllocation.transaction_date.desc(),
        BudgetAllocation.id.desc(),
    ).all()


# =============================================================================
# v1 API listing
# =============================================================================

def query_allocations(*, filters: dict, page: int, limit: int) -> tuple[list[dict], int]:
    """
    Filtered, paginated allocation rows for the v1 API.

    filters: fiscal_year (year of budget start), grant_id, department_id,
    budget_id, user_id (allocation creator). Returns (rows, total).
    """
    query = db.session.query(BudgetAllocation, Budget).join(
        Budget, BudgetAllocation.budget_id == Budget.id
    ).filter(
        BudgetAllocation.deleted_at.is_(None),
        Budget.deleted_at.is_(None),
    )

    if filters.get("fiscal_year") is not None:
        query = query.filter(db.extract("year", Budget.fiscal_year_start) == filters["fiscal_year"])
    if filters.get("grant_id") is not None:
        query = query.filter(Budget.grant_id == filters["grant_id"])
    if filters.get("department_id") is not None:
        query = query.filter(Budget.department_id == filters["department_id"])
    if filters.get("budget_id") is not None:
        query = query.filter(BudgetAllocation.budget_id == filters["budget_id"])
    if filters.get("user_id") is not None:
        query = query.filter(BudgetAllocation.created_by_user_id == filters["user_id"])

    total = query.count()
    rows = query.order_by(
        BudgetAllocation.transaction_date.desc(),
        BudgetAllocation.id.desc(),
    ).limit(limit).offset((page - 1) * limit).all()

    data = []
    for allocation, budget in rows:
        row = allocation.to_dict()
        row.update({
            "budget_name": budget.name,
            "fiscal_year_start": budget.fiscal_year_start.isoformat(),
            "grant_id": budget.grant_id,
            "department_id": budget.department_id,
        })
        data.append(row)
    return data, total
