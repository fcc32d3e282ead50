# Overview: Field-level edit permissions for budget allocations, keyed by role and budget type.

"""
Allocation Field Permission Predicate

WHY: Which allocation columns an actor may write depends on three inputs:
the active role, whether the actor belongs to the finance department, and
the budget type (Staff or Admin). Columns are partitioned into FieldGroups
so the decision is made once per group, independent of SQL construction.

    actor                    budget   staff  finance  payment_status
    director                 Staff    edit   read     edit (may Void)
    director                 Admin    read   read     read
    staff, finance dept      Staff    read   edit     read
    staff, finance dept      Admin    edit   edit     read
    staff, other dept        Staff    edit   read     read   (own budget only)
    staff, other dept        Admin    none   none     none
    finance role             Admin    edit   edit     read
    finance role             Staff    read   edit     read
    anything else            any      read   read     read

"Staff fields" are the CORE and FUNDING groups.

All functions here are pure: no database or request access.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from . import roles

if TYPE_CHECKING:
    from casework.context import RequestContext


BUDGET_TYPE_STAFF = "Staff"
BUDGET_TYPE_ADMIN = "Admin"


class FieldGroup(enum.Enum):
    CORE = "core"
    FUNDING = "funding"
    FINANCE = "finance"
    PAYMENT_STATUS = "payment_status"


FIELD_GROUP_COLUMNS: dict[FieldGroup, tuple[str, ...]] = {
    FieldGroup.CORE: (
        "transaction_date",
        "vendor_id",
        "client_name",
        "voucher_number",
        "enrollment_date",
        "class_start_date",
        "purchase_date",
        "program_explanation",
    ),
    FieldGroup.FUNDING: (
        "funding_dw",
        "funding_dw_admin",
        "funding_dw_sus",
        "funding_adult",
        "funding_adult_admin",
        "funding_adult_sus",
        "funding_rr",
        "funding_h1b",
        "funding_youth_is",
        "funding_youth_os",
        "funding_youth_admin",
    ),
    FieldGroup.FINANCE: (
        "fin_voucher_received",
        "fin_accrual_date",
        "fin_obligated_date",
        "fin_comments",
        "fin_expense_code",
    ),
    FieldGroup.PAYMENT_STATUS: ("payment_status",),
}

FINANCE_FIELDS = FIELD_GROUP_COLUMNS[FieldGroup.FINANCE]


def columns_for_groups(groups) -> set[str]:
    return {column for group in groups for column in FIELD_GROUP_COLUMNS[group]}


@dataclass(frozen=True)
class FieldPermissions:
    staff_editable: bool
    finance_editable: bool
    payment_status_editable: bool

    def groups(self) -> frozenset[FieldGroup]:
        groups = set()
        if self.staff_editable:
            groups.update((FieldGroup.CORE, FieldGroup.FUNDING))
        if self.finance_editable:
            groups.add(FieldGroup.FINANCE)
        if self.payment_status_editable:
            groups.add(FieldGroup.PAYMENT_STATUS)
        return frozenset(groups)

    def to_dict(self) -> dict:
        return {
            "staff_editable": self.staff_editable,
            "finance_editable": self.finance_editable,
            "payment_status_editable": self.payment_status_editable,
        }


READ_ONLY = FieldPermissions(False, False, False)


def field_permissions(role: str | None, is_finance_dept: bool, budget_type: str | None) -> FieldPermissions:
    """Table lookup; see module docstring."""
    if budget_type not in (BUDGET_TYPE_STAFF, BUDGET_TYPE_ADMIN):
        return READ_ONLY

    if role == roles.DIRECTOR:
        if budget_type == BUDGET_TYPE_STAFF:
            return FieldPermissions(True, False, True)
        return READ_ONLY

    if role == roles.AZWK_STAFF:
        if is_finance_dept:
            if budget_type == BUDGET_TYPE_STAFF:
                return FieldPermissions(False, True, False)
            return FieldPermissions(True, True, False)
        if budget_type == BUDGET_TYPE_STAFF:
            return FieldPermissions(True, False, False)
        return READ_ONLY

    if role == roles.FINANCE:
        if budget_type == BUDGET_TYPE_ADMIN:
            return FieldPermissions(True, True, False)
        return FieldPermissions(False, True, False)

    return READ_ONLY


def _is_non_finance_staff(actor: "RequestContext") -> bool:
    return actor.active_role == roles.AZWK_STAFF and not actor.is_finance_dept


def is_finance_capable(actor: "RequestContext") -> bool:
    return actor.active_role == roles.FINANCE or (
        actor.active_role == roles.AZWK_STAFF and actor.is_finance_dept
    )


def permitted_groups(
    actor: "RequestContext",
    budget_type: str | None,
    budget_owner_id: int | None,
) -> frozenset[FieldGroup]:
    """
    Groups the actor may write on an allocation of the given budget.

    Non-finance staff only get their table row on Staff budgets they own.
    """
    return effective_field_permissions(actor, budget_type, budget_owner_id).groups()


def can_view_budget(
    actor: "RequestContext",
    budget_type: str | None,
    budget_owner_id: int | None,
    budget_department_id: int | None = None,
    finance_department_ids=(),
) -> bool:
    role = actor.active_role
    if role == roles.DIRECTOR:
        return True
    if role == roles.AZWK_STAFF:
        if actor.is_finance_dept:
            return True
        return budget_type == BUDGET_TYPE_STAFF and budget_owner_id == actor.user_id
    if role == roles.FINANCE:
        return budget_department_id in set(finance_department_ids or ())
    return False


def can_add_allocation(actor: "RequestContext", budget_type: str | None, budget_owner_id: int | None) -> bool:
    role = actor.active_role
    if role == roles.DIRECTOR:
        return budget_type == BUDGET_TYPE_STAFF
    if role == roles.AZWK_STAFF:
        if actor.is_finance_dept:
            return budget_type == BUDGET_TYPE_ADMIN
        return budget_type == BUDGET_TYPE_STAFF and budget_owner_id == actor.user_id
    if role == roles.FINANCE:
        return budget_type == BUDGET_TYPE_ADMIN
    return False


def can_delete_allocation(actor: "RequestContext", budget_type: str | None) -> bool:
    return is_finance_capable(actor) and budget_type == BUDGET_TYPE_ADMIN


def effective_field_permissions(
    actor: "RequestContext",
    budget_type: str | None,
    budget_owner_id: int | None,
) -> FieldPermissions:
    """field_permissions() for the actor, with the own-budget rule applied."""
    if _is_non_finance_staff(actor) and budget_owner_id != actor.user_id:
        return READ_ONLY
    return field_permissions(actor.active_role, actor.is_finance_dept, budget_type)
