from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from casework.time_utils import to_utc_z, to_iso_date


BUDGET_TYPE_STAFF = "Staff"
BUDGET_TYPE_ADMIN = "Admin"
BUDGET_TYPES = (BUDGET_TYPE_STAFF, BUDGET_TYPE_ADMIN)

PAYMENT_STATUS_UNPAID = "U"
PAYMENT_STATUS_PAID = "P"
PAYMENT_STATUS_VOID = "Void"
PAYMENT_STATUSES = (PAYMENT_STATUS_UNPAID, PAYMENT_STATUS_PAID, PAYMENT_STATUS_VOID)


class Vendor(db.Model):
    """
    Payee for budget allocations.

    client_name_required: when true every allocation against this vendor must
    carry a client name; when false the client name is always stored NULL.
    """
    __tablename__ = "vendors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    client_name_required = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "client_name_required": self.client_name_required,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Budget(db.Model):
    """
    A grant-funded budget line.

    INVARIANT: budget_type 'Staff' has an owning user_id; 'Admin' has none.
    site_id is the explicit owning site used by allocation-report filtering.

    Soft-deleted via deleted_at; allocations of a deleted budget are hidden
    by JOIN filter, never touched.
    """
    __tablename__ = "budgets"
    __table_args__ = (
        db.Index("ix_budgets_type_user", "budget_type", "user_id"),
        db.CheckConstraint(
            "(budget_type = 'Staff' AND user_id IS NOT NULL) OR (budget_type = 'Admin' AND user_id IS NULL)",
            name="budget_owner_matches_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    grant_id = db.Column(db.Integer, db.ForeignKey("grants.id"), nullable=False, index=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=True, index=True)

    fiscal_year_start = db.Column(db.Date, nullable=False)
    fiscal_year_end = db.Column(db.Date, nullable=False)
    budget_type = db.Column(db.String(8), nullable=False, default=BUDGET_TYPE_STAFF)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    user = db.relationship("User", backref=db.backref("budgets", lazy=True))
    grant = db.relationship("Grant", backref=db.backref("budgets", lazy=True))
    department = db.relationship("Department", backref=db.backref("budgets", lazy=True))
    site = db.relationship("Site", backref=db.backref("budgets", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "user_id": self.user_id,
            "user_full_name": self.user.full_name if self.user else None,
            "grant_id": self.grant_id,
            "grant_name": self.grant.name if self.grant else None,
            "department_id": self.department_id,
            "department_name": self.department.name if self.department else None,
            "site_id": self.site_id,
            "fiscal_year_start": to_iso_date(self.fiscal_year_start),
            "fiscal_year_end": to_iso_date(self.fiscal_year_end),
            "budget_type": self.budget_type,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


def _amount(value: Decimal | None) -> str:
    return f"{(value or Decimal('0')):.2f}"


class BudgetAllocation(db.Model):
    """
    One spending line against a budget.

    FIELD GROUPS (see casework.permissions.fields): core, funding, finance,
    payment_status. Which groups an actor may write depends on role and
    budget type.

    version_id is the optimistic-concurrency counter (version_id_col).
    Never hard-deleted; deleted_at marks removal.
    """
    __tablename__ = "budget_allocations"
    __table_args__ = (
        db.Index("ix_budget_allocations_budget_date", "budget_id", "transaction_date"),
        db.CheckConstraint(
            "payment_status IN ('U', 'P', 'Void')",
            name="payment_status_valid",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    budget_id = db.Column(db.Integer, db.ForeignKey("budgets.id"), nullable=False, index=True)

    # Core
    transaction_date = db.Column(db.Date, nullable=False)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    client_name = db.Column(db.String(255), nullable=True)
    voucher_number = db.Column(db.String(100), nullable=True)
    enrollment_date = db.Column(db.Date, nullable=True)
    class_start_date = db.Column(db.Date, nullable=True)
    purchase_date = db.Column(db.Date, nullable=True)
    program_explanation = db.Column(db.Text, nullable=True)

    # Payment status
    payment_status = db.Column(db.String(4), nullable=False, default=PAYMENT_STATUS_UNPAID)

    # Funding
    funding_dw = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_dw_admin = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_dw_sus = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_adult = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_adult_admin = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_adult_sus = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_rr = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_h1b = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_youth_is = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_youth_os = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    funding_youth_admin = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    # Finance processing
    fin_voucher_received = db.Column(db.String(10), nullable=True)
    fin_accrual_date = db.Column(db.Date, nullable=True)
    fin_obligated_date = db.Column(db.Date, nullable=True)
    fin_comments = db.Column(db.Text, nullable=True)
    fin_expense_code = db.Column(db.String(100), nullable=True)
    fin_processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    fin_processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Audit
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    budget = db.relationship("Budget", backref=db.backref("allocations", lazy=True))
    vendor = db.relationship("Vendor", backref=db.backref("allocations", lazy=True))
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    updated_by = db.relationship("User", foreign_keys=[updated_by_user_id])
    fin_processed_by = db.relationship("User", foreign_keys=[fin_processed_by_user_id])

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "budget_id": self.budget_id,
            "transaction_date": to_iso_date(self.transaction_date),
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
            "client_name": self.client_name,
            "voucher_number": self.voucher_number,
            "enrollment_date": to_iso_date(self.enrollment_date),
            "class_start_date": to_iso_date(self.class_start_date),
            "purchase_date": to_iso_date(self.purchase_date),
            "program_explanation": self.program_explanation,
            "payment_status": self.payment_status,
            "funding_dw": _amount(self.funding_dw),
            "funding_dw_admin": _amount(self.funding_dw_admin),
            "funding_dw_sus": _amount(self.funding_dw_sus),
            "funding_adult": _amount(self.funding_adult),
            "funding_adult_admin": _amount(self.funding_adult_admin),
            "funding_adult_sus": _amount(self.funding_adult_sus),
            "funding_rr": _amount(self.funding_rr),
            "funding_h1b": _amount(self.funding_h1b),
            "funding_youth_is": _amount(self.funding_youth_is),
            "funding_youth_os": _amount(self.funding_youth_os),
            "funding_youth_admin": _amount(self.funding_youth_admin),
            "fin_voucher_received": self.fin_voucher_received,
            "fin_accrual_date": to_iso_date(self.fin_accrual_date),
            "fin_obligated_date": to_iso_date(self.fin_obligated_date),
            "fin_comments": self.fin_comments,
            "fin_expense_code": self.fin_expense_code,
            "fin_processed_by_user_id": self.fin_processed_by_user_id,
            "fin_processed_at": to_utc_z(self.fin_processed_at) if self.fin_processed_at else None,
            "created_by_user_id": self.created_by_user_id,
            "updated_by_user_id": self.updated_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
