from __future__ import annotations

from ..extensions import db
from casework.time_utils import to_utc_z, to_iso_date


class Site(db.Model):
    """
    Physical AZ@Work office / kiosk location.

    WHY: Check-ins, site-scoped staff, and site-bound API keys all hang off a site.
    Sites are deactivated (is_active=False), never deleted.
    """
    __tablename__ = "sites"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    email_collection_desc = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Site id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Department(db.Model):
    """
    Organizational department.

    DESIGN: The slug is the stable identifier used by permission logic.
    A user whose department slug is "finance" is a finance-dept actor.
    """
    __tablename__ = "departments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "created_at": to_utc_z(self.created_at),
        }


class Grant(db.Model):
    """Funding grant; budgets draw against exactly one grant."""
    __tablename__ = "grants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    grant_code = db.Column(db.String(64), nullable=True, unique=True)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "grant_code": self.grant_code,
            "description": self.description,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "created_at": to_utc_z(self.created_at),
        }


class FinanceDepartmentAccess(db.Model):
    """
    Grants a finance-role user visibility of one department's budgets.

    A finance user with no rows sees no budgets.
    """
    __tablename__ = "finance_department_access"
    __table_args__ = (
        db.UniqueConstraint("finance_user_id", "accessible_department_id", name="uq_finance_department_access"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    finance_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    accessible_department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    granted_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    department = db.relationship("Department")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "finance_user_id": self.finance_user_id,
            "accessible_department_id": self.accessible_department_id,
            "granted_at": to_utc_z(self.granted_at),
        }
