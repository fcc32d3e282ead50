# Overview: Service-layer operations for vendor; encapsulates business logic and database work.

"""
Vendor Service

WHY: Allocations are paid to vendors. A vendor's client_name_required flag
decides whether an allocation must name the client it was spent on.

Vendors are deactivated (is_active=False) rather than deleted so existing
allocations keep their reference.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Vendor
from ..errors import NotFoundError, ValidationError
from casework.time_utils import utcnow


def list_vendors(*, include_inactive: bool = False) -> list[Vendor]:
    query = db.session.query(Vendor).filter(Vendor.deleted_at.is_(None))
    if not include_inactive:
        query = query.filter(Vendor.is_active.is_(True))
    return query.order_by(Vendor.name.asc()).all()


def get_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.query(Vendor).filter(
        Vendor.id == vendor_id,
        Vendor.deleted_at.is_(None),
    ).first()
    if not vendor:
        raise NotFoundError("Vendor not found")
    return vendor


def does_vendor_require_client_name(vendor_id: int | None) -> bool | None:
    """
    True/False from the vendor's flag.

    None when the vendor does not exist, is inactive or is soft-deleted,
    which callers treat as an invalid vendor.
    """
    if vendor_id is None:
        return None
    vendor = db.session.query(Vendor).filter(
        Vendor.id == vendor_id,
        Vendor.is_active.is_(True),
        Vendor.deleted_at.is_(None),
    ).first()
    if not vendor:
        return None
    return bool(vendor.client_name_required)


def _check_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Vendor).filter(db.func.lower(Vendor.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Vendor.id != exclude_id)
    if query.first():
        raise ValidationError(f"Vendor '{name}' already exists")


def create_vendor(*, name: str, client_name_required: bool = False) -> Vendor:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    _check_unique_name(name)

    vendor = Vendor(name=name, client_name_required=bool(client_name_required))
    db.session.add(vendor)
    db.session.commit()
    return vendor


def update_vendor(
    vendor_id: int,
    *,
    name: str | None = None,
    client_name_required: bool | None = None,
    is_active: bool | None = None,
) -> Vendor:
    vendor = get_vendor(vendor_id)

    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("name cannot be blank")
        _check_unique_name(name, exclude_id=vendor.id)
        vendor.name = name
    if client_name_required is not None:
        vendor.client_name_required = bool(client_name_required)
    if is_active is not None:
        vendor.is_active = bool(is_active)

    vendor.updated_at = utcnow()
    db.session.commit()
    return vendor


def deactivate_vendor(vendor_id: int) -> Vendor:
    return update_vendor(vendor_id, is_active=False)
