from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from casework.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass, field, fields as dc_fields
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from casework.errors import ValidationError, ConflictError  # noqa: F401  (re-exported)


# Funding columns are DECIMAL(10,2): max 99,999,999.99
MAX_AMOUNT = Decimal("99999999.99")

VALID_PAYMENT_STATUSES = ("U", "P", "Void")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            if 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    # Money - DECIMAL(10,2), blank means 0.00, never negative
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        if isinstance(value, str) and not value.strip():
            return Decimal("0.00")
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{col.key} must be a number")
        if not amount.is_finite():
            raise ValidationError(f"{col.key} must be a number")
        if amount < 0:
            raise ValidationError(f"{col.key} must be >= 0")
        if amount > MAX_AMOUNT:
            raise ValidationError(f"{col.key} cannot exceed {MAX_AMOUNT}")
        return amount.quantize(Decimal("0.01"))

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        raise ValidationError(f"{col.key} must be a datetime")

    # Calendar dates - "" means NULL
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be a date (YYYY-MM-DD)")
        raise ValidationError(f"{col.key} must be a date (YYYY-MM-DD)")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Keys outside writable_fields are ignored here; the permission layer
    decides separately which of the remaining keys an actor may write.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            continue
        col = cols[k]
        val = _coerce_value(col, raw)

        # NULL handling (after coercion: "" dates and ids become None)
        if val is None:
            if not col.nullable:
                raise ValidationError(f"{k} is required")
            patch[k] = None
            continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if patch.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    return patch


def parse_positive_int(value: Any, name: str, *, required: bool = False) -> int | None:
    """Accept ints or digit strings >= 1; '' / None -> None unless required."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{name} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a positive integer")
    if isinstance(value, int):
        parsed = value
    else:
        text = str(value).strip()
        if not text.isdigit():
            raise ValidationError(f"{name} must be a positive integer")
        parsed = int(text)
    if parsed < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return parsed


# =============================================================================
# Allocation payload (shared by add and update paths)
# =============================================================================

@dataclass(frozen=True)
class AllocationPayload:
    """
    Validated allocation input.

    Only the keys named in `submitted` were present in the request; every
    other attribute is None and must not be written.
    """
    submitted: frozenset = field(default_factory=frozenset)

    budget_id: int | None = None

    transaction_date: date | None = None
    vendor_id: int | None = None
    client_name: str | None = None
    voucher_number: str | None = None
    enrollment_date: date | None = None
    class_start_date: date | None = None
    purchase_date: date | None = None
    program_explanation: str | None = None

    payment_status: str | None = None

    funding_dw: Decimal | None = None
    funding_dw_admin: Decimal | None = None
    funding_dw_sus: Decimal | None = None
    funding_adult: Decimal | None = None
    funding_adult_admin: Decimal | None = None
    funding_adult_sus: Decimal | None = None
    funding_rr: Decimal | None = None
    funding_h1b: Decimal | None = None
    funding_youth_is: Decimal | None = None
    funding_youth_os: Decimal | None = None
    funding_youth_admin: Decimal | None = None

    fin_voucher_received: str | None = None
    fin_accrual_date: date | None = None
    fin_obligated_date: date | None = None
    fin_comments: str | None = None
    fin_expense_code: str | None = None

    def changes(self) -> dict:
        """Submitted column -> normalized value (budget_id excluded)."""
        return {
            name: getattr(self, name)
            for name in self.submitted
            if name != "budget_id"
        }

    def has(self, name: str) -> bool:
        return name in self.submitted


ALLOCATION_PAYLOAD_FIELDS = frozenset(
    f.name for f in dc_fields(AllocationPayload) if f.name != "submitted"
)

ALLOCATION_POLICY = ModelValidationPolicy(
    writable_fields=set(ALLOCATION_PAYLOAD_FIELDS),
    required_on_create={"budget_id", "vendor_id", "transaction_date"},
)


def parse_allocation_payload(data: dict | None, *, partial: bool) -> AllocationPayload:
    """
    Single validation pass for allocation input.

    - Empty-string dates become None
    - Funding amounts become Decimal(2dp), blank -> 0.00, negative rejected
    - payment_status outside U/P/Void becomes 'U'
    - Strings are stripped; blank optional strings become None
    - Keys that are not allocation columns are ignored
    """
    from casework.models import BudgetAllocation

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    if "payment_status" in data:
        status = data.get("payment_status")
        status = status.strip() if isinstance(status, str) else status
        data = {**data, "payment_status": status if status in VALID_PAYMENT_STATUSES else "U"}

    patch = validate_payload(
        model=BudgetAllocation,
        payload=data,
        policy=ALLOCATION_POLICY,
        partial=partial,
    )

    for key, value in list(patch.items()):
        if isinstance(value, str) and value == "" and key != "payment_status":
            patch[key] = None

    return AllocationPayload(submitted=frozenset(patch.keys()), **patch)
