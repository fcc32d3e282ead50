# Overview: Report visibility scopes derived from API key permissions.

"""
Report Scope Resolution

Each report type has a broad permission (scope "all") and a narrow one
(scope "site" for check-ins, scope "own" for allocations). The broad
permission wins when a key holds both. A key with neither is refused.

Narrow scopes pin a filter to the key's association (associated_site_id or
associated_user_id) and restrict which caller-supplied filters may layer on
top. split_filters() separates requested filters into applied and ignored so
the caller can log the ignored ones; scope is never broadened.
"""

from __future__ import annotations

from dataclasses import dataclass

from casework.errors import AuthorizationError, ValidationError


REPORT_CHECKIN_DETAIL = "checkin_detail"
REPORT_ALLOCATION_DETAIL = "allocation_detail"
REPORT_TYPES = (REPORT_CHECKIN_DETAIL, REPORT_ALLOCATION_DETAIL)

SCOPE_ALL = "all"
SCOPE_SITE = "site"
SCOPE_OWN = "own"

ALLOCATION_FILTERS = ("site_id", "department_id", "grant_id", "budget_id", "user_id")


@dataclass(frozen=True)
class ReportScope:
    report_type: str
    scope: str
    filter_value: int | None
    allowed_filters: tuple[str, ...]

    def split_filters(self, requested: dict) -> tuple[dict, list[str]]:
        """Return (applied, ignored) for the non-empty requested filters."""
        applied: dict = {}
        ignored: list[str] = []
        for name, value in requested.items():
            if value is None:
                continue
            if name in self.allowed_filters:
                applied[name] = value
            else:
                ignored.append(name)
        return applied, ignored


def report_scope(report_type: str, permissions, key) -> ReportScope:
    """
    Resolve the scope for report_type given the caller's permission codes.

    key: object exposing associated_site_id / associated_user_id (an ApiKey).
    Raises ValidationError for an unknown type, AuthorizationError when the
    caller holds no scope permission or a narrow scope has no association.
    """
    granted = set(permissions or ())
    site_id = getattr(key, "associated_site_id", None)
    user_id = getattr(key, "associated_user_id", None)

    if report_type == REPORT_CHECKIN_DETAIL:
        if "read:all_checkin_data" in granted:
            return ReportScope(report_type, SCOPE_ALL, None, ("site_id",))
        if "read:site_checkin_data" in granted:
            if not site_id:
                raise AuthorizationError(
                    "API key has site-scoped check-in access but no associated site.",
                    code="AUTH_FORBIDDEN_SCOPE",
                )
            return ReportScope(report_type, SCOPE_SITE, site_id, ())
        raise AuthorizationError(
            "Permission denied. Requires 'read:all_checkin_data' or 'read:site_checkin_data'.",
        )

    if report_type == REPORT_ALLOCATION_DETAIL:
        if "read:all_allocation_data" in granted:
            return ReportScope(report_type, SCOPE_ALL, None, ALLOCATION_FILTERS)
        if "read:own_allocation_data" in granted:
            if not user_id:
                raise AuthorizationError(
                    "API key has own-allocation access but no associated user.",
                    code="AUTH_FORBIDDEN_SCOPE",
                )
            return ReportScope(report_type, SCOPE_OWN, user_id, ("budget_id",))
        raise AuthorizationError(
            "Permission denied. Requires 'read:all_allocation_data' or 'read:own_allocation_data'.",
        )

    raise ValidationError(
        f"Invalid report type. Supported types: {', '.join(REPORT_TYPES)}.",
        code="INVALID_REPORT_TYPE",
    )
