# Overview: Per-request actor context passed explicitly into permission and data-access code.

"""
Request Context

WHY: Business logic never reads ambient request state. The decorators in
casework.decorators build one RequestContext per request (from the session
token) and services receive it as a parameter.

IMPERSONATION: real_* values describe who is logged in; active_* values are
what every permission decision uses. Audit logging records both.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from flask import g

from .errors import AuthenticationError


@dataclass(frozen=True)
class RequestContext:
    user_id: int
    real_role: str
    active_role: str
    real_site_id: int | None
    active_site_id: int | None  # None means "all sites"
    department_id: int | None = None
    is_finance_dept: bool = False
    session_id: int | None = None

    @property
    def is_impersonating(self) -> bool:
        return self.real_role != self.active_role or self.real_site_id != self.active_site_id

    def with_active(self, role: str, site_id: int | None) -> "RequestContext":
        return replace(self, active_role=role, active_site_id=site_id)

    def audit_fields(self) -> dict:
        """Columns recorded on SecurityEvent rows."""
        return {
            "user_id": self.user_id,
            "real_role": self.real_role,
            "active_role": self.active_role,
            "real_site_id": self.real_site_id,
            "active_site_id": self.active_site_id,
        }

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "real_role": self.real_role,
            "active_role": self.active_role,
            "real_site_id": self.real_site_id,
            "active_site_id": self.active_site_id,
            "department_id": self.department_id,
            "is_finance_dept": self.is_finance_dept,
            "is_impersonating": self.is_impersonating,
        }


def current_actor() -> RequestContext:
    """Context established by @require_auth for the current request."""
    ctx = getattr(g, "request_context", None)
    if ctx is None:
        raise AuthenticationError()
    return ctx
