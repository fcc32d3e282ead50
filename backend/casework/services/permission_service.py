# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Checking and Security Event Logging

WHY: Enforce role-based access for staff sessions and permission codes for
API keys, and create an audit trail of denials.

DESIGN PRINCIPLES:
- Fail closed: Deny by default, require explicit permission grant
- Log denials only: Permission grants are not logged
- Impersonation-aware: events record real AND active role/site
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..extensions import db
from ..models import SecurityEvent, ApiKey
from ..errors import AuthorizationError, PermissionDeniedError
from casework.time_utils import utcnow

if TYPE_CHECKING:
    from casework.context import RequestContext


__all__ = [
    "PermissionDeniedError",
    "log_security_event",
    "require_role",
    "key_has_permission",
    "require_key_permission",
]


def log_security_event(
    event_type: str,
    success: bool,
    ctx: "RequestContext | None" = None,
    user_id: int | None = None,
    api_key_id: int | None = None,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    When ctx is given, user id and real/active role and site come from it.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - IMPERSONATION_START / IMPERSONATION_RESET
    - API_KEY_INVALID / AGENT_KEY_INVALID
    - VOID_REJECTED
    """
    audit = ctx.audit_fields() if ctx is not None else {"user_id": user_id}

    event = SecurityEvent(
        api_key_id=api_key_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
        **audit,
    )

    db.session.add(event)
    db.session.commit()

    return event


def require_role(
    ctx: "RequestContext",
    allowed_roles,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require the actor's ACTIVE role to be one of allowed_roles.

    Raises PermissionDeniedError (and logs the denial) otherwise.
    """
    if ctx.active_role in allowed_roles:
        return

    log_security_event(
        event_type="PERMISSION_DENIED",
        success=False,
        ctx=ctx,
        resource=resource,
        action="ROLE:" + ",".join(allowed_roles),
        reason=f"Role '{ctx.active_role}' not in: {', '.join(allowed_roles)}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError(f"Permission denied for role '{ctx.active_role}'")


def key_has_permission(api_key: ApiKey, permission_code: str) -> bool:
    """Exact-match check against the key's associated permissions."""
    return permission_code in set(api_key.permissions)


def require_key_permission(
    api_key: ApiKey,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
) -> None:
    """
    Require an API key to hold permission_code.

    Raises AuthorizationError(code=AUTH_FORBIDDEN) and logs the denial.
    """
    if key_has_permission(api_key, permission_code):
        return

    log_security_event(
        event_type="PERMISSION_DENIED",
        success=False,
        user_id=api_key.associated_user_id,
        api_key_id=api_key.id,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
    )
    raise AuthorizationError(
        f"Permission denied. API key does not have the required '{permission_code}' permission.",
        code="AUTH_FORBIDDEN",
    )
