# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management and Role Context

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

ROLE CONTEXT: validate_session() turns a token into a RequestContext.
The session row carries the impersonation overlay (active_role,
active_site_id); the user row carries the real role and site. Permission
code downstream only ever looks at the active values.

IMPERSONATION RULES:
- Only a user whose REAL role is administrator may impersonate
- Target roles: administrator, director, azwk_staff, outside_staff
- Target site: an active site id, or "all" / None
- azwk_staff / outside_staff need a concrete site: fall back to the first
  active site, or revert to the real administrator view when none exists
- reset_view() restores the real role and site

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute and idle timeouts (Config SESSION_*_TIMEOUT_HOURS)
- Per-session CSRF token for AJAX mutations
"""

import secrets
import hashlib
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User, Site
from ..context import RequestContext
from ..errors import PermissionDeniedError, ValidationError
from ..permissions import roles
from .permission_service import log_security_event
from casework.time_utils import utcnow


# Defaults when no app config is available
SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=2)        # Activity timeout


def _absolute_timeout() -> timedelta:
    hours = current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS")
    return timedelta(hours=hours) if hours else SESSION_ABSOLUTE_TIMEOUT


def _idle_timeout() -> timedelta:
    hours = current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS")
    return timedelta(hours=hours) if hours else SESSION_IDLE_TIMEOUT


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    SHA-256 is faster and sufficient for high-entropy inputs.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def build_context(user: User, session: SessionToken | None = None) -> RequestContext:
    """Real values from the user, active values from the session overlay."""
    active_role = user.role
    active_site_id = user.site_id
    if session is not None and session.active_role:
        active_role = session.active_role
        active_site_id = session.active_site_id

    return RequestContext(
        user_id=user.id,
        real_role=user.role,
        active_role=active_role,
        real_site_id=user.site_id,
        active_site_id=active_site_id,
        department_id=user.department_id,
        is_finance_dept=(user.department_slug or "").lower() == roles.FINANCE_DEPT_SLUG,
        session_id=session.id if session is not None else None,
    )


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError("User not found")
    if not user.is_active or user.deleted_at is not None:
        raise ValueError("User account is not active")

    plaintext_token = generate_token()

    now = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        csrf_token=secrets.token_hex(32),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> tuple[SessionToken, RequestContext] | None:
    """
    Validate session token and return (session, RequestContext) if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - User account is deactivated or soft-deleted

    Updates last_used_at on successful validation (activity tracking).
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    # Check absolute timeout
    if session.expires_at < now:
        return None

    # Check idle timeout
    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        return None

    user = session.user

    # SECURITY: Check if user account is active
    if not user or not user.is_active or user.deleted_at is not None:
        _revoke(session, "User account deactivated")
        return None

    # Valid session - update activity timestamp
    session.last_used_at = now
    db.session.commit()

    return session, build_context(user, session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def cleanup_expired_sessions() -> int:
    """
    Delete expired and revoked sessions older than 30 days.

    Returns count of sessions deleted.
    """
    cutoff = utcnow() - timedelta(days=30)

    # Delete sessions that are both old AND (expired OR revoked)
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted


# =============================================================================
# Impersonation
# =============================================================================

def _first_active_site() -> Site | None:
    return db.session.query(Site).filter_by(is_active=True).order_by(Site.id.asc()).first()


def _resolve_target_site(site) -> int | None:
    """'all' / None / '' -> None; otherwise an active site id."""
    if site is None or (isinstance(site, str) and site.strip().lower() in ("", "all")):
        return None
    try:
        site_id = int(site)
    except (TypeError, ValueError):
        raise ValidationError("site must be an active site id or 'all'")
    exists = db.session.query(Site).filter_by(id=site_id, is_active=True).first()
    if not exists:
        raise ValidationError("Selected site is not an active site")
    return site_id


def impersonate(
    session: SessionToken,
    ctx: RequestContext,
    *,
    role: str,
    site=None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RequestContext:
    """
    Switch the session's active role/site. Returns the new context.

    Raises PermissionDeniedError if the real role is not administrator,
    ValidationError for a disallowed role or inactive site.
    """
    if ctx.real_role != roles.ADMINISTRATOR:
        log_security_event(
            event_type="PERMISSION_DENIED",
            success=False,
            ctx=ctx,
            action="IMPERSONATE",
            reason="Only administrators may change their active view",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise PermissionDeniedError("Only administrators may impersonate")

    if role not in roles.IMPERSONATION_TARGET_ROLES:
        raise ValidationError(
            f"Role must be one of: {', '.join(roles.IMPERSONATION_TARGET_ROLES)}"
        )

    site_id = _resolve_target_site(site)

    if role in roles.SITE_REQUIRED_ROLES and site_id is None:
        fallback = _first_active_site()
        if fallback is None:
            current_app.logger.warning(
                "No active site for impersonated role %s; reverting user %s to real view",
                role, ctx.user_id,
            )
            return reset_view(session, ctx, ip_address=ip_address, user_agent=user_agent)
        site_id = fallback.id

    session.active_role = role
    session.active_site_id = site_id
    db.session.commit()

    new_ctx = ctx.with_active(role, site_id)
    log_security_event(
        event_type="IMPERSONATION_START",
        success=True,
        ctx=new_ctx,
        action="IMPERSONATE",
        reason=f"Viewing as {role} at site {site_id if site_id is not None else 'all'}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return new_ctx


def reset_view(
    session: SessionToken,
    ctx: RequestContext,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RequestContext:
    """Drop the impersonation overlay; active values return to the real ones."""
    session.active_role = None
    session.active_site_id = None
    db.session.commit()

    new_ctx = ctx.with_active(ctx.real_role, ctx.real_site_id)
    log_security_event(
        event_type="IMPERSONATION_RESET",
        success=True,
        ctx=new_ctx,
        action="RESET_VIEW",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return new_ctx
