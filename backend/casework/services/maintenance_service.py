# Overview: Service-layer operations for maintenance; prunes expired sessions and old audit rows.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from . import session_service
from casework.time_utils import utcnow


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """Delete security events older than retention_days."""
    if retention_days < 1:
        raise ValueError("retention_days must be at least 1")

    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def cleanup_sessions() -> int:
    """Delete expired or revoked sessions older than 30 days."""
    return session_service.cleanup_expired_sessions()
