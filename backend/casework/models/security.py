from __future__ import annotations

from ..extensions import db
from casework.time_utils import to_utc_z

class SecurityEvent(db.Model):
    """
    Security event audit log.

    IMPERSONATION: Every event records both the real and the active
    role/site so that actions taken while an administrator impersonates
    another role remain attributable to the administrator.

    WHY: Track permission denials, failed API-key attempts, impersonation,
    and other security-relevant actions.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)  # Nullable for anonymous / API keys
    api_key_id = db.Column(db.Integer, nullable=True)

    # Role context at the time of the event
    real_role = db.Column(db.String(32), nullable=True)
    active_role = db.Column(db.String(32), nullable=True)
    real_site_id = db.Column(db.Integer, nullable=True)
    active_site_id = db.Column(db.Integer, nullable=True)

    # Event classification
    event_type = db.Column(db.String(64), nullable=False, index=True)  # PERMISSION_DENIED, IMPERSONATION_START, API_KEY_INVALID, etc.
    resource = db.Column(db.String(128), nullable=True)  # e.g., "/api/allocations/ajax"
    action = db.Column(db.String(64), nullable=True)     # e.g., "POST", "edit"

    # Event details
    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User", backref=db.backref("security_events", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "api_key_id": self.api_key_id,
            "real_role": self.real_role,
            "active_role": self.active_role,
            "real_site_id": self.real_site_id,
            "active_site_id": self.active_site_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
