from __future__ import annotations

import json

from ..extensions import db
from casework.time_utils import to_utc_z


class User(db.Model):
    """
    Staff accounts for authentication and attribution.

    ROLES: Exactly one role per account (see casework.permissions.roles).
    site_id NULL means "all sites" (director / administrator).
    department_id drives the finance-dept distinction for azwk_staff.

    WHY: Every allocation edit, note, and audit event must be attributable.
    No shared logins.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(32), nullable=False, index=True)
    is_site_admin = db.Column(db.Boolean, nullable=False, default=False)

    site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=True, index=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    site = db.relationship("Site", backref=db.backref("users", lazy=True))
    department = db.relationship("Department", backref=db.backref("users", lazy=True))

    @property
    def department_slug(self) -> str | None:
        return self.department.slug if self.department else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "is_site_admin": self.is_site_admin,
            "site_id": self.site_id,
            "department_id": self.department_id,
            "department_slug": self.department_slug,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Secure session token management with role context.

    WHY: Stateless auth tokens with timeout and revocation support.
    Tokens are cryptographically secure random strings (32 bytes = 64 hex chars).

    IMPERSONATION: active_role / active_site_id overlay the user's real role
    and site for the lifetime of the session. NULL active_role means the
    session is not impersonating. active_site_id is only meaningful while
    active_role is set (NULL then means "all sites").

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - csrf_token is returned once at login and must accompany AJAX mutations
    - Revocable on logout or suspicious activity
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)
    csrf_token = db.Column(db.String(64), nullable=False)

    # Impersonation overlay
    active_role = db.Column(db.String(32), nullable=True)
    active_site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=True)

    # Session metadata
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Revocation support
    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    # Client information (for security monitoring)
    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "active_role": self.active_role,
            "active_site_id": self.active_site_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }


def _decode_permissions(raw: str | None) -> list[str]:
    """
    Permissions are stored as a JSON array. Older rows hold a
    comma-separated string; both decode to a list of codes.
    """
    if not raw:
        return []
    raw = raw.strip()
    if raw.startswith("["):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return []
        if isinstance(decoded, list):
            return [str(p).strip() for p in decoded if str(p).strip()]
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


class ApiKey(db.Model):
    """
    API key for the v1 REST API.

    SECURITY: Only the SHA-256 digest of the key is stored. The short
    key_prefix is kept in clear so administrators can tell keys apart.
    associated_site_id / associated_user_id narrow report scopes
    (read:site_checkin_data, read:own_allocation_data).
    """
    __tablename__ = "api_keys"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    key_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    key_prefix = db.Column(db.String(12), nullable=False)

    associated_permissions = db.Column(db.Text, nullable=False, default="[]")
    associated_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    associated_site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    associated_user = db.relationship("User", foreign_keys=[associated_user_id])
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    associated_site = db.relationship("Site")

    @property
    def permissions(self) -> list[str]:
        return _decode_permissions(self.associated_permissions)

    @permissions.setter
    def permissions(self, codes: list[str]) -> None:
        self.associated_permissions = json.dumps(sorted(set(codes)))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "key_prefix": self.key_prefix,
            "permissions": self.permissions,
            "associated_user_id": self.associated_user_id,
            "associated_site_id": self.associated_site_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at) if self.last_used_at else None,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }


class AgentApiKey(db.Model):
    """
    Key presented by automation agents to the gateway.

    The gateway authenticates the agent with this key, then calls the v1 API
    with its own internal key. associated_site_id / associated_user_id
    override the site_id / user_id parameters an agent sends.
    """
    __tablename__ = "agent_api_keys"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    agent_name = db.Column(db.String(255), nullable=False)
    key_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    key_prefix = db.Column(db.String(12), nullable=False)

    associated_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    associated_site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=True)
    permissions_json = db.Column("permissions", db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @property
    def permissions(self) -> list[str]:
        return _decode_permissions(self.permissions_json)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agent_name": self.agent_name,
            "key_prefix": self.key_prefix,
            "associated_user_id": self.associated_user_id,
            "associated_site_id": self.associated_site_id,
            "permissions": self.permissions,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at) if self.last_used_at else None,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }
