# Overview: Service-layer operations for API keys and agent keys; encapsulates business logic and database work.

"""
API Key Management

WHY: The v1 API is consumed by integrations, and the gateway by automation
agents. Neither has a staff session, so each presents a long-lived key.

SECURITY NOTES:
- Keys are 32 random bytes (64 hex chars); plaintext is returned ONCE at creation
- Only the SHA-256 digest is stored; lookup is a single indexed query
- key_prefix (first 8 chars) is stored in clear for identification
- Revoked keys never authenticate
"""

from __future__ import annotations

import secrets

from ..extensions import db
from ..models import ApiKey, AgentApiKey, User, Site
from ..permissions.helpers import normalize_permission_codes
from .session_service import hash_token
from casework.time_utils import utcnow


KEY_PREFIX_LENGTH = 8


class ApiKeyError(Exception):
    """Raised when API key operations fail."""
    pass


def generate_key() -> str:
    return secrets.token_hex(32)


def _validate_associations(associated_user_id: int | None, associated_site_id: int | None) -> None:
    if associated_user_id is not None:
        if not db.session.query(User).filter_by(id=associated_user_id).first():
            raise ApiKeyError("Associated user not found")
    if associated_site_id is not None:
        if not db.session.query(Site).filter_by(id=associated_site_id).first():
            raise ApiKeyError("Associated site not found")


def create_api_key(
    *,
    name: str,
    permissions: list[str],
    associated_user_id: int | None = None,
    associated_site_id: int | None = None,
    created_by_user_id: int | None = None,
) -> tuple[ApiKey, str]:
    """
    Create a v1 API key. Returns (record, plaintext_key).

    Raises ApiKeyError for a missing name, unknown permission code or
    unknown association.
    """
    if not name or not name.strip():
        raise ApiKeyError("Key name is required")
    try:
        codes = normalize_permission_codes(permissions)
    except ValueError as e:
        raise ApiKeyError(str(e))
    _validate_associations(associated_user_id, associated_site_id)

    plaintext = generate_key()
    api_key = ApiKey(
        name=name.strip(),
        key_hash=hash_token(plaintext),
        key_prefix=plaintext[:KEY_PREFIX_LENGTH],
        associated_user_id=associated_user_id,
        associated_site_id=associated_site_id,
        created_by_user_id=created_by_user_id,
    )
    api_key.permissions = codes

    db.session.add(api_key)
    db.session.commit()
    return api_key, plaintext


def create_agent_key(
    *,
    agent_name: str,
    associated_user_id: int | None = None,
    associated_site_id: int | None = None,
) -> tuple[AgentApiKey, str]:
    """Create a gateway agent key. Returns (record, plaintext_key)."""
    if not agent_name or not agent_name.strip():
        raise ApiKeyError("Agent name is required")
    _validate_associations(associated_user_id, associated_site_id)

    plaintext = generate_key()
    agent_key = AgentApiKey(
        agent_name=agent_name.strip(),
        key_hash=hash_token(plaintext),
        key_prefix=plaintext[:KEY_PREFIX_LENGTH],
        associated_user_id=associated_user_id,
        associated_site_id=associated_site_id,
    )

    db.session.add(agent_key)
    db.session.commit()
    return agent_key, plaintext


def _authenticate(model, plaintext: str | None):
    if not plaintext:
        return None
    record = db.session.query(model).filter(
        model.key_hash == hash_token(plaintext.strip()),
        model.revoked_at.is_(None),
    ).first()
    if not record:
        return None

    record.last_used_at = utcnow()
    db.session.commit()
    return record


def authenticate_api_key(plaintext: str | None) -> ApiKey | None:
    """Return the active ApiKey for plaintext, or None."""
    return _authenticate(ApiKey, plaintext)


def authenticate_agent_key(plaintext: str | None) -> AgentApiKey | None:
    """Return the active AgentApiKey for plaintext, or None."""
    return _authenticate(AgentApiKey, plaintext)


def revoke_api_key(key_id: int, *, agent: bool = False) -> bool:
    """
    Revoke a key by id. Returns False if not found or already revoked.
    """
    model = AgentApiKey if agent else ApiKey
    record = db.session.query(model).filter_by(id=key_id).first()
    if not record or record.revoked_at is not None:
        return False
    record.revoked_at = utcnow()
    db.session.commit()
    return True


def list_api_keys(*, include_revoked: bool = False, agent: bool = False) -> list:
    model = AgentApiKey if agent else ApiKey
    query = db.session.query(model)
    if not include_revoked:
        query = query.filter(model.revoked_at.is_(None))
    return query.order_by(model.id.asc()).all()
