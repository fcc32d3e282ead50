# Overview: Request and permission decorators for API routes.

import hmac
from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service, api_key_service
from .services.permission_service import PermissionDeniedError
from .errors import AuthorizationError


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _is_authenticated() -> bool:
    return hasattr(g, 'request_context') and hasattr(g, 'session')


def require_auth(f):
    """
    Require a staff session and establish the role context.

    Sets the following Flask g attributes:
    - g.request_context: RequestContext (real + active role/site)
    - g.session: the SessionToken row (impersonation overlay lives here)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired, or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        validated = session_service.validate_session(token)
        if not validated:
            return jsonify({"error": "Invalid or expired token"}), 401

        session, context = validated
        g.session = session
        g.request_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*allowed_roles):
    """
    Require the ACTIVE role to be one of allowed_roles.

    Denials are written to security_events with real and active role.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_role(
                    g.request_context,
                    allowed_roles,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(allowed_roles),
                    "message": str(e)
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def csrf_token_from_request() -> str | None:
    header = request.headers.get("X-CSRF-Token")
    if header:
        return header
    if request.form and request.form.get("csrf_token"):
        return request.form.get("csrf_token")
    data = request.get_json(silent=True)
    if isinstance(data, dict) and data.get("csrf_token"):
        return str(data["csrf_token"])
    return None


def csrf_token_valid() -> bool:
    supplied = csrf_token_from_request()
    if not supplied or not _is_authenticated():
        return False
    return hmac.compare_digest(str(supplied), g.session.csrf_token)


def _api_key_from_request() -> str | None:
    return bearer_token() or request.headers.get("X-API-Key")


def v1_error(status: int, code: str, message: str):
    return jsonify({"error": {"message": message, "code": code}}), status


def require_api_key(f):
    """
    Authenticate a v1 API key (Authorization: Bearer or X-API-Key).

    Sets g.api_key. Returns 401 AUTH_UNAUTHORIZED on failure.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        plaintext = _api_key_from_request()
        if not plaintext:
            return v1_error(401, "AUTH_UNAUTHORIZED", "API key is missing.")

        api_key = api_key_service.authenticate_api_key(plaintext)
        if not api_key:
            permission_service.log_security_event(
                event_type="API_KEY_INVALID",
                success=False,
                resource=request.path,
                action=request.method,
                reason="Invalid or revoked API key",
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
            return v1_error(401, "AUTH_UNAUTHORIZED", "Invalid or revoked API key.")

        g.api_key = api_key
        return f(*args, **kwargs)

    return decorated_function


def require_api_permission(permission_code: str):
    """Require the authenticated API key to hold permission_code (403 AUTH_FORBIDDEN)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "api_key"):
                return v1_error(401, "AUTH_UNAUTHORIZED", "API key is missing.")

            try:
                permission_service.require_key_permission(
                    g.api_key,
                    permission_code,
                    resource=request.path,
                    ip_address=request.remote_addr,
                )
            except AuthorizationError as e:
                return v1_error(403, e.code, e.message)

            return f(*args, **kwargs)

        return decorated_function
    return decorator
