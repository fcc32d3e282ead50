# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication and Role Context API routes

SECURITY FEATURES:
- Session management with token-based auth
- CSRF token issued at login for AJAX mutations
- Failed logins and impersonation changes recorded in security_events
- Only real administrators may change the active role/site
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..errors import AppError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info, the role context, the session token and the CSRF
    token. The token goes in the Authorization header for protected routes;
    the CSRF token accompanies AJAX mutations.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(username, password)

        if not user:
            permission_service.log_security_event(
                event_type="LOGIN_FAILED",
                success=False,
                resource="/api/auth/login",
                action="LOGIN",
                reason=f"Invalid credentials for '{username}'",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )
        context = session_service.build_context(user, session)

        return jsonify({
            "user": user.to_dict(),
            "context": context.to_dict(),
            "token": token,
            "csrf_token": session.csrf_token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    session_service.revoke_session(bearer_token(), reason="User logout")
    permission_service.log_security_event(
        event_type="LOGOUT",
        success=True,
        ctx=g.request_context,
        action="LOGOUT",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/session")
@require_auth
def session_route():
    """Current role context (real and active values)."""
    return jsonify({
        "context": g.request_context.to_dict(),
        "session": g.session.to_dict(),
    }), 200


@auth_bp.post("/impersonate")
@require_auth
def impersonate_route():
    """
    Switch the active role/site for this session.

    Request body:
    {
        "role": "director" | "administrator" | "azwk_staff" | "outside_staff",
        "site_id": 3 | "all" | null
    }
    """
    data = request.get_json(silent=True) or {}
    role = data.get("role")
    if not role:
        return jsonify({"error": "role is required"}), 400

    try:
        context = session_service.impersonate(
            g.session,
            g.request_context,
            role=role,
            site=data.get("site_id"),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"context": context.to_dict()}), 200
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to impersonate for user %s", g.request_context.user_id)
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/reset-view")
@require_auth
def reset_view_route():
    """Return to the real role and site."""
    try:
        context = session_service.reset_view(
            g.session,
            g.request_context,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"context": context.to_dict()}), 200
    except Exception:
        current_app.logger.exception("Failed to reset view for user %s", g.request_context.user_id)
        return jsonify({"error": "Internal server error"}), 500
