# Overview: Flask route for the agent gateway; authenticates agent keys and dispatches actions.

"""
Agent Gateway Route

POST /api/gateway
    Authorization: Bearer <agent key>   (or X-Agent-API-Key)
    {"action": "queryCheckins", "params": {...}}

Success: {"status": "success", "data": ..., "message"?: "..."}
Error:   {"status": "error", "error": {"code", "message", "details"?}}
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import bearer_token
from ..services import api_key_service, gateway_service, permission_service
from ..services.gateway_service import GatewayError


gateway_bp = Blueprint("gateway", __name__, url_prefix="/api/gateway")


def _gateway_error(status: int, code: str, message: str, details=None):
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return jsonify({"status": "error", "error": error}), status


@gateway_bp.route(
    "",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    strict_slashes=False,
)
def gateway_route():
    if request.method != "POST":
        return _gateway_error(405, "METHOD_NOT_ALLOWED", "Only POST requests are accepted.")

    plaintext = bearer_token() or request.headers.get("X-Agent-API-Key")
    agent = api_key_service.authenticate_agent_key(plaintext) if plaintext else None
    if not agent:
        permission_service.log_security_event(
            event_type="AGENT_KEY_INVALID",
            success=False,
            resource=request.path,
            action="GATEWAY",
            reason="Missing or invalid agent API key" if plaintext else "Missing agent API key",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return _gateway_error(401, "AUTHENTICATION_FAILED", "Invalid or missing agent API key.")

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return _gateway_error(400, "INVALID_REQUEST_FORMAT", "Request body must be a JSON object.")

    action = body.get("action")
    try:
        result = gateway_service.dispatch(action, body.get("params") or {}, agent)
    except GatewayError as e:
        current_app.logger.info(
            "Gateway action %r for agent %s failed: %s", action, agent.id, e.code
        )
        return _gateway_error(e.status_code, e.code, e.message, e.details)
    except Exception:
        current_app.logger.exception("Gateway action %r for agent %s crashed", action, agent.id)
        return _gateway_error(500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred.")

    response = {"status": "success", "data": result.data}
    if result.message:
        response["message"] = result.message
    return jsonify(response), 200
