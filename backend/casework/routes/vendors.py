# Overview: Flask API routes for vendor operations; parses input and returns JSON responses.

"""
Vendor Routes

SECURITY: All routes require authentication.
- Any staff session may list vendors and check the client-name rule
- Create/update/deactivate require director or administrator
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..errors import AppError
from ..permissions import roles
from ..services import vendor_service


vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


@vendors_bp.get("")
@require_auth
def list_vendors_route():
    """
    List vendors.

    Query parameters:
    - include_inactive: Include inactive vendors (default: false)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    vendors = vendor_service.list_vendors(include_inactive=include_inactive)
    return jsonify({
        "items": [v.to_dict() for v in vendors],
        "count": len(vendors),
    })


@vendors_bp.get("/<int:vendor_id>/client-name-required")
@require_auth
def client_name_required_route(vendor_id: int):
    """Whether allocations against this vendor must carry a client name."""
    requires = vendor_service.does_vendor_require_client_name(vendor_id)
    if requires is None:
        return jsonify({"error": "Invalid or inactive vendor"}), 404
    return jsonify({"vendor_id": vendor_id, "client_name_required": requires})


@vendors_bp.post("")
@require_auth
@require_role(*roles.BUDGET_MANAGER_ROLES)
def create_vendor_route():
    """
    Create a new vendor.

    Request body:
    {
        "name": "Vendor Name",          // required, unique
        "client_name_required": true    // optional, default false
    }
    """
    data = request.get_json(silent=True) or {}

    name = data.get("name")
    if not name:
        return jsonify({"error": "name is required"}), 400

    try:
        vendor = vendor_service.create_vendor(
            name=name,
            client_name_required=bool(data.get("client_name_required", False)),
        )
        return jsonify(vendor.to_dict()), 201
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create vendor")
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.patch("/<int:vendor_id>")
@require_auth
@require_role(*roles.BUDGET_MANAGER_ROLES)
def update_vendor_route(vendor_id: int):
    data = request.get_json(silent=True) or {}
    try:
        vendor = vendor_service.update_vendor(
            vendor_id,
            name=data.get("name"),
            client_name_required=data.get("client_name_required"),
            is_active=data.get("is_active"),
        )
        return jsonify(vendor.to_dict())
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update vendor %s", vendor_id)
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.post("/<int:vendor_id>/deactivate")
@require_auth
@require_role(*roles.BUDGET_MANAGER_ROLES)
def deactivate_vendor_route(vendor_id: int):
    try:
        vendor = vendor_service.deactivate_vendor(vendor_id)
        return jsonify(vendor.to_dict())
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code
