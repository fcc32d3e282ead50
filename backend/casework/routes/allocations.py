# Overview: Flask API routes for budget allocation operations; parses input and returns JSON responses.

"""
Allocation Routes

AJAX HANDLER: POST /api/allocations/ajax with an `action` field.
- add, edit, delete: mutating, require csrf_token matching the session
- get_allocation_details, get_allocations_for_filters: reads (GET or POST)

Responses use the handler's own shape:
    {"success": true, ...} / {"success": false, "message": "..."}

Every mutating action re-checks the permission predicate server-side;
whatever the client enabled or disabled is irrelevant.
"""

from flask import Blueprint, request, jsonify, current_app

from ..context import current_actor
from ..decorators import require_auth, csrf_token_valid
from ..errors import AppError, ValidationError
from ..permissions.fields import can_delete_allocation, effective_field_permissions
from ..services import allocation_service, budget_service, permission_service
from ..validation import parse_positive_int


allocations_bp = Blueprint("allocations", __name__, url_prefix="/api/allocations")

MUTATING_ACTIONS = ("add", "edit", "delete")
READ_ACTIONS = ("get_allocation_details", "get_allocations_for_filters")


def _failure(message: str, status: int, **extra):
    body = {"success": False, "message": message}
    body.update(extra)
    return jsonify(body), status


def _request_data() -> dict:
    if request.method == "GET":
        return request.args.to_dict()
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _action_add(ctx, data):
    budget_id = parse_positive_int(data.get("budget_id"), "budget_id", required=True)
    allocation = allocation_service.add_allocation(ctx, budget_id, data)
    return jsonify({
        "success": True,
        "message": "Allocation added successfully.",
        "new_id": allocation.id,
        "allocation": allocation.to_dict(),
    }), 201


def _action_edit(ctx, data):
    allocation_id = parse_positive_int(data.get("allocation_id"), "allocation_id", required=True)
    expected_version = parse_positive_int(data.get("version_id"), "version_id")

    result = allocation_service.update_allocation(
        ctx,
        allocation_id,
        data,
        expected_version=expected_version,
    )
    if result.no_fields_permitted:
        return _failure(
            "You do not have permission to edit any of the submitted fields.",
            403,
            dropped_fields=list(result.dropped_fields),
        )

    body = {"success": True, "message": "Allocation updated successfully."}
    body.update(result.to_dict())
    return jsonify(body), 200


def _action_delete(ctx, data):
    allocation_id = parse_positive_int(data.get("allocation_id"), "allocation_id", required=True)
    allocation = allocation_service.get_allocation(allocation_id)
    if not allocation or not budget_service.actor_can_view(ctx, allocation.budget):
        return _failure("Allocation not found.", 404)

    if not can_delete_allocation(ctx, allocation.budget.budget_type):
        permission_service.log_security_event(
            event_type="PERMISSION_DENIED",
            success=False,
            ctx=ctx,
            resource=f"allocations/{allocation_id}",
            action="DELETE_ALLOCATION",
            reason=f"Role '{ctx.active_role}' cannot delete allocations on {allocation.budget.budget_type} budgets",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return _failure("You do not have permission to delete this allocation.", 403)

    allocation_service.soft_delete_allocation(ctx, allocation_id)
    return jsonify({"success": True, "message": "Allocation deleted successfully."}), 200


def _action_details(ctx, data):
    allocation_id = parse_positive_int(data.get("allocation_id"), "allocation_id", required=True)
    allocation = allocation_service.get_allocation(allocation_id)
    if not allocation or not budget_service.actor_can_view(ctx, allocation.budget):
        return _failure("Allocation not found.", 404)

    budget = allocation.budget
    permissions = effective_field_permissions(ctx, budget.budget_type, budget.user_id)
    return jsonify({
        "success": True,
        "allocation": allocation.to_dict(),
        "budget": budget.to_dict(),
        "field_permissions": permissions.to_dict(),
    }), 200


def _action_for_filters(ctx, data):
    filters = budget_service.parse_budget_filters(data)
    budgets = budget_service.list_visible_budgets(ctx, **filters)
    allocations = allocation_service.list_allocations_for_budgets([b.id for b in budgets])

    budget_permissions = {
        b.id: effective_field_permissions(ctx, b.budget_type, b.user_id).to_dict()
        for b in budgets
    }
    return jsonify({
        "success": True,
        "budgets": [b.to_dict() for b in budgets],
        "allocations": [a.to_dict() for a in allocations],
        "field_permissions": budget_permissions,
    }), 200


_ACTIONS = {
    "add": _action_add,
    "edit": _action_edit,
    "delete": _action_delete,
    "get_allocation_details": _action_details,
    "get_allocations_for_filters": _action_for_filters,
}


@allocations_bp.route("/ajax", methods=["GET", "POST"])
@require_auth
def ajax_allocation_route():
    ctx = current_actor()
    data = _request_data()
    action = (data.get("action") or "").strip()

    handler = _ACTIONS.get(action)
    if handler is None:
        return _failure("Invalid request method or action not specified.", 400)

    if action in MUTATING_ACTIONS:
        if request.method != "POST":
            return _failure("Invalid request method or action not specified.", 405)
        if not csrf_token_valid():
            return _failure(
                "Invalid request (CSRF token mismatch). Please refresh the page and try again.",
                403,
            )

    try:
        return handler(ctx, data)
    except AppError as e:
        if e.status_code >= 500:
            return _failure("A server error occurred. Please try again later.", e.status_code)
        return _failure(e.message, e.status_code)
    except Exception:
        current_app.logger.exception(
            "Failed to handle allocation action %s for user %s", action, ctx.user_id
        )
        return _failure("An unexpected error occurred.", 500)


@allocations_bp.get("/field-permissions")
@require_auth
def field_permissions_route():
    """
    Editable field groups for the current actor on a budget.

    A UX mirror for clients; the server predicate stays authoritative.
    """
    ctx = current_actor()
    try:
        budget_id = parse_positive_int(request.args.get("budget_id"), "budget_id", required=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        budget = budget_service.get_budget(budget_id)
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code

    if not budget_service.actor_can_view(ctx, budget):
        return jsonify({"error": "Budget not found"}), 404

    permissions = effective_field_permissions(ctx, budget.budget_type, budget.user_id)
    return jsonify({
        "budget_id": budget.id,
        "budget_type": budget.budget_type,
        "active_role": ctx.active_role,
        **permissions.to_dict(),
    }), 200
