# Overview: Flask API routes for budget operations; parses input and returns JSON responses.

"""
Budget Routes

SECURITY: All routes require authentication.
- Listing returns only budgets visible to the active role
- Create/update/delete require director or administrator (active role)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import AppError
from ..permissions import roles
from ..services import budget_service


budgets_bp = Blueprint("budgets", __name__, url_prefix="/api/budgets")


@budgets_bp.get("")
@require_auth
def list_budgets_route():
    """
    List budgets visible to the current actor.

    Query parameters:
    - fiscal_year: YYYY (year of fiscal_year_start)
    - grant_id, department_id: optional filters
    """
    try:
        filters = budget_service.parse_budget_filters(request.args)
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code

    budgets = budget_service.list_visible_budgets(g.request_context, **filters)
    return jsonify({
        "items": [b.to_dict() for b in budgets],
        "count": len(budgets),
    })


@budgets_bp.get("/<int:budget_id>")
@require_auth
def get_budget_route(budget_id: int):
    try:
        budget = budget_service.get_budget(budget_id)
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code

    if not budget_service.actor_can_view(g.request_context, budget):
        return jsonify({"error": "Budget not found"}), 404
    return jsonify(budget.to_dict())


@budgets_bp.post("")
@require_auth
@require_role(*roles.BUDGET_MANAGER_ROLES)
def create_budget_route():
    """
    Create a budget.

    Request body:
    {
        "name": "...",
        "budget_type": "Staff" | "Admin",
        "user_id": 4,             // required for Staff, ignored for Admin
        "grant_id": 1,
        "department_id": 2,
        "site_id": 3,             // optional
        "fiscal_year_start": "2025-07-01",
        "fiscal_year_end": "2026-06-30",
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        budget = budget_service.create_budget(g.request_context, data, ip_address=request.remote_addr)
        return jsonify(budget.to_dict()), 201
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create budget")
        return jsonify({"error": "Internal server error"}), 500


@budgets_bp.patch("/<int:budget_id>")
@require_auth
@require_role(*roles.BUDGET_MANAGER_ROLES)
def update_budget_route(budget_id: int):
    data = request.get_json(silent=True) or {}
    try:
        budget = budget_service.update_budget(g.request_context, budget_id, data, ip_address=request.remote_addr)
        return jsonify(budget.to_dict())
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update budget %s", budget_id)
        return jsonify({"error": "Internal server error"}), 500


@budgets_bp.delete("/<int:budget_id>")
@require_auth
@require_role(*roles.BUDGET_MANAGER_ROLES)
def delete_budget_route(budget_id: int):
    try:
        budget_service.soft_delete_budget(g.request_context, budget_id, ip_address=request.remote_addr)
        return jsonify({"message": "Budget deleted"}), 200
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete budget %s", budget_id)
        return jsonify({"error": "Internal server error"}), 500
