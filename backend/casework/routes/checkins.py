# Overview: Flask API routes for kiosk and staff check-ins; parses input and returns JSON responses.

"""
Check-in Routes (staff session)

- POST /api/checkins: kiosk or staff records a visit
- GET /api/checkins/<id>: check-in with notes
- POST /api/checkins/<id>/notes: staff note

SITE SCOPING: site-scoped roles record and read only at their active site.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import AppError
from ..permissions import roles
from ..services import checkin_service
from ..validation import parse_positive_int


checkins_bp = Blueprint("checkins", __name__, url_prefix="/api/checkins")

CHECKIN_ROLES = roles.ALL_ROLES
NOTE_ROLES = tuple(r for r in roles.ALL_ROLES if r != roles.KIOSK)


@checkins_bp.post("")
@require_auth
@require_role(*CHECKIN_ROLES)
def create_checkin_route():
    """
    Record a check-in.

    Request body:
    {
        "site_id": 1,            // forced to the active site for site-scoped roles
        "first_name": "...",
        "last_name": "...",
        "client_email": "...",   // optional
        "client_id": 12          // optional
    }
    """
    ctx = g.request_context
    data = request.get_json(silent=True) or {}

    try:
        if ctx.active_role in roles.SITE_SCOPED_ROLES:
            site_id = ctx.active_site_id
            if site_id is None:
                return jsonify({"error": "No active site for this session"}), 400
        else:
            site_id = parse_positive_int(data.get("site_id"), "site_id", required=True)

        checkin = checkin_service.create_checkin(
            site_id=site_id,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            client_email=data.get("client_email"),
            client_id=parse_positive_int(data.get("client_id"), "client_id"),
            notified_staff_id=parse_positive_int(data.get("notified_staff_id"), "notified_staff_id"),
        )
        return jsonify(checkin.to_dict()), 201
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record check-in")
        return jsonify({"error": "Internal server error"}), 500


@checkins_bp.get("/<int:checkin_id>")
@require_auth
@require_role(*NOTE_ROLES)
def get_checkin_route(checkin_id: int):
    try:
        checkin = checkin_service.get_checkin(checkin_id)
        checkin_service.ensure_site_visible(g.request_context, checkin)
        return jsonify(checkin_service.checkin_detail(checkin))
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code


@checkins_bp.post("/<int:checkin_id>/notes")
@require_auth
@require_role(*NOTE_ROLES)
def add_note_route(checkin_id: int):
    ctx = g.request_context
    data = request.get_json(silent=True) or {}
    try:
        checkin = checkin_service.get_checkin(checkin_id)
        checkin_service.ensure_site_visible(ctx, checkin)
        note = checkin_service.add_note(checkin_id, data.get("note_text"), user_id=ctx.user_id)
        return jsonify(note.to_dict()), 201
    except AppError as e:
        return jsonify({"error": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add note to check-in %s", checkin_id)
        return jsonify({"error": "Internal server error"}), 500
