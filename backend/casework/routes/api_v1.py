# Overview: Flask API routes for the key-authenticated v1 integration API; parses input and returns JSON responses.

"""
v1 Integration API

AUTH: every endpoint requires an API key (Authorization: Bearer or
X-API-Key) plus the endpoint's permission code. Keys are scoped by their
associated_site_id / associated_user_id where noted.

ERROR SHAPE: {"error": {"message": "...", "code": "..."}}
- 400 INVALID_ID_FORMAT / INVALID_QUERY_PARAM / MISSING_NOTE_TEXT / ...
- 401 AUTH_UNAUTHORIZED, 403 AUTH_FORBIDDEN
- 404 NOT_FOUND
- 500 DB_ERROR / UNEXPECTED_ERROR (generic message, details only in logs)
"""

from functools import wraps

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_api_key, require_api_permission, v1_error
from ..errors import AppError, UnexpectedError, ValidationError
from ..services import (
    allocation_service,
    budget_service,
    checkin_service,
    forum_service,
    reporting_service,
)


api_v1_bp = Blueprint("api_v1", __name__, url_prefix="/api/v1")

CHECKINS_DEFAULT_LIMIT = 50
CHECKINS_MAX_LIMIT = 1000
ALLOCATIONS_DEFAULT_LIMIT = 50
ALLOCATIONS_MAX_LIMIT = 100


def v1_endpoint(f):
    """Translate service errors into the v1 error shape."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except AppError as e:
            if e.status_code >= 500:
                current_app.logger.error(
                    "v1 %s %s failed with %s (key %s)",
                    request.method, request.path, e.code, getattr(g.get("api_key"), "id", None),
                )
                return v1_error(e.status_code, e.code, "A server error occurred. Please try again later.")
            return v1_error(e.status_code, e.code, e.message)
        except Exception:
            current_app.logger.exception(
                "Unexpected v1 error on %s %s (key %s)",
                request.method, request.path, getattr(g.get("api_key"), "id", None),
            )
            error = UnexpectedError()
            return v1_error(error.status_code, error.code, error.message)

    return decorated_function


def _path_id(raw: str, name: str) -> int:
    text = (raw or "").strip()
    if not text.isdigit() or int(text) < 1:
        raise ValidationError(f"Invalid {name} format. Must be a positive integer.", code="INVALID_ID_FORMAT")
    return int(text)


def _query_error(e: ValidationError) -> ValidationError:
    if e.code == "VALIDATION_ERROR":
        return ValidationError(e.message, code="INVALID_QUERY_PARAM")
    return e


# -- check-ins --

@api_v1_bp.get("/checkins/<checkin_id>")
@require_api_key
@require_api_permission("read:checkin_data")
@v1_endpoint
def get_checkin_route(checkin_id):
    checkin = checkin_service.get_checkin(_path_id(checkin_id, "check-in ID"))
    return jsonify(checkin.to_dict())


@api_v1_bp.get("/checkins")
@require_api_key
@require_api_permission("read:checkin_data")
@v1_endpoint
def list_checkins_route():
    """
    List check-ins, newest first.

    A key with an associated_site_id only ever sees that site; a site_id
    query parameter is ignored for such keys.
    """
    api_key = g.api_key
    params = reporting_service.parse_report_params(
        request.args, CHECKINS_DEFAULT_LIMIT, CHECKINS_MAX_LIMIT
    )
    if api_key.associated_site_id:
        requested = (request.args.get("site_id") or "").strip()
        if requested and requested != str(api_key.associated_site_id):
            current_app.logger.warning(
                "Check-in site_id=%s ignored for key ID %s pinned to site %s",
                requested, api_key.id, api_key.associated_site_id,
            )
        site_id = api_key.associated_site_id
    else:
        site_id = reporting_service.parse_id_filters(request.args, ("site_id",)).get("site_id")

    rows, total = checkin_service.list_checkins(
        site_id=site_id,
        start_date=params.start_date,
        end_date=params.end_date,
        page=params.page,
        limit=params.limit,
    )
    return jsonify({
        "data": [c.to_dict() for c in rows],
        "pagination": reporting_service.build_pagination(params.page, params.limit, total),
    })


@api_v1_bp.post("/checkins/<checkin_id>/notes")
@require_api_key
@require_api_permission("create:checkin_note")
@v1_endpoint
def add_checkin_note_route(checkin_id):
    checkin_id = _path_id(checkin_id, "check-in ID")
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload.", code="INVALID_INPUT")

    note = checkin_service.add_note(checkin_id, data.get("note_text"), api_key_id=g.api_key.id)
    return jsonify(note.to_dict()), 201


# -- allocations --

@api_v1_bp.get("/allocations")
@require_api_key
@require_api_permission("read:budget_allocations")
@v1_endpoint
def list_allocations_route():
    """
    Allocation rows joined to their budget.

    Filters: fiscal_year, grant_id, department_id, budget_id,
    user_id (allocation creator), page, limit.
    """
    try:
        fiscal_year = budget_service.parse_budget_filters(
            {"fiscal_year": request.args.get("fiscal_year")}
        )["fiscal_year"]
        filters = reporting_service.parse_id_filters(
            request.args, ("grant_id", "department_id", "budget_id", "user_id")
        )
        page, limit = reporting_service.parse_page_limit(
            request.args, ALLOCATIONS_DEFAULT_LIMIT, ALLOCATIONS_MAX_LIMIT
        )
    except ValidationError as e:
        raise _query_error(e)
    filters["fiscal_year"] = fiscal_year

    rows, total = allocation_service.query_allocations(filters=filters, page=page, limit=limit)
    return jsonify({
        "data": rows,
        "pagination": reporting_service.build_pagination(page, limit, total),
    })


# -- reports --

@api_v1_bp.get("/reports")
@require_api_key
@require_api_permission("generate:reports")
@v1_endpoint
def reports_route():
    """Run a report; scope permissions are resolved from the key."""
    report = reporting_service.generate_report(g.api_key, request.args.get("type"), request.args)
    return jsonify(report)


# -- forum --

@api_v1_bp.get("/forum/posts")
@require_api_key
@require_api_permission("read:all_forum_posts")
@v1_endpoint
def list_forum_posts_route():
    page, limit = reporting_service.parse_page_limit(
        request.args, forum_service.POSTS_DEFAULT_LIMIT, forum_service.POSTS_MAX_LIMIT
    )
    posts, total = forum_service.list_posts(page=page, limit=limit)
    return jsonify({
        "data": [p.to_dict() for p in posts],
        "pagination": reporting_service.build_pagination(page, limit, total),
    })


@api_v1_bp.get("/forum/posts/recent")
@require_api_key
@require_api_permission("read:recent_forum_posts")
@v1_endpoint
def recent_forum_posts_route():
    _, limit = reporting_service.parse_page_limit(
        request.args, forum_service.RECENT_DEFAULT_LIMIT, forum_service.RECENT_MAX_LIMIT
    )
    posts = forum_service.recent_posts(limit=limit)
    return jsonify({"data": [p.to_dict() for p in posts]})


@api_v1_bp.post("/forum/posts")
@require_api_key
@require_api_permission("create:forum_post")
@v1_endpoint
def create_forum_post_route():
    """
    Reply to a topic.

    Request body:
    {
        "topic_id": 3,
        "post_body": "..."
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload.", code="INVALID_INPUT")

    post = forum_service.create_post(
        data.get("topic_id"),
        data.get("post_body"),
        api_key_id=g.api_key.id,
        user_id=g.api_key.associated_user_id,
    )
    return jsonify(post.to_dict()), 201


# -- clients --

@api_v1_bp.get("/clients/<client_id>")
@require_api_key
@require_api_permission("read:client_data")
@v1_endpoint
def get_client_route(client_id):
    client = checkin_service.get_client(_path_id(client_id, "client ID"))
    return jsonify(client.to_dict())
