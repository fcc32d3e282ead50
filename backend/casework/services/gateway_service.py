# Overview: Service-layer operations for the agent gateway; maps agent actions onto v1 API calls.

"""
Agent Gateway

WHY: Automation agents speak a small action vocabulary ({action, params})
instead of REST. The gateway authenticates the agent with its own key,
translates the action into one v1 API request, and forwards it with the
fixed INTERNAL_API_KEY bearer.

SCOPE OVERRIDE: an agent key's associated_site_id replaces any site_id the
agent sends (queryCheckins, generateReports); associated_user_id replaces
user_id (queryAllocations). The agent cannot widen its own scope.

NO RETRY: exactly one outbound attempt. Transport failure or a non-2xx
upstream status becomes INTERNAL_API_ERROR with the upstream body attached.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from flask import current_app


class GatewayError(Exception):
    """Error rendered as {status: "error", error: {code, message, details?}}."""

    def __init__(self, status_code: int, code: str, message: str, details: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


@dataclass(frozen=True)
class GatewayResult:
    data: object
    message: str | None = None


@dataclass(frozen=True)
class UpstreamCall:
    method: str
    path: str
    query: dict | None = None
    body: dict | None = None


def _invalid(message: str) -> GatewayError:
    return GatewayError(400, "INVALID_PARAMS", message)


def _require_positive_id(params: dict, name: str, action: str) -> int:
    if name not in params or params[name] is None:
        raise _invalid(f'Missing required parameter "{name}" for action "{action}".')
    value = params[name]
    if isinstance(value, bool):
        raise _invalid(f'"{name}" must be a positive integer.')
    try:
        number = int(str(value).strip())
    except ValueError:
        raise _invalid(f'"{name}" must be a positive integer.')
    if number <= 0:
        raise _invalid(f'"{name}" must be a positive integer.')
    return number


def _require_text(params: dict, name: str, action: str) -> str:
    if name not in params:
        raise _invalid(f'Missing required parameter "{name}" for action "{action}".')
    value = params[name]
    if not isinstance(value, str) or not value.strip():
        raise _invalid(f'"{name}" must be a non-empty string for "{action}".')
    return value


def _pick(params: dict, allowed) -> dict:
    return {name: params[name] for name in allowed if params.get(name) is not None}


def _scoped(params: dict, allowed, override_name: str, override_value) -> dict:
    query = _pick(params, allowed)
    if override_value:
        query[override_name] = override_value
    return query


# -- action builders: (params, agent) -> UpstreamCall --

def _fetch_checkin_details(params, agent):
    checkin_id = _require_positive_id(params, "checkin_id", "fetchCheckinDetails")
    return UpstreamCall("GET", f"/checkins/{checkin_id}")


def _query_checkins(params, agent):
    query = _scoped(
        params,
        ("site_id", "start_date", "end_date", "limit", "page"),
        "site_id",
        agent.associated_site_id,
    )
    return UpstreamCall("GET", "/checkins", query=query)


def _add_checkin_note(params, agent):
    checkin_id = _require_positive_id(params, "checkin_id", "addCheckinNote")
    note_text = _require_text(params, "note_text", "addCheckinNote")
    return UpstreamCall("POST", f"/checkins/{checkin_id}/notes", body={"note_text": note_text})


def _query_allocations(params, agent):
    query = _scoped(
        params,
        ("fiscal_year", "grant_id", "user_id", "department_id", "budget_id", "page", "limit"),
        "user_id",
        agent.associated_user_id,
    )
    return UpstreamCall("GET", "/allocations", query=query)


def _create_forum_post(params, agent):
    topic_id = _require_positive_id(params, "topic_id", "createForumPost")
    post_body = _require_text(params, "post_body", "createForumPost")
    return UpstreamCall("POST", "/forum/posts", body={"topic_id": topic_id, "post_body": post_body})


def _generate_reports(params, agent):
    report_type = _require_text(params, "type", "generateReports")
    query = _scoped(
        params,
        ("start_date", "end_date", "site_id", "limit", "page"),
        "site_id",
        agent.associated_site_id,
    )
    query["type"] = report_type.strip()
    return UpstreamCall("GET", "/reports", query=query)


def _read_all_forum_posts(params, agent):
    return UpstreamCall("GET", "/forum/posts", query=_pick(params, ("page", "limit")))


def _read_recent_forum_posts(params, agent):
    return UpstreamCall("GET", "/forum/posts/recent", query=_pick(params, ("limit",)))


def _fetch_client_details(params, agent):
    client_id = _require_positive_id(params, "client_id", "fetchClientDetails")
    return UpstreamCall("GET", f"/clients/{client_id}")


ACTIONS = {
    "fetchCheckinDetails": (_fetch_checkin_details, None),
    "queryCheckins": (_query_checkins, None),
    "addCheckinNote": (_add_checkin_note, "Check-in note added successfully."),
    "queryAllocations": (_query_allocations, None),
    "createForumPost": (_create_forum_post, "Forum post created successfully."),
    "generateReports": (_generate_reports, None),
    "readAllForumPosts": (_read_all_forum_posts, None),
    "readRecentForumPosts": (_read_recent_forum_posts, None),
    "fetchClientDetails": (_fetch_client_details, None),
}


def build_client() -> httpx.Client:
    """
    httpx client for the internal v1 API.

    GATEWAY_TRANSPORT (an httpx transport) may be set in config to route
    calls somewhere other than the network.
    """
    api_key = current_app.config.get("INTERNAL_API_KEY")
    if not api_key:
        raise GatewayError(500, "INTERNAL_API_ERROR", "Gateway is not configured with an internal API key.")

    return httpx.Client(
        base_url=current_app.config["INTERNAL_API_BASE_URL"],
        timeout=current_app.config.get("GATEWAY_TIMEOUT_SECONDS", 30),
        headers={
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        },
        transport=current_app.config.get("GATEWAY_TRANSPORT"),
    )


def _upstream_message(body, default: str) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return default


def call_internal_api(call: UpstreamCall):
    """
    One request to the v1 API. Returns decoded JSON on 2xx.

    Raises GatewayError(INTERNAL_API_ERROR) otherwise.
    """
    try:
        with build_client() as client:
            response = client.request(call.method, call.path, params=call.query, json=call.body)
    except httpx.HTTPError as exc:
        current_app.logger.warning("Gateway upstream %s %s failed: %s", call.method, call.path, exc)
        raise GatewayError(502, "INTERNAL_API_ERROR", "Failed to reach the internal API.") from exc

    try:
        body = response.json()
    except ValueError:
        body = response.text

    if response.is_success:
        return body

    current_app.logger.warning(
        "Gateway upstream %s %s returned %s", call.method, call.path, response.status_code
    )
    raise GatewayError(
        response.status_code,
        "INTERNAL_API_ERROR",
        _upstream_message(body, f"Internal API returned HTTP {response.status_code}."),
        details={"internal_response": body},
    )


def dispatch(action, params, agent) -> GatewayResult:
    """
    Run one agent action.

    Raises GatewayError for MISSING_ACTION / ACTION_NOT_FOUND /
    INVALID_PARAMS / INTERNAL_API_ERROR.
    """
    if not isinstance(action, str) or not action.strip():
        raise GatewayError(400, "MISSING_ACTION", 'Required "action" parameter is missing or not a string.')
    action = action.strip()
    action = action[:1].lower() + action[1:]

    entry = ACTIONS.get(action)
    if entry is None:
        raise GatewayError(404, "ACTION_NOT_FOUND", f'Action "{action}" is not supported.')
    builder, success_message = entry

    if not isinstance(params, dict):
        params = {}

    call = builder(params, agent)
    data = call_internal_api(call)
    return GatewayResult(data=data, message=success_message)
