# Overview: Service-layer operations for check-ins, notes and clients; encapsulates business logic and database work.

"""
Check-in Service

WHY: Kiosks record who walked in; staff and integrations annotate those
visits. Check-ins are immutable once written; notes are append-only.

SITE SCOPING: site-scoped roles (kiosk, site_supervisor, azwk_staff,
outside_staff) only see check-ins at their ACTIVE site. API keys with an
associated_site_id are pinned to that site when listing.
"""

from __future__ import annotations

from datetime import datetime, time

from ..extensions import db
from ..models import CheckIn, CheckinNote, Client, Site, User
from ..context import RequestContext
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..permissions import roles
from .concurrency import atomic
from casework.time_utils import end_of_day, utcnow


NOTE_MAX_LENGTH = 5000


def get_checkin(checkin_id: int) -> CheckIn:
    checkin = db.session.query(CheckIn).filter_by(id=checkin_id).first()
    if not checkin:
        raise NotFoundError("Check-in not found.")
    return checkin


def checkin_detail(checkin: CheckIn) -> dict:
    """Check-in row plus its notes, oldest first."""
    data = checkin.to_dict()
    data["notes"] = [note.to_dict() for note in checkin.notes]
    return data


def ensure_site_visible(ctx: RequestContext, checkin: CheckIn) -> None:
    """Site-scoped roles may only read check-ins at their active site."""
    if ctx.active_role in roles.SITE_SCOPED_ROLES and ctx.active_site_id != checkin.site_id:
        raise AuthorizationError("Check-in belongs to a different site.")


def list_checkins(
    *,
    site_id: int | None,
    start_date=None,
    end_date=None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[CheckIn], int]:
    query = db.session.query(CheckIn)
    if site_id is not None:
        query = query.filter(CheckIn.site_id == site_id)
    if start_date is not None:
        query = query.filter(CheckIn.check_in_time >= datetime.combine(start_date, time.min))
    if end_date is not None:
        query = query.filter(CheckIn.check_in_time <= end_of_day(end_date))

    total = query.count()
    rows = query.order_by(
        CheckIn.check_in_time.desc(),
        CheckIn.id.desc(),
    ).limit(limit).offset((page - 1) * limit).all()
    return rows, total


def create_checkin(
    *,
    site_id: int,
    first_name: str | None,
    last_name: str | None,
    client_email: str | None = None,
    client_id: int | None = None,
    notified_staff_id: int | None = None,
) -> CheckIn:
    first_name = (first_name or "").strip()
    last_name = (last_name or "").strip()
    if not first_name or not last_name:
        raise ValidationError("first_name and last_name are required")

    site = db.session.query(Site).filter_by(id=site_id, is_active=True).first()
    if not site:
        raise ValidationError("Site not found or inactive")

    if client_id is not None:
        client = db.session.query(Client).filter_by(id=client_id, deleted_at=None).first()
        if not client:
            raise ValidationError("Client not found")

    if notified_staff_id is not None:
        staff = db.session.query(User).filter_by(id=notified_staff_id, is_active=True).first()
        if not staff:
            raise ValidationError("Notified staff member not found")

    checkin = CheckIn(
        site_id=site_id,
        client_id=client_id,
        first_name=first_name,
        last_name=last_name,
        client_email=(client_email or "").strip() or None,
        check_in_time=utcnow(),
        notified_staff_id=notified_staff_id,
    )
    with atomic("create check-in", site_id=site_id):
        db.session.add(checkin)
    return checkin


def add_note(
    checkin_id: int,
    note_text: str | None,
    *,
    user_id: int | None = None,
    api_key_id: int | None = None,
) -> CheckinNote:
    """
    Append a note to a check-in, attributed to a user OR an API key.

    Raises ValidationError(code=MISSING_NOTE_TEXT) for a blank note and
    NotFoundError when the check-in does not exist.
    """
    text = (note_text or "").strip() if isinstance(note_text, (str, type(None))) else ""
    if not text:
        raise ValidationError("Missing or empty 'note_text' in request body.", code="MISSING_NOTE_TEXT")
    if len(text) > NOTE_MAX_LENGTH:
        raise ValidationError(f"note_text exceeds max length {NOTE_MAX_LENGTH}")

    get_checkin(checkin_id)

    note = CheckinNote(
        check_in_id=checkin_id,
        note_text=text,
        created_by_user_id=user_id,
        created_by_api_key_id=api_key_id,
        created_at=utcnow(),
    )
    with atomic("add check-in note", checkin_id=checkin_id, user_id=user_id, api_key_id=api_key_id):
        db.session.add(note)
    return note


def get_client(client_id: int) -> Client:
    client = db.session.query(Client).filter_by(id=client_id, deleted_at=None).first()
    if not client:
        raise NotFoundError("Client not found.")
    return client
