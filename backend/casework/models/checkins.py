from __future__ import annotations

from ..extensions import db
from casework.time_utils import to_utc_z


class Client(db.Model):
    """Client (job seeker) record; check-ins may link to one."""
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=True, unique=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    site = db.relationship("Site")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "site_id": self.site_id,
            "created_at": to_utc_z(self.created_at),
        }


class CheckIn(db.Model):
    """
    A single kiosk/staff check-in at a site.

    IMMUTABLE after creation apart from notes; staff annotate through
    CheckinNote rows.
    """
    __tablename__ = "check_ins"
    __table_args__ = (
        db.Index("ix_check_ins_site_time", "site_id", "check_in_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    client_email = db.Column(db.String(255), nullable=True)

    check_in_time = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    notified_staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    site = db.relationship("Site", backref=db.backref("check_ins", lazy=True))
    client = db.relationship("Client", backref=db.backref("check_ins", lazy=True))
    notified_staff = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "site_id": self.site_id,
            "site_name": self.site.name if self.site else None,
            "client_id": self.client_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "client_email": self.client_email,
            "check_in_time": to_utc_z(self.check_in_time),
            "notified_staff_id": self.notified_staff_id,
        }


class CheckinNote(db.Model):
    """
    Staff or API note attached to a check-in.

    Exactly one of created_by_user_id / created_by_api_key_id is set.
    """
    __tablename__ = "checkin_notes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    check_in_id = db.Column(db.Integer, db.ForeignKey("check_ins.id"), nullable=False, index=True)
    note_text = db.Column(db.Text, nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_by_api_key_id = db.Column(db.Integer, db.ForeignKey("api_keys.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    check_in = db.relationship(
        "CheckIn",
        backref=db.backref("notes", lazy=True, order_by="CheckinNote.created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "check_in_id": self.check_in_id,
            "note_text": self.note_text,
            "created_by_user_id": self.created_by_user_id,
            "created_by_api_key_id": self.created_by_api_key_id,
            "created_at": to_utc_z(self.created_at),
        }
