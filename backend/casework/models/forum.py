from __future__ import annotations

from ..extensions import db
from casework.time_utils import to_utc_z


class ForumCategory(db.Model):
    __tablename__ = "forum_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
        }


class ForumTopic(db.Model):
    """
    Discussion thread.

    last_post_at / last_post_user_id are denormalized pointers updated in the
    same transaction as the post insert. API-created posts leave
    last_post_user_id NULL.
    """
    __tablename__ = "forum_topics"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("forum_categories.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    title = db.Column(db.String(255), nullable=False)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    is_sticky = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_post_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    last_post_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    category = db.relationship("ForumCategory", backref=db.backref("topics", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "user_id": self.user_id,
            "title": self.title,
            "is_locked": self.is_locked,
            "is_sticky": self.is_sticky,
            "created_at": to_utc_z(self.created_at),
            "last_post_at": to_utc_z(self.last_post_at) if self.last_post_at else None,
            "last_post_user_id": self.last_post_user_id,
        }


class ForumPost(db.Model):
    __tablename__ = "forum_posts"
    __table_args__ = (
        db.Index("ix_forum_posts_topic_created", "topic_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    topic_id = db.Column(db.Integer, db.ForeignKey("forum_topics.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_by_api_key_id = db.Column(db.Integer, db.ForeignKey("api_keys.id"), nullable=True)
    content = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    topic = db.relationship("ForumTopic", backref=db.backref("posts", lazy=True))
    author = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "topic_id": self.topic_id,
            "topic_title": self.topic.title if self.topic else None,
            "user_id": self.user_id,
            "author_name": self.author.full_name if self.author else None,
            "created_by_api_key_id": self.created_by_api_key_id,
            "content": self.content,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
