# Overview: Service-layer operations for the forum; encapsulates business logic and database work.

"""
Forum Service

TRANSACTION: A new post and its topic's last_post_at / last_post_user_id
pointer are written in one transaction. If either write fails, neither
is visible.

PAGINATION CEILINGS (kept distinct on purpose):
- all posts: default 25, max 100
- recent posts: default 10, max 50
"""

from __future__ import annotations

from ..extensions import db
from ..models import ForumPost, ForumTopic
from ..errors import NotFoundError, ValidationError
from ..validation import parse_positive_int
from .concurrency import atomic, lock_for_update
from casework.time_utils import utcnow


POSTS_DEFAULT_LIMIT = 25
POSTS_MAX_LIMIT = 100
RECENT_DEFAULT_LIMIT = 10
RECENT_MAX_LIMIT = 50


def list_posts(*, page: int, limit: int) -> tuple[list[ForumPost], int]:
    query = db.session.query(ForumPost)
    total = query.count()
    posts = query.order_by(
        ForumPost.created_at.desc(),
        ForumPost.id.desc(),
    ).limit(limit).offset((page - 1) * limit).all()
    return posts, total


def recent_posts(*, limit: int) -> list[ForumPost]:
    return db.session.query(ForumPost).order_by(
        ForumPost.created_at.desc(),
        ForumPost.id.desc(),
    ).limit(limit).all()


def create_post(
    topic_id,
    post_body,
    *,
    api_key_id: int | None = None,
    user_id: int | None = None,
) -> ForumPost:
    """
    Reply to an unlocked topic.

    Raises ValidationError for a bad topic_id or empty body, NotFoundError
    when the topic is missing or locked.
    """
    topic_id = parse_positive_int(topic_id, "topic_id", required=True)
    content = post_body.strip() if isinstance(post_body, str) else ""
    if not content:
        raise ValidationError("Missing or empty 'post_body'.")

    with atomic("create forum post", topic_id=topic_id, api_key_id=api_key_id, user_id=user_id):
        topic = lock_for_update(
            db.session.query(ForumTopic).filter_by(id=topic_id, is_locked=False)
        ).first()
        if not topic:
            raise NotFoundError("Topic not found or is locked.")

        now = utcnow()
        post = ForumPost(
            topic_id=topic.id,
            user_id=user_id,
            created_by_api_key_id=api_key_id,
            content=content,
            created_at=now,
        )
        db.session.add(post)

        topic.last_post_at = now
        topic.last_post_user_id = user_id

    return post
