# Overview: Service-layer helpers for transactions, row locking and optimistic concurrency.

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConflictError, DatabaseError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic(operation: str, **log_context):
    """
    Run a block of writes as one transaction and commit at the end.

    Any exception rolls the session back before it propagates:
    - StaleDataError (lost version_id race) becomes ConflictError
    - other SQLAlchemyError becomes DatabaseError with a generic message
    - application errors propagate unchanged

    No retry: a concurrent edit is surfaced to the caller, never replayed.
    """
    try:
        yield
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        current_app.logger.warning("Version conflict during %s %s", operation, log_context)
        raise ConflictError() from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to %s %s", operation, log_context)
        raise DatabaseError() from exc
    except Exception:
        db.session.rollback()
        raise
