# Overview: Service-layer operations for the activity log; append-only audit of user actions.

"""
Activity Logger

Fire-and-forget: entries are written after the business transaction has
committed, in their own small commit. A failure here is logged and
swallowed so it can never undo or fail a sale or payment that already
happened.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ActivityLog


def _append_entry(**fields) -> ActivityLog:
    entry = ActivityLog(**fields)
    db.session.add(entry)
    db.session.commit()
    return entry


def log_activity(
    user_id: int | None,
    action: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
    details: str | None = None,
) -> ActivityLog | None:
    """Append one activity entry. Returns None if the write failed."""
    try:
        return _append_entry(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Failed to write activity log action=%s entity=%s:%s",
            action, entity_type, entity_id,
            exc_info=True,
        )
        return None


def list_activity(
    *,
    user_id: int | None = None,
    action: str | None = None,
    limit: int = 100,
) -> list[ActivityLog]:
    q = db.session.query(ActivityLog)
    if user_id is not None:
        q = q.filter(ActivityLog.user_id == user_id)
    if action:
        q = q.filter(ActivityLog.action == action)
    limit = max(1, min(limit, 500))
    return q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
