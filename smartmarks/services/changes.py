from __future__ import annotations

from datetime import timedelta

from smartmarks.extensions import db
from smartmarks.models import (
    CHANGE_ACTIONS,
    CHANGE_DELETE,
    Bookmark,
    ChangeEvent,
    utcnow,
)


def log_change(action: str, bookmark: Bookmark) -> ChangeEvent:
    """Queue a change event for the bookmark's owner on the current session.

    The caller commits, so the event lands in the same transaction as the
    mutation it describes.
    """
    if action not in CHANGE_ACTIONS:
        raise ValueError(f"unknown change action: {action}")
    if action == CHANGE_DELETE:
        payload = {"id": bookmark.id}
    else:
        payload = bookmark.as_dict()
    event = ChangeEvent(
        user_id=bookmark.user_id,
        bookmark_id=bookmark.id,
        action=action,
        payload=payload,
    )
    db.session.add(event)
    return event


def fetch_changes(user_id: str, since: int, limit: int) -> list[ChangeEvent]:
    return (
        ChangeEvent.query.filter_by(user_id=user_id)
        .filter(ChangeEvent.id > since)
        .order_by(ChangeEvent.id.asc())
        .limit(limit)
        .all()
    )


def latest_cursor(user_id: str) -> int:
    event = (
        ChangeEvent.query.filter_by(user_id=user_id)
        .order_by(ChangeEvent.id.desc())
        .first()
    )
    return event.id if event else 0


def prune_changes(retention_minutes: int) -> int:
    cutoff = utcnow() - timedelta(minutes=retention_minutes)
    deleted = ChangeEvent.query.filter(ChangeEvent.created_at < cutoff).delete(
        synchronize_session=False
    )
    db.session.commit()
    return deleted
