from __future__ import annotations

from smartmarks.extensions import db
from smartmarks.models import (
    CHANGE_DELETE,
    CHANGE_INSERT,
    CHANGE_UPDATE,
    Bookmark,
    User,
)
from smartmarks.services.changes import log_change


def list_bookmarks(user: User) -> list[Bookmark]:
    return (
        Bookmark.query.filter_by(user_id=user.id)
        .order_by(Bookmark.created_at.desc())
        .all()
    )


def get_user_bookmark(user: User, bookmark_id: str) -> Bookmark | None:
    return Bookmark.query.filter_by(id=bookmark_id, user_id=user.id).first()


def create_bookmark(user: User, url: str, title: str) -> Bookmark:
    bookmark = Bookmark(user_id=user.id, url=url, title=title)
    db.session.add(bookmark)
    db.session.flush()
    log_change(CHANGE_INSERT, bookmark)
    db.session.commit()
    return bookmark


def replace_bookmark(bookmark: Bookmark, url: str, title: str) -> Bookmark:
    bookmark.url = url
    bookmark.title = title
    db.session.flush()
    log_change(CHANGE_UPDATE, bookmark)
    db.session.commit()
    return bookmark


def delete_bookmark(bookmark: Bookmark) -> None:
    log_change(CHANGE_DELETE, bookmark)
    db.session.delete(bookmark)
    db.session.commit()
