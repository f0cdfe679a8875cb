from __future__ import annotations

import time

from flask import current_app, g, jsonify, request

from smartmarks.api import api_bp
from smartmarks.extensions import db
from smartmarks.models import ApiToken, User, utcnow
from smartmarks.services.bookmarks import (
    create_bookmark,
    delete_bookmark,
    get_user_bookmark,
    list_bookmarks,
    replace_bookmark,
)
from smartmarks.services.changes import fetch_changes, latest_cursor
from smartmarks.services.security import api_auth_required


def _clean_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _bookmark_fields(payload: dict):
    url = _clean_text(payload.get("url"))
    title = _clean_text(payload.get("title"))
    if not url or not title:
        return None, (jsonify({"error": "url and title are required"}), 400)
    return (url, title), None


def _get_user_bookmark_or_404(user, bookmark_id: str):
    bookmark = get_user_bookmark(user, bookmark_id)
    if not bookmark:
        return None, (jsonify({"error": "bookmark not found"}), 404)
    return bookmark, None


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "Smartmarks"})


@api_bp.route("/auth/register", methods=["POST"])
def register_user():
    if not current_app.config.get("REGISTRATION_ENABLED", True):
        return jsonify({"error": "registration is disabled"}), 403

    payload = request.get_json(silent=True) or {}
    username = _clean_text(payload.get("username"))
    password = payload.get("password") or ""
    if not username or not password:
        return jsonify({"error": "username and password are required"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"error": "username already exists"}), 409

    user = User(username=username, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("Registered user %s", username)
    return jsonify({"status": "created", "user": user.as_dict()}), 201


@api_bp.route("/auth/token", methods=["POST"])
def create_token_with_credentials():
    payload = request.get_json(silent=True) or {}
    username = _clean_text(payload.get("username"))
    password = payload.get("password") or ""
    token_name = _clean_text(payload.get("token_name")) or "Smartmarks session"

    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({"error": "invalid credentials"}), 401

    token, token_hash = ApiToken.issue_token()
    row = ApiToken(user_id=user.id, name=token_name, token_hash=token_hash)
    db.session.add(row)
    db.session.commit()
    return jsonify({"token": token, "token_name": token_name, "user": user.as_dict()})


@api_bp.route("/auth/token", methods=["DELETE"])
@api_auth_required
def revoke_token():
    token_row = g.get("api_token")
    if token_row is None:
        return jsonify({"error": "bearer token required"}), 400
    token_row.revoked_at = utcnow()
    db.session.commit()
    return jsonify({"status": "revoked"})


@api_bp.route("/auth/user", methods=["GET"])
@api_auth_required
def current_user_api():
    return jsonify({"user": g.api_user.as_dict()})


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list_api():
    items = list_bookmarks(g.api_user)
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create_api():
    payload = request.get_json(silent=True) or {}
    fields, error = _bookmark_fields(payload)
    if error:
        return error
    url, title = fields
    bookmark = create_bookmark(g.api_user, url, title)
    return jsonify(bookmark.as_dict()), 201


@api_bp.route("/bookmarks/<bookmark_id>", methods=["GET"])
@api_auth_required
def bookmarks_get_api(bookmark_id: str):
    bookmark, error = _get_user_bookmark_or_404(g.api_user, bookmark_id)
    if error:
        return error
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<bookmark_id>", methods=["PUT"])
@api_auth_required
def bookmarks_replace_api(bookmark_id: str):
    bookmark, error = _get_user_bookmark_or_404(g.api_user, bookmark_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    fields, error = _bookmark_fields(payload)
    if error:
        return error
    url, title = fields
    replace_bookmark(bookmark, url, title)
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_api(bookmark_id: str):
    bookmark, error = _get_user_bookmark_or_404(g.api_user, bookmark_id)
    if error:
        return error
    delete_bookmark(bookmark)
    return jsonify({"status": "deleted", "id": bookmark_id})


@api_bp.route("/changes/head", methods=["GET"])
@api_auth_required
def changes_head():
    return jsonify({"cursor": latest_cursor(g.api_user.id)})


@api_bp.route("/changes", methods=["GET"])
@api_auth_required
def changes_pull():
    user_id = g.api_user.id
    since = request.args.get("since", default=0, type=int)
    page_size = current_app.config["CHANGE_FEED_PAGE_SIZE"]
    limit = request.args.get("limit", default=page_size, type=int)
    limit = max(1, min(limit, page_size))
    wait = request.args.get("wait", default=0.0, type=float)
    wait = max(0.0, min(wait, current_app.config["CHANGE_FEED_MAX_WAIT"]))

    deadline = time.monotonic() + wait
    events = fetch_changes(user_id, since, limit)
    while not events and time.monotonic() < deadline:
        time.sleep(current_app.config["CHANGE_FEED_POLL_SECONDS"])
        db.session.expire_all()
        events = fetch_changes(user_id, since, limit)

    cursor = events[-1].id if events else since
    return jsonify(
        {
            "events": [event.as_dict() for event in events],
            "cursor": cursor,
            "has_more": len(events) == limit,
        }
    )
