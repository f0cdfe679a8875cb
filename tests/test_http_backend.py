import pytest

from smartmarks.client import (
    BackendError,
    BookmarkSession,
    ChangeType,
    HttpChangeFeed,
    SessionProvider,
    SessionState,
)
from smartmarks.extensions import db
from smartmarks.models import User
from smartmarks.services.changes import prune_changes


@pytest.fixture
def alice(app):
    with app.app_context():
        user = User(username="alice", is_active=True)
        user.set_password("secret")
        db.session.add(user)
        db.session.commit()
        return user.id


def _signed_in_session(make_backend):
    backend = make_backend()
    provider = SessionProvider(backend)
    session = BookmarkSession(backend, provider)
    provider.sign_in("alice", "secret")
    return backend, provider, session


def test_sign_in_with_bad_password_raises(make_backend, alice):
    backend = make_backend()

    with pytest.raises(BackendError) as excinfo:
        backend.sign_in("alice", "wrong")

    assert excinfo.value.status_code == 401
    assert backend.current_user() is None


def test_session_loads_existing_bookmarks(make_backend, alice):
    writer = make_backend()
    writer.sign_in("alice", "secret")
    writer.insert("https://one.example", "One", alice)
    writer.insert("https://two.example", "Two", alice)

    _, _, session = _signed_in_session(make_backend)

    assert session.state is SessionState.POPULATED
    assert {bookmark.title for bookmark in session.bookmarks} == {"One", "Two"}
    assert all(bookmark.user_id == alice for bookmark in session.bookmarks)


def test_changes_from_another_session_arrive_via_feed(make_backend, alice):
    _, _, first = _signed_in_session(make_backend)
    _, _, second = _signed_in_session(make_backend)

    record = first.add("https://shared.example", "Shared")
    assert second.bookmarks == []

    assert second.pump() == 1
    assert [bookmark.id for bookmark in second.bookmarks] == [record.id]

    assert first.delete(record.id) is True
    assert second.pump() == 1
    assert second.bookmarks == []


def test_own_insert_echo_is_suppressed(make_backend, alice):
    _, _, session = _signed_in_session(make_backend)

    record = session.add("https://mine.example", "Mine")
    assert session.pump() == 0

    assert [bookmark.id for bookmark in session.bookmarks] == [record.id]


def test_remote_update_replaces_record(make_backend, alice):
    writer, _, session = _signed_in_session(make_backend)
    record = session.add("https://before.example", "Before")

    writer.replace(record.id, "https://after.example", "After")
    session.pump()

    assert session.reconciler.get(record.id).title == "After"
    assert session.reconciler.get(record.id).created_at == record.created_at


def test_failed_delete_resyncs_with_server(make_backend, alice):
    _, _, session = _signed_in_session(make_backend)
    kept = session.add("https://kept.example", "Kept")
    gone = session.add("https://gone.example", "Gone")

    other = make_backend()
    other.sign_in("alice", "secret")
    other.delete(gone.id)

    assert session.delete(gone.id) is False
    assert [bookmark.id for bookmark in session.bookmarks] == [kept.id]


def test_insert_failure_surfaces_error(make_backend, alice):
    _, _, session = _signed_in_session(make_backend)

    with pytest.raises(BackendError):
        session.reconciler.add_optimistic("https://x.example", "X", "someone-else")

    assert session.bookmarks == []


def test_sign_out_revokes_token_and_detaches_feed(make_backend, alice):
    backend, provider, session = _signed_in_session(make_backend)
    token = backend.token
    feed = session.subscription

    provider.sign_out()

    assert session.state is SessionState.UNAUTHENTICATED
    assert feed.closed
    assert feed.poll() == []

    stale = make_backend(token=token)
    with pytest.raises(BackendError) as excinfo:
        stale.query()
    assert excinfo.value.status_code == 401


def test_http_feed_advances_cursor(make_backend, alice):
    backend = make_backend()
    user = backend.sign_in("alice", "secret")
    feed = backend.subscribe()
    assert isinstance(feed, HttpChangeFeed)
    start = feed.cursor

    record = backend.insert("https://feed.example", "Feed", user.id)
    events = feed.poll()

    assert [event.type for event in events] == [ChangeType.INSERT]
    assert events[0].record == record
    assert feed.cursor > start
    assert feed.poll() == []
    feed.close()


def test_feed_keeps_delivering_after_change_log_is_pruned(app, make_backend, alice):
    writer = make_backend()
    writer.sign_in("alice", "secret")
    for index in range(3):
        writer.insert(f"https://example.com/{index}", f"t{index}", alice)

    _, _, watcher = _signed_in_session(make_backend)
    assert watcher.subscription.cursor == 3

    with app.app_context():
        assert prune_changes(retention_minutes=-1) == 3

    fresh = writer.insert("https://fresh.example", "fresh", alice)

    assert watcher.pump() == 1
    assert watcher.bookmarks[0].id == fresh.id
    assert watcher.subscription.cursor > 3
