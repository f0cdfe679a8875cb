import pytest

from smartmarks.client import (
    BackendError,
    BookmarkSession,
    ChangeEvent,
    SessionProvider,
    SessionState,
)


@pytest.fixture
def provider(fake_backend):
    return SessionProvider(fake_backend)


@pytest.fixture
def session(fake_backend, provider):
    session = BookmarkSession(fake_backend, provider)
    yield session
    session.close()


def _titles(session):
    return [bookmark.title for bookmark in session.bookmarks]


def test_sign_in_subscribes_then_loads(session, provider, fake_backend):
    fake_backend.seed("old", "new")
    assert session.state is SessionState.UNAUTHENTICATED

    provider.sign_in("alice", "secret")

    assert fake_backend.calls == ["subscribe", "query"]
    assert session.state is SessionState.POPULATED
    assert _titles(session) == ["new", "old"]


def test_failed_load_leaves_session_authenticated_and_empty(
    session, provider, fake_backend
):
    fake_backend.seed("a")
    fake_backend.fail_query = True

    provider.sign_in("alice", "secret")

    assert session.state is SessionState.AUTHENTICATED
    assert session.bookmarks == []
    assert fake_backend.calls.count("query") == 1


def test_failed_sign_in_keeps_session_signed_out(session, provider):
    with pytest.raises(BackendError):
        provider.sign_in("alice", "wrong")

    assert session.state is SessionState.UNAUTHENTICATED


def test_sign_out_clears_and_drops_late_events(session, provider, fake_backend):
    fake_backend.seed("a")
    provider.sign_in("alice", "secret")
    old_feed = session.subscription
    old_reconciler = session.reconciler

    provider.sign_out()
    late = ChangeEvent.insert(fake_backend.make("late"))
    old_feed.push(late)

    assert session.state is SessionState.UNAUTHENTICATED
    assert session.bookmarks == []
    assert old_feed.closed
    assert session.dispatch(late, old_feed) is False
    assert session.pump() == 0
    assert old_reconciler.apply(late) is False
    assert old_reconciler.bookmarks == []


def test_remote_changes_flow_through_pump(session, provider, fake_backend):
    provider.sign_in("alice", "secret")
    elsewhere = fake_backend.make("from another tab")

    fake_backend.publish(ChangeEvent.insert(elsewhere))
    fake_backend.publish(ChangeEvent.insert(elsewhere))

    assert session.pump() == 1
    assert _titles(session) == ["from another tab"]

    fake_backend.publish(ChangeEvent.delete(elsewhere.id))
    assert session.pump() == 1
    assert session.bookmarks == []


def test_own_insert_echo_is_applied_once(session, provider):
    provider.sign_in("alice", "secret")

    record = session.add("https://example.com/own", "Own")
    session.pump()

    assert [bookmark.id for bookmark in session.bookmarks] == [record.id]


def test_own_delete_echo_is_harmless(session, provider, fake_backend):
    fake_backend.seed("a", "b")
    provider.sign_in("alice", "secret")

    assert session.delete("bm-1") is True
    session.pump()

    assert _titles(session) == ["b"]


def test_restore_starts_session_for_known_user(fake_backend, provider):
    fake_backend.sign_in("alice", "secret")
    fake_backend.seed("a")
    session = BookmarkSession(fake_backend, provider)

    user = session.restore()

    assert user.username == "alice"
    assert session.state is SessionState.POPULATED
    session.close()


def test_mutations_require_session(session):
    with pytest.raises(RuntimeError):
        session.add("https://example.com", "Example")
    with pytest.raises(RuntimeError):
        session.delete("bm-1")


def test_follow_applies_until_subscription_closes(session, provider, fake_backend):
    provider.sign_in("alice", "secret")
    first, second = fake_backend.make("one"), fake_backend.make("two")
    fake_backend.publish(ChangeEvent.insert(first))
    fake_backend.publish(ChangeEvent.insert(second))
    seen = []

    def on_event(event):
        seen.append(event.bookmark_id)
        if len(seen) == 2:
            session.subscription.close()

    session.follow(on_event=on_event)

    assert seen == [first.id, second.id]
    assert _titles(session) == ["two", "one"]


def test_unsubscribed_session_ignores_provider(fake_backend, provider):
    session = BookmarkSession(fake_backend, provider)
    session.close()

    provider.sign_in("alice", "secret")

    assert session.state is SessionState.UNAUTHENTICATED
    assert "subscribe" not in fake_backend.calls
