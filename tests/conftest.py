import httpx
import pytest

from smartmarks import create_app
from smartmarks.client import (
    BackendError,
    Bookmark,
    ChangeEvent,
    ChangeFeed,
    HttpBackend,
    SessionUser,
)
from smartmarks.config import TestConfig
from smartmarks.extensions import db


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_backend(app):
    backends = []

    def factory(**kwargs):
        backend = HttpBackend(
            "http://smartmarks.test",
            transport=httpx.WSGITransport(app=app),
            **kwargs,
        )
        backends.append(backend)
        return backend

    yield factory
    for backend in backends:
        backend.close()


class QueueFeed(ChangeFeed):
    def __init__(self):
        super().__init__(poll_interval=0.01)
        self.pending = []

    def push(self, event):
        self.pending.append(event)

    def poll(self):
        batch, self.pending = self.pending, []
        return batch


class FakeBackend:
    """In-memory store that echoes its own writes onto every open feed."""

    def __init__(self):
        self.rows = []
        self.feeds = []
        self.calls = []
        self.accounts = {"alice": ("secret", SessionUser("u-alice", "alice"))}
        self.user = None
        self.fail_query = False
        self.fail_insert = False
        self.fail_delete = False
        self.on_insert = None
        self.on_delete = None
        self._seq = 0

    def make(self, title, user_id="u-alice", url=None):
        self._seq += 1
        return Bookmark(
            id=f"bm-{self._seq}",
            url=url or f"https://example.com/{self._seq}",
            title=title,
            user_id=user_id,
            created_at=f"2026-10-19T08:00:{self._seq:02d}+00:00",
        )

    def seed(self, *titles):
        created = [self.make(title) for title in titles]
        self.rows = list(reversed(created)) + self.rows
        return created

    def publish(self, event):
        for feed in self.feeds:
            if not feed.closed:
                feed.push(event)

    def query(self):
        self.calls.append("query")
        if self.fail_query:
            raise BackendError("query unavailable", 503)
        return list(self.rows)

    def insert(self, url, title, owner_id):
        self.calls.append("insert")
        if self.fail_insert:
            raise BackendError("insert rejected", 500)
        record = self.make(title, user_id=owner_id, url=url)
        self.rows.insert(0, record)
        if self.on_insert is not None:
            self.on_insert(record)
        self.publish(ChangeEvent.insert(record))
        return record

    def delete(self, bookmark_id):
        self.calls.append("delete")
        if self.on_delete is not None:
            self.on_delete(bookmark_id)
        if self.fail_delete:
            raise BackendError("delete rejected", 500)
        self.rows = [row for row in self.rows if row.id != bookmark_id]
        self.publish(ChangeEvent.delete(bookmark_id))

    def subscribe(self):
        self.calls.append("subscribe")
        feed = QueueFeed()
        self.feeds.append(feed)
        return feed

    def current_user(self):
        return self.user

    def sign_in(self, username, password):
        account = self.accounts.get(username)
        if account is None or account[0] != password:
            raise BackendError("invalid credentials", 401)
        self.user = account[1]
        return self.user

    def sign_out(self):
        self.user = None


@pytest.fixture
def fake_backend():
    return FakeBackend()
