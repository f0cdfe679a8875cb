from __future__ import annotations

import enum
import logging
from collections.abc import Callable

from smartmarks.client.backend import BookmarkBackend, IdentityBackend
from smartmarks.client.errors import BackendError
from smartmarks.client.feed import ChangeFeed
from smartmarks.client.reconciler import BookmarkReconciler
from smartmarks.client.records import Bookmark, ChangeEvent, SessionUser

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionUser | None], None]


class SessionState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    POPULATED = "populated"


class SessionProvider:
    """Identity calls plus change notification for sign-in and sign-out."""

    def __init__(self, identity: IdentityBackend):
        self.identity = identity
        self._listeners: list[SessionListener] = []

    def current_user(self) -> SessionUser | None:
        return self.identity.current_user()

    def on_change(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, user: SessionUser | None) -> None:
        for listener in list(self._listeners):
            listener(user)

    def sign_in(self, username: str, password: str) -> SessionUser:
        user = self.identity.sign_in(username, password)
        logger.info("Signed in as %s", user.username)
        self._notify(user)
        return user

    def sign_out(self) -> None:
        try:
            self.identity.sign_out()
        except BackendError as exc:
            logger.warning("Sign-out request failed: %s", exc)
        self._notify(None)


class BookmarkSession:
    """Owns the signed-in user, their bookmark list and its change feed.

    The session reacts to the provider's sign-in and sign-out notifications.
    On sign-in it subscribes before loading so no change between the two is
    missed; duplicates that overlap the load are absorbed by the reconciler.
    On sign-out the feed is released before the list is cleared.
    """

    def __init__(self, backend: BookmarkBackend, provider: SessionProvider):
        self.backend = backend
        self.provider = provider
        self.user: SessionUser | None = None
        self.reconciler: BookmarkReconciler | None = None
        self.subscription: ChangeFeed | None = None
        self._loaded = False
        self._unsubscribe = provider.on_change(self._on_session_change)

    @property
    def state(self) -> SessionState:
        if self.user is None:
            return SessionState.UNAUTHENTICATED
        if not self._loaded:
            return SessionState.AUTHENTICATED
        return SessionState.POPULATED

    @property
    def bookmarks(self) -> list[Bookmark]:
        if self.reconciler is None:
            return []
        return self.reconciler.bookmarks

    def restore(self) -> SessionUser | None:
        """Start a session for a user the provider already knows about."""
        user = self.provider.current_user()
        if user is not None:
            self._on_session_change(user)
        return user

    def close(self) -> None:
        self._end()
        self._unsubscribe()

    def _on_session_change(self, user: SessionUser | None) -> None:
        if user is None:
            self._end()
            return
        if self.user is not None and self.user.id == user.id:
            return
        self._end()
        self._start(user)

    def _start(self, user: SessionUser) -> None:
        self.user = user
        self.reconciler = BookmarkReconciler(self.backend, owner_id=user.id)
        try:
            self.subscription = self.backend.subscribe()
        except BackendError as exc:
            logger.warning("Change feed subscription failed: %s", exc)
            self.subscription = None
        self._loaded = self.reconciler.refresh()

    def _end(self) -> None:
        if self.subscription is not None:
            self.subscription.close()
            self.subscription = None
        if self.reconciler is not None:
            self.reconciler.close()
            self.reconciler = None
        self.user = None
        self._loaded = False

    def dispatch(self, event: ChangeEvent, subscription: ChangeFeed) -> bool:
        """Apply an event if it came through the live subscription."""
        if (
            subscription is not self.subscription
            or subscription.closed
            or self.reconciler is None
        ):
            logger.debug(
                "Dropping %s for %s from a stale subscription",
                event.type.value,
                event.bookmark_id,
            )
            return False
        return self.reconciler.apply(event)

    def pump(self) -> int:
        """Apply whatever the feed has ready without waiting for more."""
        subscription = self.subscription
        if subscription is None:
            return 0
        try:
            events = subscription.poll()
        except BackendError as exc:
            logger.warning("Change feed poll failed: %s", exc)
            return 0
        applied = 0
        for event in events:
            if self.dispatch(event, subscription):
                applied += 1
        return applied

    def follow(self, on_event: Callable[[ChangeEvent], None] | None = None) -> None:
        """Apply events as they arrive until the subscription is closed."""
        subscription = self.subscription
        if subscription is None:
            return
        for event in subscription:
            if self.dispatch(event, subscription) and on_event is not None:
                on_event(event)

    def _require_reconciler(self) -> BookmarkReconciler:
        if self.reconciler is None or self.user is None:
            raise RuntimeError("no active session")
        return self.reconciler

    def add(self, url: str, title: str) -> Bookmark:
        reconciler = self._require_reconciler()
        return reconciler.add_optimistic(url, title, self.user.id)

    def delete(self, bookmark_id: str) -> bool:
        return self._require_reconciler().delete_optimistic(bookmark_id)
