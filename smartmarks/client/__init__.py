from smartmarks.client.backend import BookmarkBackend, HttpBackend, IdentityBackend
from smartmarks.client.errors import BackendError
from smartmarks.client.feed import ChangeFeed, HttpChangeFeed
from smartmarks.client.reconciler import BookmarkReconciler
from smartmarks.client.records import Bookmark, ChangeEvent, ChangeType, SessionUser
from smartmarks.client.session import BookmarkSession, SessionProvider, SessionState
from smartmarks.client.settings import ClientSettings

__all__ = [
    "BackendError",
    "Bookmark",
    "BookmarkBackend",
    "BookmarkReconciler",
    "BookmarkSession",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeType",
    "ClientSettings",
    "HttpBackend",
    "HttpChangeFeed",
    "IdentityBackend",
    "SessionProvider",
    "SessionState",
    "SessionUser",
]
