from __future__ import annotations

import logging
from typing import Protocol

import httpx

from smartmarks.client.errors import BackendError, raise_for_error
from smartmarks.client.feed import ChangeFeed, HttpChangeFeed
from smartmarks.client.records import Bookmark, SessionUser

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "SmartmarksClient/1.0",
    "Accept": "application/json",
}


class BookmarkBackend(Protocol):
    def query(self) -> list[Bookmark]: ...

    def insert(self, url: str, title: str, owner_id: str) -> Bookmark: ...

    def delete(self, bookmark_id: str) -> None: ...

    def subscribe(self) -> ChangeFeed: ...


class IdentityBackend(Protocol):
    def current_user(self) -> SessionUser | None: ...

    def sign_in(self, username: str, password: str) -> SessionUser: ...

    def sign_out(self) -> None: ...


class HttpBackend:
    """Talks to a Smartmarks server over its JSON API.

    Every failure, transport or HTTP, surfaces as ``BackendError``.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        poll_interval: float = 1.0,
        feed_wait: float = 0.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.feed_wait = feed_wait
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            transport=transport,
        )
        self._user: SessionUser | None = None
        self.token = token

    @property
    def token(self) -> str | None:
        return self._token

    @token.setter
    def token(self, value: str | None) -> None:
        self._token = value
        if value:
            self._client.headers["Authorization"] = f"Bearer {value}"
        else:
            self._client.headers.pop("Authorization", None)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise BackendError(f"{method} {path} failed: {exc}") from exc
        raise_for_error(response)
        return response

    def current_user(self) -> SessionUser | None:
        if not self.token:
            return None
        if self._user is None:
            try:
                payload = self._request("GET", "/api/v1/auth/user").json()
            except BackendError as exc:
                if exc.status_code == 401:
                    return None
                raise
            self._user = SessionUser.from_dict(payload["user"])
        return self._user

    def sign_in(self, username: str, password: str) -> SessionUser:
        payload = self._request(
            "POST",
            "/api/v1/auth/token",
            json={"username": username, "password": password},
        ).json()
        self.token = payload["token"]
        self._user = SessionUser.from_dict(payload["user"])
        return self._user

    def sign_out(self) -> None:
        try:
            if self.token:
                self._request("DELETE", "/api/v1/auth/token")
        finally:
            self.token = None
            self._user = None

    def query(self) -> list[Bookmark]:
        payload = self._request("GET", "/api/v1/bookmarks").json()
        return [Bookmark.from_dict(item) for item in payload.get("items") or []]

    def insert(self, url: str, title: str, owner_id: str) -> Bookmark:
        user = self.current_user()
        if user is None or user.id != owner_id:
            raise BackendError("cannot insert bookmarks for another user", 403)
        response = self._request(
            "POST", "/api/v1/bookmarks", json={"url": url, "title": title}
        )
        return Bookmark.from_dict(response.json())

    def replace(self, bookmark_id: str, url: str, title: str) -> Bookmark:
        response = self._request(
            "PUT",
            f"/api/v1/bookmarks/{bookmark_id}",
            json={"url": url, "title": title},
        )
        return Bookmark.from_dict(response.json())

    def delete(self, bookmark_id: str) -> None:
        self._request("DELETE", f"/api/v1/bookmarks/{bookmark_id}")

    def subscribe(self) -> HttpChangeFeed:
        cursor = self._request("GET", "/api/v1/changes/head").json()["cursor"]
        logger.debug("Subscribing to change feed at cursor %s", cursor)
        return HttpChangeFeed(
            self._client,
            cursor=cursor,
            poll_interval=self.poll_interval,
            wait=self.feed_wait,
            timeout=self.timeout,
        )
