from __future__ import annotations

import logging
import threading
from collections.abc import Iterator

import httpx

from smartmarks.client.errors import BackendError, raise_for_error
from smartmarks.client.records import ChangeEvent

logger = logging.getLogger(__name__)


class ChangeFeed:
    """Lazy, unbounded, cancellable sequence of change events.

    Subclasses implement ``poll``, a single non-blocking fetch. Iterating the
    feed keeps polling until ``close`` is called, sleeping ``poll_interval``
    seconds between empty polls.
    """

    def __init__(self, poll_interval: float = 1.0):
        self.poll_interval = poll_interval
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def poll(self) -> list[ChangeEvent]:
        raise NotImplementedError

    def close(self) -> None:
        self._closed.set()

    def __iter__(self) -> Iterator[ChangeEvent]:
        while not self.closed:
            try:
                batch = self.poll()
            except BackendError as exc:
                logger.warning("Change feed poll failed: %s", exc)
                batch = []
            for event in batch:
                if self.closed:
                    return
                yield event
            if not batch:
                self._closed.wait(self.poll_interval)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class HttpChangeFeed(ChangeFeed):
    """Reads ``/changes`` for the token's owner, advancing a cursor."""

    def __init__(
        self,
        client: httpx.Client,
        cursor: int = 0,
        poll_interval: float = 1.0,
        wait: float = 0.0,
        timeout: float = 10.0,
    ):
        super().__init__(poll_interval=poll_interval)
        self._client = client
        self.cursor = cursor
        self.wait = wait
        self.timeout = timeout

    def poll(self) -> list[ChangeEvent]:
        if self.closed:
            return []
        params = {"since": self.cursor}
        if self.wait:
            params["wait"] = self.wait
        try:
            response = self._client.get(
                "/api/v1/changes", params=params, timeout=self.timeout + self.wait
            )
        except httpx.HTTPError as exc:
            raise BackendError(f"change feed request failed: {exc}") from exc
        raise_for_error(response)

        events = []
        payload = response.json()
        for item in payload.get("events") or []:
            try:
                events.append(ChangeEvent.from_dict(item))
            except (KeyError, ValueError):
                logger.warning("Skipping malformed change event: %r", item)
        self.cursor = max(self.cursor, int(payload.get("cursor") or 0))
        return events
