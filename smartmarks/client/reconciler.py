from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from smartmarks.client.backend import BookmarkBackend
from smartmarks.client.errors import BackendError
from smartmarks.client.records import Bookmark, ChangeEvent, ChangeType

logger = logging.getLogger(__name__)


class BookmarkReconciler:
    """In-memory newest-first bookmark list kept in step with the backend.

    Three streams feed it: the initial load, the user's own optimistic
    mutations, and remote change events. The change feed echoes the user's
    own writes, so inserts are de-duplicated by id. The list is never
    re-sorted; order comes from the load query and from prepending.
    """

    def __init__(self, backend: BookmarkBackend, owner_id: str | None = None):
        self.backend = backend
        self.owner_id = owner_id
        self._items: list[Bookmark] = []
        self._closed = False

    @property
    def bookmarks(self) -> list[Bookmark]:
        return list(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Bookmark]:
        return iter(list(self._items))

    def __contains__(self, bookmark_id) -> bool:
        return self._index(bookmark_id) is not None

    def get(self, bookmark_id: str) -> Bookmark | None:
        index = self._index(bookmark_id)
        return None if index is None else self._items[index]

    def _index(self, bookmark_id: str) -> int | None:
        for index, bookmark in enumerate(self._items):
            if bookmark.id == bookmark_id:
                return index
        return None

    def _accepts(self, record: Bookmark) -> bool:
        if self._closed:
            logger.debug("Dropping change for %s on a closed reconciler", record.id)
            return False
        if self.owner_id is not None and record.user_id != self.owner_id:
            logger.warning(
                "Ignoring bookmark %s owned by %s (session owner %s)",
                record.id,
                record.user_id,
                self.owner_id,
            )
            return False
        return True

    def load(self, records: Iterable[Bookmark]) -> None:
        self._items = list(records)

    def refresh(self) -> bool:
        """Replace the list with the backend's current contents.

        A failed query leaves the list empty; nothing retries it.
        """
        try:
            records = self.backend.query()
        except BackendError:
            logger.exception("Loading bookmarks failed")
            self.load([])
            return False
        self.load(records)
        return True

    def clear(self) -> None:
        self._items = []

    def close(self) -> None:
        self._closed = True
        self.clear()

    def apply_remote_insert(self, record: Bookmark) -> bool:
        if not self._accepts(record) or record.id in self:
            return False
        self._items.insert(0, record)
        return True

    def apply_remote_update(self, record: Bookmark) -> bool:
        if not self._accepts(record):
            return False
        index = self._index(record.id)
        if index is None:
            # Updates for unknown ids are dropped, not inserted.
            return False
        self._items[index] = record
        return True

    def apply_remote_delete(self, bookmark_id: str) -> bool:
        if self._closed:
            logger.debug("Dropping delete of %s on a closed reconciler", bookmark_id)
            return False
        index = self._index(bookmark_id)
        if index is None:
            return False
        del self._items[index]
        return True

    def apply(self, event: ChangeEvent) -> bool:
        if event.type is ChangeType.DELETE:
            return self.apply_remote_delete(event.bookmark_id)
        if event.record is None:
            logger.warning(
                "Change event %s for %s has no record",
                event.type.value,
                event.bookmark_id,
            )
            return False
        if event.type is ChangeType.INSERT:
            return self.apply_remote_insert(event.record)
        return self.apply_remote_update(event.record)

    def add_optimistic(self, url: str, title: str, owner_id: str) -> Bookmark:
        """Insert through the backend and prepend the stored record.

        Nothing is shown before the backend confirms, so a failure needs no
        rollback; the ``BackendError`` is logged and re-raised.
        """
        url = (url or "").strip()
        title = (title or "").strip()
        if not url or not title:
            raise ValueError("url and title are required")
        if not owner_id:
            raise ValueError("owner_id is required")

        try:
            record = self.backend.insert(url, title, owner_id)
        except BackendError:
            logger.exception("Adding bookmark %s failed", url)
            raise

        if not self._closed and record.id not in self:
            self._items.insert(0, record)
        return record

    def delete_optimistic(self, bookmark_id: str) -> bool:
        """Remove immediately, then delete through the backend.

        On failure the local removal stands and a full refresh resynchronizes
        with whatever the backend holds. Returns whether the delete succeeded.
        """
        index = self._index(bookmark_id)
        if index is not None:
            del self._items[index]

        try:
            self.backend.delete(bookmark_id)
        except BackendError:
            logger.exception("Deleting bookmark %s failed, reloading", bookmark_id)
            if not self._closed:
                self.refresh()
            return False
        return True
