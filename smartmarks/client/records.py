from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from datetime import datetime

from dateutil import parser as dt_parser


class ChangeType(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Bookmark:
    id: str
    url: str
    title: str
    user_id: str
    created_at: str

    @classmethod
    def from_dict(cls, payload: dict) -> "Bookmark":
        return cls(
            id=str(payload["id"]),
            url=payload.get("url") or "",
            title=payload.get("title") or "",
            user_id=str(payload.get("user_id") or ""),
            created_at=payload.get("created_at") or "",
        )

    @property
    def created(self) -> datetime | None:
        if not self.created_at:
            return None
        try:
            return dt_parser.isoparse(self.created_at)
        except ValueError:
            return None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ChangeEvent:
    """A tagged notification from the change feed.

    ``record`` carries the new row for INSERT and UPDATE; DELETE only
    identifies the removed bookmark through ``bookmark_id``.
    """

    type: ChangeType
    bookmark_id: str
    record: Bookmark | None = None
    cursor: int = 0

    @classmethod
    def from_dict(cls, payload: dict) -> "ChangeEvent":
        change_type = ChangeType(str(payload.get("type") or "").upper())
        raw_record = payload.get("record") or {}
        bookmark_id = str(payload.get("bookmark_id") or raw_record.get("id") or "")
        record = None
        if change_type is not ChangeType.DELETE and raw_record:
            record = Bookmark.from_dict(raw_record)
        return cls(
            type=change_type,
            bookmark_id=bookmark_id,
            record=record,
            cursor=int(payload.get("cursor") or 0),
        )

    @classmethod
    def insert(cls, record: Bookmark, cursor: int = 0) -> "ChangeEvent":
        return cls(ChangeType.INSERT, record.id, record, cursor)

    @classmethod
    def update(cls, record: Bookmark, cursor: int = 0) -> "ChangeEvent":
        return cls(ChangeType.UPDATE, record.id, record, cursor)

    @classmethod
    def delete(cls, bookmark_id: str, cursor: int = 0) -> "ChangeEvent":
        return cls(ChangeType.DELETE, bookmark_id, None, cursor)


@dataclass(frozen=True)
class SessionUser:
    id: str
    username: str

    @classmethod
    def from_dict(cls, payload: dict) -> "SessionUser":
        return cls(id=str(payload["id"]), username=payload.get("username") or "")
