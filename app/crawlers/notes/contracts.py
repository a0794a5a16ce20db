"""Typed contracts for OSM notes search responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from app.utils.helpers import parse_day


T = TypeVar("T")


class FetchState(str, Enum):
    """Normalized response state for downstream aggregation."""

    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(slots=True)
class FetchResult(Generic[T]):
    """Container that separates payload from fetch semantics."""

    state: FetchState
    data: Optional[T] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.state == FetchState.OK

    @property
    def is_empty(self) -> bool:
        return self.state == FetchState.EMPTY

    @property
    def is_failed(self) -> bool:
        return self.state == FetchState.FAILED


@dataclass(frozen=True, slots=True)
class NoteComment:
    """One comment of a note; anonymous comments have no uid."""

    uid: Optional[int] = None
    user: Optional[str] = None
    action: Optional[str] = None


@dataclass(frozen=True, slots=True)
class NoteRecord:
    """A geo-tagged note as returned by the notes search API."""

    id: int
    status: str
    created_day: date
    closed_day: Optional[date]
    geometry: dict[str, Any]
    comments: tuple[NoteComment, ...] = field(default_factory=tuple)

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"

    def open_range_end(self, today: date) -> date:
        """Last day the note counts as open: its closing day, or today."""
        return self.closed_day or today

    @property
    def opening_comment(self) -> Optional[NoteComment]:
        return self.comments[0] if self.comments else None

    @classmethod
    def from_feature(cls, feature: dict[str, Any]) -> Optional[NoteRecord]:
        """Parse a GeoJSON feature, returning None when it lacks id or creation date."""
        properties = feature.get("properties") if isinstance(feature.get("properties"), dict) else {}
        note_id = properties.get("id")
        created_day = parse_day(properties.get("date_created"))
        if note_id is None or created_day is None:
            return None

        comments = tuple(
            NoteComment(
                uid=comment.get("uid"),
                user=comment.get("user"),
                action=comment.get("action"),
            )
            for comment in properties.get("comments") or []
            if isinstance(comment, dict)
        )
        return cls(
            id=int(note_id),
            status=str(properties.get("status") or "open"),
            created_day=created_day,
            closed_day=parse_day(properties.get("closed_at")),
            geometry=feature.get("geometry") or {},
            comments=comments,
        )


NotesContract = FetchResult[list[NoteRecord]]
