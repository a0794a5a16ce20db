"""Per-project OSM notes aggregation: dedup, boundary filter, day buckets, contributions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Sequence

from app.crawlers.notes.contracts import NoteRecord
from app.projects.definition import NOTE_CONTRIBUTION, ProjectDefinition
from app.services.day_range import project_days
from app.services.notes.boundary import Boundary
from app.utils.exceptions import NotesQueryError
from app.utils.helpers import utc_today

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DayBucket:
    """Open and closed note counters for one day."""

    open: int = 0
    closed: int = 0


@dataclass(frozen=True, slots=True)
class UserContribution:
    """One point-earning contribution row."""

    project: str
    uid: int
    day: date
    contribution: str
    points: int


@dataclass(slots=True)
class NotesAggregation:
    """Aggregation state owned by a single project run."""

    project_id: str
    day_buckets: dict[date, DayBucket] = field(default_factory=dict)
    contributions: list[UserContribution] = field(default_factory=list)
    user_names: dict[int, str] = field(default_factory=dict)
    seen_ids: set[int] = field(default_factory=set)
    fetched: int = 0
    duplicates: int = 0
    outside: int = 0

    @property
    def counted(self) -> int:
        return len(self.seen_ids) - self.outside

    def stats(self) -> dict[str, int]:
        return {
            "fetched": self.fetched,
            "distinct": len(self.seen_ids),
            "duplicates": self.duplicates,
            "outside": self.outside,
            "counted": self.counted,
            "contributions": len(self.contributions),
        }


def fold_notes(
    project: ProjectDefinition,
    results: Iterable[Sequence[NoteRecord]],
    *,
    days: Sequence[date],
    boundary: Boundary,
    today: date,
) -> NotesAggregation:
    """
    Fold note search results into a project aggregation

    Results are consumed in query order; the first occurrence of a note id
    wins and later ones are dropped, so a note matched by several terms is
    counted once. Notes outside the boundary are marked as seen but produce
    no bucket increment and no contribution.
    """
    aggregation = NotesAggregation(project_id=project.id)
    aggregation.day_buckets = {day: DayBucket() for day in days}
    points = project.statistics.note_points

    for notes in results:
        for note in notes:
            aggregation.fetched += 1
            if note.id in aggregation.seen_ids:
                aggregation.duplicates += 1
                continue
            aggregation.seen_ids.add(note.id)

            if not boundary.contains(note.geometry):
                aggregation.outside += 1
                continue

            _bucket_note(aggregation.day_buckets, note, today)

            opening = note.opening_comment
            if opening is not None and opening.uid:
                aggregation.contributions.append(
                    UserContribution(
                        project=project.id,
                        uid=int(opening.uid),
                        day=note.created_day,
                        contribution=NOTE_CONTRIBUTION,
                        points=points,
                    )
                )
                aggregation.user_names[int(opening.uid)] = opening.user or ""

    return aggregation


def _bucket_note(buckets: dict[date, DayBucket], note: NoteRecord, today: date) -> None:
    end = note.open_range_end(today)
    for day, bucket in buckets.items():
        # closed is checked first and excludes the open branch
        if note.is_closed and end <= day:
            bucket.closed += 1
        elif note.created_day <= day <= end:
            bucket.open += 1


class NoteAggregator:
    """Query every search term of a project concurrently and fold the results."""

    def __init__(self, client: Any, boundary: Boundary, *, today: date | None = None) -> None:
        self._client = client
        self._boundary = boundary
        self._today = today

    async def aggregate(self, project: ProjectDefinition) -> NotesAggregation:
        today = self._today or utc_today()
        days = project_days(project.start_date, today)
        terms = [term for source in project.notes_sources for term in source.terms]
        logger.info(f"Searching notes for {project.id} with {len(terms)} term(s)")

        # Join-all barrier: nothing is folded until every term has answered
        results = await asyncio.gather(
            *(self._search(term, project.start_date) for term in terms)
        )

        aggregation = fold_notes(project, results, days=days, boundary=self._boundary, today=today)
        logger.info(f"Notes aggregated for {project.id}: {aggregation.stats()}")
        return aggregation

    async def _search(self, term: str, from_date: date) -> list[NoteRecord]:
        result = await self._client.search_notes(term, from_date=from_date)
        if result.is_failed:
            raise NotesQueryError(term, result.error or "unknown error", status_code=result.status_code)
        return list(result.data or [])
