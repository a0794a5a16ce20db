from __future__ import annotations

import asyncio
from datetime import date
from typing import Any

import pytest

from app.crawlers.notes.contracts import FetchResult, FetchState, NoteComment, NoteRecord
from app.services.day_range import project_days
from app.services.notes.aggregator import NoteAggregator, fold_notes
from app.utils.exceptions import NotesQueryError

START = date(2024, 1, 1)
TODAY = date(2024, 1, 10)
DAYS = project_days(START, TODAY)
INSIDE = {"type": "Point", "coordinates": [5.0, 5.0]}
OUTSIDE = {"type": "Point", "coordinates": [25.0, 5.0]}
ON_EDGE = {"type": "Point", "coordinates": [0.0, 5.0]}


def make_note(
    note_id: int,
    *,
    created: date = date(2024, 1, 3),
    closed: date | None = None,
    geometry: dict[str, Any] = INSIDE,
    uid: int | None = 77,
    user: str | None = "alice",
) -> NoteRecord:
    comments = (NoteComment(uid=uid, user=user, action="opened"),)
    return NoteRecord(
        id=note_id,
        status="closed" if closed else "open",
        created_day=created,
        closed_day=closed,
        geometry=geometry,
        comments=comments,
    )


def notes_project(make_project, **statistics: Any):
    return make_project(
        datasources=[{"source": "notes", "terms": ["banc"]}],
        statistics={"points": statistics},
    )


def test_closed_note_round_trip(make_project, square_boundary) -> None:
    project = notes_project(make_project)
    note = make_note(1, created=date(2024, 1, 3), closed=date(2024, 1, 5))

    aggregation = fold_notes(project, [[note]], days=DAYS, boundary=square_boundary, today=TODAY)

    closing = aggregation.day_buckets[date(2024, 1, 5)]
    assert (closing.open, closing.closed) == (0, 1)
    assert len(aggregation.contributions) == 1
    contribution = aggregation.contributions[0]
    assert contribution.project == project.id
    assert contribution.uid == 77
    assert contribution.day == date(2024, 1, 3)
    assert contribution.contribution == "note"
    assert contribution.points == 1
    assert aggregation.user_names == {77: "alice"}


def test_closed_note_counts_closed_from_closing_day_and_open_before(make_project, square_boundary) -> None:
    project = notes_project(make_project)
    note = make_note(1, created=date(2024, 1, 3), closed=date(2024, 1, 5))

    buckets = fold_notes(project, [[note]], days=DAYS, boundary=square_boundary, today=TODAY).day_buckets

    for day, bucket in buckets.items():
        if day >= date(2024, 1, 5):
            assert (bucket.open, bucket.closed) == (0, 1)
        elif day >= date(2024, 1, 3):
            assert (bucket.open, bucket.closed) == (1, 0)
        else:
            assert (bucket.open, bucket.closed) == (0, 0)


def test_open_note_counts_open_until_today(make_project, square_boundary) -> None:
    project = notes_project(make_project)
    note = make_note(1, created=date(2024, 1, 4))

    buckets = fold_notes(project, [[note]], days=DAYS, boundary=square_boundary, today=TODAY).day_buckets

    assert all(bucket.closed == 0 for bucket in buckets.values())
    assert [day for day, bucket in buckets.items() if bucket.open == 1] == project_days(date(2024, 1, 4), TODAY)


def test_duplicates_across_terms_are_counted_once(make_project, square_boundary) -> None:
    project = notes_project(make_project)
    first_term = [make_note(1), make_note(2, uid=88, user="bob")]
    second_term = [make_note(2, uid=99, user="mallory"), make_note(3, geometry=OUTSIDE)]

    aggregation = fold_notes(
        project, [first_term, second_term], days=DAYS, boundary=square_boundary, today=TODAY
    )

    assert aggregation.seen_ids == {1, 2, 3}
    assert aggregation.duplicates == 1
    assert aggregation.counted == 2
    assert aggregation.day_buckets[TODAY].open == 2
    # first seen wins
    assert aggregation.user_names == {77: "alice", 88: "bob"}


def test_notes_outside_boundary_produce_nothing(make_project, square_boundary) -> None:
    project = notes_project(make_project)
    notes = [make_note(1, geometry=OUTSIDE), make_note(2, geometry=ON_EDGE), make_note(3, geometry={})]

    aggregation = fold_notes(project, [notes], days=DAYS, boundary=square_boundary, today=TODAY)

    assert aggregation.outside == 3
    assert aggregation.contributions == []
    assert aggregation.user_names == {}
    assert all((bucket.open, bucket.closed) == (0, 0) for bucket in aggregation.day_buckets.values())


def test_configured_note_points_and_anonymous_notes(make_project, square_boundary) -> None:
    project = notes_project(make_project, note=5)
    notes = [make_note(1), make_note(2, uid=None, user=None)]

    aggregation = fold_notes(project, [notes], days=DAYS, boundary=square_boundary, today=TODAY)

    assert [c.points for c in aggregation.contributions] == [5]
    assert aggregation.day_buckets[TODAY].open == 2


class FakeNotesClient:
    def __init__(self, results: dict[str, FetchResult]) -> None:
        self.results = results
        self.calls: list[tuple[str, date]] = []

    async def search_notes(self, term: str, *, from_date: date) -> FetchResult:
        self.calls.append((term, from_date))
        await asyncio.sleep(0)
        return self.results[term]


def test_aggregator_queries_every_term_of_every_notes_source(make_project, square_boundary) -> None:
    project = make_project(
        datasources=[
            {"source": "notes", "terms": ["banc", "bench"]},
            {"source": "osmose", "item": 1},
            {"source": "notes", "terms": ["picnic"]},
        ],
    )
    client = FakeNotesClient({
        "banc": FetchResult(state=FetchState.OK, data=[make_note(1)]),
        "bench": FetchResult(state=FetchState.OK, data=[make_note(1), make_note(2)]),
        "picnic": FetchResult(state=FetchState.EMPTY, data=[]),
    })
    aggregator = NoteAggregator(client, square_boundary, today=TODAY)

    aggregation = asyncio.run(aggregator.aggregate(project))

    assert sorted(term for term, _ in client.calls) == ["banc", "bench", "picnic"]
    assert all(from_date == project.start_date for _, from_date in client.calls)
    assert aggregation.stats()["distinct"] == 2
    assert aggregation.stats()["duplicates"] == 1
    assert list(aggregation.day_buckets) == project_days(project.start_date, TODAY)


@pytest.mark.asyncio
async def test_aggregator_failed_term_raises(make_project, square_boundary) -> None:
    project = make_project(datasources=[{"source": "notes", "terms": ["banc", "bench"]}])
    client = FakeNotesClient({
        "banc": FetchResult(state=FetchState.OK, data=[make_note(1)]),
        "bench": FetchResult(state=FetchState.FAILED, status_code=500, error="HTTP 500"),
    })
    aggregator = NoteAggregator(client, square_boundary, today=TODAY)

    with pytest.raises(NotesQueryError) as excinfo:
        await aggregator.aggregate(project)

    assert excinfo.value.term == "bench"
    assert excinfo.value.status_code == 500
