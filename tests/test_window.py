from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.config.database import Base
from app.models.project import Project
from app.services.window import (
    ProcessingWindow,
    SQLAlchemyCheckpointRepository,
    WindowResolver,
    resolve_window,
)

START = date(2024, 1, 1)
TODAY = date(2024, 1, 20)


def test_window_without_checkpoint_starts_at_project_start() -> None:
    window = resolve_window(START, None, TODAY)

    assert window == ProcessingWindow(start=START, end=TODAY)
    assert window.checkpoint is None


def test_window_starts_at_checkpoint_day() -> None:
    window = resolve_window(START, datetime(2024, 1, 15, 3, 12), TODAY)

    assert window.start == date(2024, 1, 15)
    assert window.end == TODAY
    assert window.checkpoint == datetime(2024, 1, 15, 3, 12)


def test_window_accepts_iso_timestamp_checkpoint() -> None:
    window = resolve_window(START, "2024-01-10T00:00:00Z", TODAY)

    assert window.start == date(2024, 1, 10)


def test_checkpoint_before_project_start_is_clamped() -> None:
    window = resolve_window(START, datetime(2023, 12, 1), TODAY)

    assert window.start == START


def test_window_is_never_inverted() -> None:
    future_project = resolve_window(date(2024, 2, 1), None, TODAY)
    future_checkpoint = resolve_window(START, date(2024, 1, 21), TODAY)

    assert future_project.start == future_project.end == TODAY
    assert future_checkpoint.start == TODAY


def test_processing_window_rejects_inverted_bounds() -> None:
    with pytest.raises(ValueError):
        ProcessingWindow(start=date(2024, 1, 2), end=date(2024, 1, 1))


class FakeCheckpoints:
    def __init__(self, checkpoints: dict[str, datetime]) -> None:
        self.checkpoints = checkpoints
        self.calls: list[str] = []

    def get_checkpoint(self, project_id: str) -> datetime | None:
        self.calls.append(project_id)
        return self.checkpoints.get(project_id)


def test_resolver_reads_checkpoint_once_per_project(make_project) -> None:
    repository = FakeCheckpoints({"2024-01_benches": datetime(2024, 1, 12, 22, 0)})
    resolver = WindowResolver(repository, today=TODAY)

    window = resolver.resolve(make_project())

    assert repository.calls == ["2024-01_benches"]
    assert window.start == date(2024, 1, 12)


def test_sqlalchemy_checkpoint_repository_reads_lastupdate_date() -> None:
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine, tables=[Project.__table__])
    session_factory = sessionmaker(bind=engine)

    db = session_factory()
    db.add(Project(project="2024-01_benches", start_date=START, end_date=date(2024, 1, 31),
                   lastupdate_date=datetime(2024, 1, 18, 1, 0)))
    db.add(Project(project="2024-01_trees", start_date=START, end_date=date(2024, 1, 31)))
    db.commit()
    db.close()

    repository = SQLAlchemyCheckpointRepository(session_factory)

    assert repository.get_checkpoint("2024-01_benches").date() == date(2024, 1, 18)
    assert repository.get_checkpoint("2024-01_trees") is None
    assert repository.get_checkpoint("unknown") is None


PARIS_WINTER = timezone(timedelta(hours=1))


def test_aware_checkpoint_starts_at_its_utc_day() -> None:
    # 2024-01-15T23:30Z read back in a +01:00 session
    window = resolve_window(START, datetime(2024, 1, 16, 0, 30, tzinfo=PARIS_WINTER), TODAY)

    assert window.start == date(2024, 1, 15)


def test_offset_string_checkpoint_starts_at_its_utc_day() -> None:
    assert resolve_window(START, "2024-01-16T00:30:00+01:00", TODAY).start == date(2024, 1, 15)
    assert resolve_window(START, "2024-01-15 23:30:00 UTC", TODAY).start == date(2024, 1, 15)
    assert resolve_window(START, "2024-01-15T22:30:00-02:00", TODAY).start == date(2024, 1, 16)


def test_resolver_uses_utc_day_of_store_checkpoint(make_project) -> None:
    repository = FakeCheckpoints({"2024-01_benches": datetime(2024, 1, 13, 0, 15, tzinfo=PARIS_WINTER)})

    window = WindowResolver(repository, today=TODAY).resolve(make_project())

    assert window.start == date(2024, 1, 12)
