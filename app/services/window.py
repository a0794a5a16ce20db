"""Incremental processing window resolution from persisted checkpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Protocol

from app.models.project import Project
from app.projects.definition import ProjectDefinition
from app.utils.helpers import parse_day, utc_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessingWindow:
    """Days `[start, end]` (re)processed for a project."""

    start: date
    end: date
    checkpoint: datetime | date | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    def contains_day(self, day: date) -> bool:
        """Whether a statistics day must be (re)computed for this window."""
        return self.start <= day <= self.end


class CheckpointRepository(Protocol):
    """Storage interface for project checkpoints."""

    def get_checkpoint(self, project_id: str) -> datetime | None: ...


class SQLAlchemyCheckpointRepository:
    """SQLAlchemy-backed checkpoint lookup on `pdm_projects`."""

    def __init__(self, session_factory: Callable[[], Any]) -> None:
        self._session_factory = session_factory

    def get_checkpoint(self, project_id: str) -> datetime | None:
        db = self._session_factory()
        try:
            return (
                db.query(Project.lastupdate_date)
                .filter(Project.project == project_id)
                .scalar()
            )
        finally:
            db.close()


def resolve_window(start_date: date, checkpoint: Any, today: date | None = None) -> ProcessingWindow:
    """
    Compute the processing window of a project

    Starts at the checkpoint day, or at the project start when there is no
    checkpoint or when the checkpoint precedes the project start. Ends today.

    Args:
        start_date: Project start day
        checkpoint: Last successful update (datetime, date, ISO string or None)
        today: Reference day (UTC today when None)

    Returns:
        Resolved window
    """
    end = today or utc_today()
    checkpoint_day = parse_day(checkpoint)
    start = checkpoint_day or start_date
    if start < start_date:
        start = start_date
    # A project starting in the future, or a checkpoint written "tomorrow"
    if start > end:
        start = end
    return ProcessingWindow(
        start=start,
        end=end,
        checkpoint=checkpoint if checkpoint_day is not None else None,
    )


class WindowResolver:
    """Resolve windows for projects, reading each checkpoint once."""

    def __init__(self, repository: CheckpointRepository, *, today: date | None = None) -> None:
        self._repository = repository
        self._today = today

    def resolve(self, project: ProjectDefinition) -> ProcessingWindow:
        checkpoint = self._repository.get_checkpoint(project.id)
        window = resolve_window(project.start_date, checkpoint, self._today)
        if checkpoint is None:
            logger.info(f"No last update timestamp for {project.id}, starting from {window.start}")
        else:
            logger.info(f"Starting {project.id} from last update {checkpoint} (window {window.start} - {window.end})")
        return window
