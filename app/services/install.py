"""Install project identities and point values into the store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert

from app.config.database import SessionLocal
from app.models.project import Project, ProjectPoints
from app.projects.definition import ProjectDefinition
from app.utils.exceptions import ProjectInstallError

logger = logging.getLogger(__name__)


def projects_upsert(projects: Sequence[ProjectDefinition]):
    """`pdm_projects` upsert keyed by project, or None when there is nothing to write."""
    rows = [
        {"project": project.id, "start_date": project.start_date, "end_date": project.end_date}
        for project in projects
    ]
    if not rows:
        return None
    statement = pg_insert(Project).values(rows)
    return statement.on_conflict_do_update(
        index_elements=[Project.project],
        set_={"start_date": statement.excluded.start_date, "end_date": statement.excluded.end_date},
    )


def points_upsert(projects: Sequence[ProjectDefinition]):
    """`pdm_projects_points` upsert keyed by (project, contrib); only configured kinds."""
    rows = [
        {"project": project.id, "contrib": contrib, "points": points}
        for project in projects
        for contrib, points in project.statistics.points.items()
    ]
    if not rows:
        return None
    statement = pg_insert(ProjectPoints).values(rows)
    return statement.on_conflict_do_update(
        index_elements=[ProjectPoints.project, ProjectPoints.contrib],
        set_={"points": statement.excluded.points},
    )


class ProjectInstaller:
    """Run both upserts concurrently and join them; any failure aborts the run."""

    def __init__(self, *, session_factory: Callable[[], Any] = SessionLocal) -> None:
        self._session_factory = session_factory

    async def install(self, projects: Sequence[ProjectDefinition]) -> dict[str, int]:
        projects_count = len(projects)
        points_count = sum(len(project.statistics.points) for project in projects)

        results = await asyncio.gather(
            asyncio.to_thread(self._execute, "projects", projects_upsert(projects)),
            asyncio.to_thread(self._execute, "projects points", points_upsert(projects)),
            return_exceptions=True,
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            raise ProjectInstallError("; ".join(str(error) for error in errors)) from errors[0]

        logger.info(f"{projects_count} project(s) installed")
        logger.info(f"{points_count} project(s) point(s) installed")
        return {"projects": projects_count, "points": points_count}

    def _execute(self, label: str, statement: Any) -> None:
        if statement is None:
            logger.info(f"No {label} to install")
            return

        db = self._session_factory()
        try:
            db.execute(statement)
            db.commit()
        except Exception as exc:
            db.rollback()
            raise ProjectInstallError(f"Failed to install {label}: {exc}") from exc
        finally:
            db.close()
