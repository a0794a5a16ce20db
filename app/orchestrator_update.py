"""Projects update orchestrator: install, plan every project, aggregate notes."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Callable, Sequence

from app.config.database import SessionLocal
from app.config.settings import settings
from app.crawlers.notes.client import OsmNotesClient
from app.projects.definition import ProjectDefinition
from app.services.install import ProjectInstaller
from app.services.notes.aggregator import NoteAggregator
from app.services.notes.boundary import Boundary
from app.services.notes.writer import NotesCsvWriter
from app.services.pipeline.emitter import PlanEmitter
from app.services.pipeline.paths import WorkFiles
from app.services.pipeline.render import PlanRenderer
from app.services.window import SQLAlchemyCheckpointRepository, WindowResolver

logger = logging.getLogger(__name__)

SCRIPT_MODE = 0o766


class ProjectsUpdateOrchestrator:
    """
    Coordinates one generation run

    Installation is joined before any plan is built. Notes aggregation tasks
    start before the plan is written and are only awaited afterwards, so the
    plan's notes-import stage depends on the generator having exited.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Any] = SessionLocal,
        notes_client_factory: Callable[[], Any] = OsmNotesClient,
        boundary_loader: Callable[[], Boundary] | None = None,
        installer: Any | None = None,
        window_resolver: Any | None = None,
        files: WorkFiles | None = None,
        notes_writer: Any | None = None,
        today: date | None = None,
    ) -> None:
        self._files = files or WorkFiles.from_settings()
        self._notes_client_factory = notes_client_factory
        self._boundary_loader = boundary_loader or (lambda: Boundary.from_file(settings.BOUNDARY_GEOJSON_PATH))
        self._installer = installer or ProjectInstaller(session_factory=session_factory)
        self._window_resolver = window_resolver or WindowResolver(
            SQLAlchemyCheckpointRepository(session_factory), today=today
        )
        self._notes_writer = notes_writer or NotesCsvWriter(self._files.work_dir)
        self._emitter = PlanEmitter(self._files)
        self._renderer = PlanRenderer(settings.DATABASE_URL)
        self._today = today

    async def run(
        self,
        projects: Sequence[ProjectDefinition],
        *,
        output_path: str | Path,
        install: bool = True,
    ) -> dict[str, Any]:
        run_stats: dict[str, Any] = {
            "started_at": datetime.now(UTC).isoformat(),
            "projects": [project.id for project in projects],
            "output": str(output_path),
            "notes": {},
            "errors": [],
        }
        logger.info(f"Projects update started for {len(projects)} project(s)")

        if install:
            logger.info("Projects installation")
            run_stats["install"] = await self._installer.install(projects)

        notes_projects = [project for project in projects if project.has_notes]
        if notes_projects:
            async with self._notes_client_factory() as client:
                aggregator = NoteAggregator(client, self._boundary_loader(), today=self._today)
                tasks = {
                    project.id: asyncio.create_task(self._run_notes(aggregator, project))
                    for project in notes_projects
                }
                try:
                    self._write_plan(projects, output_path)
                except Exception:
                    # No plan, so no notes file is worth waiting for
                    for task in tasks.values():
                        task.cancel()
                    await asyncio.gather(*tasks.values(), return_exceptions=True)
                    raise
                await self._collect_notes(tasks, run_stats)
        else:
            self._write_plan(projects, output_path)

        run_stats["completed_at"] = datetime.now(UTC).isoformat()
        run_stats["success"] = not run_stats["errors"]
        logger.info(f"Projects update completed (success={run_stats['success']}, errors={len(run_stats['errors'])})")
        return run_stats

    def _write_plan(self, projects: Sequence[ProjectDefinition], output_path: str | Path) -> None:
        entries = [(project, self._window_resolver.resolve(project)) for project in projects]
        script = self._renderer.render(self._emitter.plan(entries))

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(script, encoding="utf-8")
        os.chmod(path, SCRIPT_MODE)
        logger.info(f"Written Bash script to {path}")

    async def _run_notes(self, aggregator: NoteAggregator, project: ProjectDefinition) -> dict[str, Any]:
        aggregation = await aggregator.aggregate(project)
        written = self._notes_writer.write(aggregation)
        return {"stats": aggregation.stats(), "written": written}

    async def _collect_notes(self, tasks: dict[str, asyncio.Task], run_stats: dict[str, Any]) -> None:
        results = await asyncio.gather(*tasks.values(), return_exceptions=True)
        for project_id, result in zip(tasks.keys(), results):
            if isinstance(result, BaseException):
                logger.error(f"Notes aggregation failed for {project_id}: {result}")
                run_stats["notes"][project_id] = {"success": False, "error": str(result)}
                run_stats["errors"].append(f"notes {project_id}: {result}")
                continue

            run_stats["notes"][project_id] = {"success": True, **result}
            failed_files = [name for name, ok in result["written"].items() if not ok]
            if failed_files:
                # Non-fatal here, the plan's notes import will fail on the missing file
                logger.warning(f"Notes files not written for {project_id}: {failed_files}")
