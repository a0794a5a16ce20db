"""
Generate the daily projects update script.

Installs the configured projects into the database, resolves each
project's processing window, writes the bash update plan and aggregates
OSM notes statistics into CSV files read by that plan.

Usage:
    python -m app.jobs.projects_update [--output PATH] [--skip-install] [--project ID ...]
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.config.settings import settings
from app.orchestrator_update import ProjectsUpdateOrchestrator
from app.projects.loader import load_projects
from app.utils.exceptions import ProjectInstallError, UpdaterError
from app.utils.logger import setup_logger

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate the projects update script")
    parser.add_argument("--projects-dir", default=settings.PROJECTS_DIR, help="Directory of project definitions")
    parser.add_argument("--output", default=settings.OUTPUT_SCRIPT, help="Path of the generated bash script")
    parser.add_argument("--skip-install", action="store_true", help="Do not upsert projects and points")
    parser.add_argument(
        "--project",
        action="append",
        dest="project_ids",
        metavar="ID",
        help="Only plan this project (repeatable)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point, returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logger(level=settings.LOG_LEVEL)

    projects = load_projects(args.projects_dir)
    if args.project_ids:
        wanted = set(args.project_ids)
        unknown = wanted - {project.id for project in projects}
        if unknown:
            logger.warning(f"Unknown project(s) ignored: {', '.join(sorted(unknown))}")
        projects = [project for project in projects if project.id in wanted]

    orchestrator = ProjectsUpdateOrchestrator()
    try:
        result = asyncio.run(
            orchestrator.run(projects, output_path=args.output, install=not args.skip_install)
        )
    except ProjectInstallError as e:
        logger.error(f"Projects installation failed: {e}")
        return 1
    except (UpdaterError, SQLAlchemyError, OSError) as e:
        logger.error(f"Projects update failed: {e}")
        return 1

    for error in result["errors"]:
        logger.error(error)
    return 0 if result["success"] else 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
