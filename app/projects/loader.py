"""Load project definitions from the projects directory"""

import json
import logging
from pathlib import Path
from typing import List

from app.projects.definition import ProjectDefinition
from app.utils.exceptions import InvalidProjectError

logger = logging.getLogger(__name__)

INFO_FILE = "info.json"


def load_projects(projects_dir: str | Path) -> List[ProjectDefinition]:
    """
    Load every `<projects_dir>/<project>/info.json`

    A broken project file is logged and skipped; it never stops the others.

    Args:
        projects_dir: Directory holding one sub-directory per project

    Returns:
        Project definitions sorted by id
    """
    root = Path(projects_dir)
    if not root.is_dir():
        logger.warning(f"Projects directory not found: {root}")
        return []

    projects: List[ProjectDefinition] = []
    seen_ids: set[str] = set()
    for info_path in sorted(root.glob(f"*/{INFO_FILE}")):
        try:
            payload = json.loads(info_path.read_text(encoding="utf-8"))
            project = ProjectDefinition.from_dict(payload)
        except (OSError, json.JSONDecodeError, InvalidProjectError) as e:
            logger.error(f"Skipping project file {info_path}: {e}")
            continue

        if project.id in seen_ids:
            logger.error(f"Skipping duplicated project id {project.id} ({info_path})")
            continue
        seen_ids.add(project.id)
        projects.append(project)

    logger.info(f"Loaded {len(projects)} project(s) from {root}")
    return sorted(projects, key=lambda p: p.id)
