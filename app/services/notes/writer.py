"""CSV artifacts bulk-loaded by the notes import stage of the plan"""

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List

from app.services.notes.aggregator import NotesAggregation
from app.utils.helpers import format_day

logger = logging.getLogger(__name__)


def notes_csv_path(work_dir: str | Path, project_id: str) -> Path:
    return Path(work_dir) / f"notes_{project_id}.csv"


def user_notes_csv_path(work_dir: str | Path, project_id: str) -> Path:
    return Path(work_dir) / f"user_notes_{project_id}.csv"


def user_names_csv_path(work_dir: str | Path, project_id: str) -> Path:
    return Path(work_dir) / f"usernames_notes_{project_id}.csv"


class NotesCsvWriter:
    """
    Write the three notes artifacts of a project

    Rows follow the column order of the COPY statements in the plan:
    `pdm_note_counts (project, ts, open, closed)`,
    `pdm_user_contribs (project, userid, ts, contribution, points)` and
    `pdm_user_names_notes (userid, username)`.
    """

    def __init__(self, work_dir: str | Path):
        self.work_dir = Path(work_dir)

    def write(self, aggregation: NotesAggregation) -> Dict[str, bool]:
        """
        Write all artifacts; a failed file is logged and does not stop the others

        Returns:
            Mapping of artifact name to success flag
        """
        project_id = aggregation.project_id
        counts = [
            [project_id, format_day(day), bucket.open, bucket.closed]
            for day, bucket in aggregation.day_buckets.items()
        ]
        contributions = [
            [c.project, c.uid, format_day(c.day), c.contribution, c.points]
            for c in aggregation.contributions
        ]
        names = [[uid, name] for uid, name in aggregation.user_names.items()]

        return {
            "notes": self._write_rows(notes_csv_path(self.work_dir, project_id), counts, "note stats"),
            "user_notes": self._write_rows(
                user_notes_csv_path(self.work_dir, project_id), contributions, "user notes contributions"
            ),
            "user_names": self._write_rows(
                user_names_csv_path(self.work_dir, project_id), names, "user names from notes"
            ),
        }

    def _write_rows(self, path: Path, rows: Iterable[List], label: str) -> bool:
        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                csv.writer(f, lineterminator="\n").writerows(rows)
        except OSError as e:
            logger.error(f"Failed to write {label} to {path}: {e}")
            return False
        logger.info(f"Written {label} to {path}")
        return True
