"""File layout shared by every plan step."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from app.config.settings import settings
from app.projects.definition import ProjectDefinition


@dataclass(frozen=True)
class WorkFiles:
    """Work, SQL and project script paths derived from settings."""

    work_dir: str
    osh_pbf_url: str
    sql_dir: str
    projects_dir: str

    @classmethod
    def from_settings(cls) -> WorkFiles:
        return cls(
            work_dir=settings.WORK_DIR,
            osh_pbf_url=settings.OSH_PBF_URL,
            sql_dir=settings.SQL_DIR,
            projects_dir=settings.PROJECTS_DIR,
        )

    def _work(self, name: str) -> str:
        return str(Path(self.work_dir) / name)

    def _sql(self, name: str) -> str:
        return str(Path(self.sql_dir) / name)

    # Shared files
    @property
    def osh_updated(self) -> str:
        """Latest full history file, kept up to date by the replication job."""
        name = self.osh_pbf_url.rstrip("/").split("/")[-1].replace(".osh.pbf", ".latest.osh.pbf")
        return self._work(name)

    @property
    def osh_timestamp(self) -> str:
        return self._work("osh_timestamp")

    @property
    def osc_usefull(self) -> str:
        return self._work("extract_filtered.osc.gz")

    @property
    def csv_changes(self) -> str:
        return self._work("change.csv")

    @property
    def osc2csv(self) -> str:
        return self._sql("osc2csv.xslt")

    @property
    def changes_populate_sql(self) -> str:
        return self._sql("33_changes_populate.sql")

    @property
    def changes_boundary_sql(self) -> str:
        return self._sql("33_changes_boundary.sql")

    @property
    def contribs_sql(self) -> str:
        return self._sql("32_projects_contribs.sql")

    # Per-project files
    def osh_project(self, project: ProjectDefinition) -> str:
        return self._work(f"{project.short_name}.osh.pbf")

    def osh_filtered(self, project: ProjectDefinition) -> str:
        return self._work(f"{project.short_name}.filtered.osh.pbf")

    def osh_usefull(self, project: ProjectDefinition) -> str:
        return self._work(f"{project.short_name}.usefull.osh.pbf")

    def osm_stats(self, project: ProjectDefinition) -> str:
        return self._work(f"{project.short_name}.stats.osm.pbf")

    def osm_stats_filtered(self, project: ProjectDefinition) -> str:
        return self._work(f"{project.short_name}.filtered.stats.osm.pbf")

    def custom_contribs_sql(self, project: ProjectDefinition) -> str:
        return str(Path(self.projects_dir) / project.id / "contribs.sql")

    def custom_extract_script(self, project: ProjectDefinition) -> str:
        return str(Path(self.projects_dir) / project.id / "extract.sh")
