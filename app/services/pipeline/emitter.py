"""Assemble the per-project update plan in its fixed stage order."""

from __future__ import annotations

import logging
from datetime import date

from app.projects.definition import NOTE_CONTRIBUTION, ProjectDefinition
from app.services.day_range import project_days
from app.services.notes.writer import notes_csv_path, user_names_csv_path, user_notes_csv_path
from app.services.pipeline.paths import WorkFiles
from app.services.pipeline.planner import COUNT_VARIABLE, TagFilterPlanner, end_of_day
from app.services.pipeline.render import sql_literal
from app.services.pipeline.steps import (
    CopyCsv,
    Echo,
    GetIdWithHistory,
    IfBoundary,
    IfFileExists,
    Pipeline,
    Plan,
    ProjectPlan,
    ReadOshTimestamp,
    RemoveFiles,
    RunScript,
    Separator,
    Sql,
    SqlFile,
    Step,
    WarnIfTableEmpty,
)
from app.services.window import ProcessingWindow
from app.utils.helpers import format_day

logger = logging.getLogger(__name__)

STAGE_CHECKPOINT = "checkpoint"
STAGE_WINDOW = "window"
STAGE_EXTRACT = "extract"
STAGE_USEFULL = "usefull"
STAGE_CHANGES = "changes"
STAGE_POPULATE = "populate"
STAGE_CUSTOM_CONTRIBS = "custom_contribs"
STAGE_COUNT = "count"
STAGE_CUSTOM_EXTRACT = "custom_extract"
STAGE_USER_CONTRIBS = "user_contribs"
STAGE_NOTES = "notes"
STAGE_CHECKPOINT_WRITE = "checkpoint_write"

PROJECT_STAGES = (
    STAGE_CHECKPOINT,
    STAGE_WINDOW,
    STAGE_EXTRACT,
    STAGE_USEFULL,
    STAGE_CHANGES,
    STAGE_POPULATE,
    STAGE_CUSTOM_CONTRIBS,
    STAGE_COUNT,
    STAGE_CUSTOM_EXTRACT,
    STAGE_USER_CONTRIBS,
    STAGE_NOTES,
    STAGE_CHECKPOINT_WRITE,
)

CHANGES_COLUMNS = ("project", "action", "osmid", "version", "ts", "username", "userid", "tags")
USER_CONTRIBS_COLUMNS = ("project", "userid", "ts", "contribution", "points")

NOTES_PRECONDITION = (
    "Notes import stages read notes CSV files written asynchronously by the generator: "
    "run this script only after the generator process has exited."
)


def start_of_day(day: date) -> str:
    return f"{format_day(day)}T00:00:00Z"


class PlanEmitter:
    """
    Concatenate the stages of every project into one plan

    Stage order per project is fixed (see `PROJECT_STAGES`); optional stages
    are skipped, never reordered. The plan is not atomic across stages.
    """

    def __init__(self, files: WorkFiles, *, planner: TagFilterPlanner | None = None) -> None:
        self._files = files
        self._planner = planner or TagFilterPlanner(files)

    def plan(self, entries: list[tuple[ProjectDefinition, ProcessingWindow]]) -> Plan:
        plan = Plan(
            prerequisites=self.prerequisites(),
            optimize=self.optimize(),
        )
        if any(project.has_notes for project, _ in entries):
            plan.header_comments.append(NOTES_PRECONDITION)
        for project, window in entries:
            plan.projects.append(self.project_plan(project, window))
        logger.info(f"Plan built for {len(plan.projects)} project(s)")
        return plan

    def prerequisites(self) -> list[Step]:
        return [
            Echo("== Prerequisites"),
            WarnIfTableEmpty("pdm_projects", "No known projects in SQL projects table"),
            WarnIfTableEmpty("pdm_projects_points", "No declared points for projects contributions"),
            ReadOshTimestamp(self._files.osh_timestamp),
            Separator(),
        ]

    def optimize(self) -> list[Step]:
        return [
            Echo("== Optimize database"),
            IfBoundary((
                Sql("REFRESH MATERIALIZED VIEW pdm_boundary_subdivide"),
                Sql("REFRESH MATERIALIZED VIEW pdm_boundary_tiles"),
            )),
            Separator(),
        ]

    def project_plan(self, project: ProjectDefinition, window: ProcessingWindow) -> ProjectPlan:
        plan = ProjectPlan(project_id=project.id)
        plan.add(STAGE_CHECKPOINT, self._checkpoint_stage(project, window))
        plan.add(STAGE_WINDOW, self._window_stage(window))
        plan.add(STAGE_EXTRACT, self._extract_stage(project))
        plan.add(STAGE_USEFULL, self._usefull_stage(project))
        plan.add(STAGE_CHANGES, self._changes_stage(project, window))
        plan.add(STAGE_POPULATE, self._populate_stage(project))
        plan.add(STAGE_CUSTOM_CONTRIBS, self._custom_contribs_stage(project))
        if project.statistics.count:
            plan.add(STAGE_COUNT, self._count_stage(project, window))
        plan.add(STAGE_CUSTOM_EXTRACT, self._custom_extract_stage(project))
        plan.add(STAGE_USER_CONTRIBS, self._user_contribs_stage(project, window))
        if project.has_notes:
            plan.add(STAGE_NOTES, self._notes_stage(project))
        plan.add(STAGE_CHECKPOINT_WRITE, self._checkpoint_write_stage(project))
        return plan

    def _range_clause(self, project: ProjectDefinition, start: date, end: date) -> str:
        return (
            f"project={sql_literal(project.id)} "
            f"AND ts BETWEEN {sql_literal(start_of_day(start))} AND {sql_literal(start_of_day(end))}"
        )

    def _project_variables(self, project: ProjectDefinition) -> tuple[tuple[str, str], ...]:
        return (("project_id", sql_literal(project.id)), ("project_table", project.table_name))

    def _checkpoint_stage(self, project: ProjectDefinition, window: ProcessingWindow) -> list[Step]:
        if window.checkpoint is not None:
            status = f"Starting from project last update: {window.checkpoint}"
        else:
            status = "No project last update timestamp found"
        return [Echo(f"== Begin process for project {project.id}"), Echo(status), Separator()]

    def _window_stage(self, window: ProcessingWindow) -> list[Step]:
        return [Echo(f"Processing window: {format_day(window.start)} to {format_day(window.end)}")]

    def _extract_stage(self, project: ProjectDefinition) -> list[Step]:
        filtered = self._files.osh_filtered(project)
        return [
            IfFileExists(filtered, (Echo("Remove existing filtered file"), RemoveFiles((filtered,)))),
            *self._planner.extraction_chain(project),
        ]

    def _usefull_stage(self, project: ProjectDefinition) -> list[Step]:
        return [
            Echo("   => Produce usefull file"),
            GetIdWithHistory(
                ids_file=self._files.osh_filtered(project),
                source=self._files.osh_updated,
                output=self._files.osh_usefull(project),
            ),
        ]

    def _changes_stage(self, project: ProjectDefinition, window: ProcessingWindow) -> list[Step]:
        osc = self._files.osc_usefull
        csv_changes = self._files.csv_changes
        start, end = format_day(window.start), format_day(window.end)
        return [
            Echo("   => Transform changes into CSV file"),
            RemoveFiles((csv_changes,)),
            Pipeline((
                ("osmium", "time-filter", self._files.osh_usefull(project),
                 start_of_day(window.start), start_of_day(window.end), "-f", "osh.pbf", "-o", "-"),
                ("osmium", "cat", "-", "-F", "osh.pbf", "-O", "-o", osc),
            )),
            Pipeline(
                (("xsltproc", self._files.osc2csv, osc), ("sed", f"s/^/{project.id},/")),
                output=csv_changes,
            ),
            RemoveFiles((osc,)),
            Echo(f"   => Init changes table in database between {start} and {end}"),
            Sql(f"DELETE FROM pdm_changes WHERE {self._range_clause(project, window.start, window.end)}"),
            Sql("CREATE TABLE IF NOT EXISTS pdm_changes_tmp (LIKE pdm_changes)"),
            Sql("TRUNCATE TABLE pdm_changes_tmp"),
            CopyCsv("pdm_changes_tmp", csv_changes, CHANGES_COLUMNS),
        ]

    def _populate_stage(self, project: ProjectDefinition) -> list[Step]:
        variables = self._project_variables(project)
        return [
            SqlFile(self._files.changes_populate_sql, variables),
            IfBoundary((SqlFile(self._files.changes_boundary_sql, variables),)),
            Sql("DROP TABLE pdm_changes_tmp"),
        ]

    def _custom_contribs_stage(self, project: ProjectDefinition) -> list[Step]:
        path = self._files.custom_contribs_sql(project)
        return [
            IfFileExists(path, (Echo("Including project custom contributions"), SqlFile(path))),
            RemoveFiles((self._files.csv_changes,)),
            Separator(),
        ]

    def _count_stage(self, project: ProjectDefinition, window: ProcessingWindow) -> list[Step]:
        """One snapshot chain per project day inside the window."""
        range_clause = self._range_clause(project, window.start, window.end)
        project_literal = sql_literal(project.id)
        steps: list[Step] = [
            Echo(f"== Statistics for project {project.id}"),
            Echo("   => Count features"),
            Sql(f"DELETE FROM pdm_feature_counts WHERE {range_clause}"),
            IfBoundary((Sql(f"DELETE FROM pdm_feature_counts_per_boundary WHERE {range_clause}"),)),
            Echo(f"Counting from {format_day(window.start)} to {format_day(window.end)}"),
        ]
        days = [day for day in project_days(project.start_date, window.end) if window.contains_day(day)]
        for day in days:
            ts = sql_literal(end_of_day(day))
            steps.extend(self._planner.snapshot_chain(project, day))
            steps.append(Sql(
                f"INSERT INTO pdm_feature_counts (project,ts,amount) VALUES ({project_literal}, {ts}, ${{{COUNT_VARIABLE}}}) "
                "ON CONFLICT (project,ts) DO UPDATE SET amount=EXCLUDED.amount",
                expand=True,
            ))
            steps.append(IfBoundary((Sql(
                "INSERT INTO pdm_feature_counts_per_boundary(project, boundary, ts, amount) "
                f"SELECT {project_literal} as project, boundary, {ts} AS ts, count(*) as amount "
                f"FROM pdm_features_boundary WHERE project={project_literal} "
                f"AND ({ts} BETWEEN start_ts AND end_ts OR (start_ts is null and end_ts is null) "
                f"OR {ts} > start_ts OR {ts} < end_ts) "
                "GROUP BY project, boundary "
                "ON CONFLICT (project,boundary,ts) DO UPDATE SET amount=EXCLUDED.amount"
            ),)))
        steps.append(RemoveFiles((self._files.osm_stats(project),)))
        return steps

    def _custom_extract_stage(self, project: ProjectDefinition) -> list[Step]:
        usefull = self._files.osh_usefull(project)
        path = self._files.custom_extract_script(project)
        return [
            IfFileExists(path, (Echo("== Extract script"), RunScript(path), Echo(""))),
            RemoveFiles((usefull,)),
            Separator(),
        ]

    def _user_contribs_stage(self, project: ProjectDefinition, window: ProcessingWindow) -> list[Step]:
        start, end = format_day(window.start), format_day(window.end)
        return [
            Echo(f"== Generate user contributions between {start} and {end}"),
            SqlFile(self._files.contribs_sql, (
                ("project_id", sql_literal(project.id)),
                ("start_date", sql_literal(start_of_day(window.start))),
                ("end_date", sql_literal(start_of_day(window.end))),
            )),
            Separator(),
        ]

    def _notes_stage(self, project: ProjectDefinition) -> list[Step]:
        """
        Replace the project's note statistics with the generator's CSV files

        The CSV files always cover the whole project, so the previous rows of
        the project are deleted rather than only the processing window.
        """
        work_dir = self._files.work_dir
        notes_csv = str(notes_csv_path(work_dir, project.id))
        user_notes_csv = str(user_notes_csv_path(work_dir, project.id))
        user_names_csv = str(user_names_csv_path(work_dir, project.id))
        project_literal = sql_literal(project.id)
        return [
            Echo("   => Notes statistics"),
            Sql(f"DELETE FROM pdm_note_counts WHERE project={project_literal}"),
            CopyCsv("pdm_note_counts", notes_csv),
            Sql(
                f"DELETE FROM pdm_user_contribs WHERE project={project_literal} "
                f"AND contribution={sql_literal(NOTE_CONTRIBUTION)}"
            ),
            CopyCsv("pdm_user_contribs", user_notes_csv, USER_CONTRIBS_COLUMNS),
            Sql("CREATE TABLE IF NOT EXISTS pdm_user_names_notes(userid BIGINT, username VARCHAR)"),
            Sql("TRUNCATE TABLE pdm_user_names_notes"),
            CopyCsv("pdm_user_names_notes", user_names_csv),
            Sql(
                "INSERT INTO pdm_user_names SELECT userid, username FROM pdm_user_names_notes "
                "ON CONFLICT (userid) DO NOTHING; DROP TABLE pdm_user_names_notes;"
            ),
            RemoveFiles((notes_csv, user_notes_csv, user_names_csv)),
            Separator(),
        ]

    def _checkpoint_write_stage(self, project: ProjectDefinition) -> list[Step]:
        return [
            Sql(
                f"UPDATE pdm_projects SET lastupdate_date='${{osh_timestamp}}' WHERE project={sql_literal(project.id)}",
                expand=True,
            ),
            Echo("   => Project update successful"),
            Separator(),
        ]
