from __future__ import annotations

from datetime import date

from app.services.pipeline.emitter import NOTES_PRECONDITION, PROJECT_STAGES, PlanEmitter
from app.services.pipeline.steps import CopyCsv, Echo, IfBoundary, RemoveFiles, Sql, TagsCount
from app.services.window import ProcessingWindow

WINDOW = ProcessingWindow(start=date(2024, 1, 8), end=date(2024, 1, 10))


def full_project(make_project):
    return make_project(
        datasources=[{"source": "notes", "terms": ["banc"]}],
        statistics={"count": True, "points": {"add": 3, "note": 2}},
    )


def test_stages_follow_fixed_order(make_project, work_files) -> None:
    project_plan = PlanEmitter(work_files).project_plan(full_project(make_project), WINDOW)

    assert tuple(project_plan.stage_names) == PROJECT_STAGES


def test_optional_stages_are_skipped_without_reordering(make_project, work_files) -> None:
    project_plan = PlanEmitter(work_files).project_plan(make_project(), WINDOW)

    assert "count" not in project_plan.stage_names
    assert "notes" not in project_plan.stage_names
    assert project_plan.stage_names == [name for name in PROJECT_STAGES if name not in ("count", "notes")]


def test_count_stage_only_processes_window_days(make_project, work_files) -> None:
    project_plan = PlanEmitter(work_files).project_plan(full_project(make_project), WINDOW)
    count_steps = dict(project_plan.stages)["count"]

    processed = [step.message for step in count_steps if isinstance(step, Echo) and step.message.startswith("Processing")]
    counts = [step for step in count_steps if isinstance(step, TagsCount)]
    inserts = [step for step in count_steps if isinstance(step, Sql) and step.statement.startswith("INSERT")]

    assert processed == ["Processing 2024-01-08", "Processing 2024-01-09", "Processing 2024-01-10"]
    assert len(counts) == 3
    assert all(step.expand for step in inserts)
    assert "'2024-01-08T23:59:59Z', ${nbday})" in inserts[0].statement
    assert "ON CONFLICT (project,ts) DO UPDATE" in inserts[0].statement
    assert count_steps[-1] == RemoveFiles((work_files.osm_stats(full_project(make_project)),))


def test_count_stage_deletes_previous_counts_in_window(make_project, work_files) -> None:
    count_steps = dict(PlanEmitter(work_files).project_plan(full_project(make_project), WINDOW).stages)["count"]

    delete = next(step for step in count_steps if isinstance(step, Sql) and step.statement.startswith("DELETE"))
    per_boundary = next(step for step in count_steps if isinstance(step, IfBoundary))

    assert delete.statement == (
        "DELETE FROM pdm_feature_counts WHERE project='2024-01_benches' "
        "AND ts BETWEEN '2024-01-08T00:00:00Z' AND '2024-01-10T00:00:00Z'"
    )
    assert per_boundary.steps[0].statement.startswith("DELETE FROM pdm_feature_counts_per_boundary")


def test_notes_stage_loads_generated_csv_files(make_project, work_files) -> None:
    notes_steps = dict(PlanEmitter(work_files).project_plan(full_project(make_project), WINDOW).stages)["notes"]

    copies = [step for step in notes_steps if isinstance(step, CopyCsv)]
    statements = [step.statement for step in notes_steps if isinstance(step, Sql)]

    assert [step.table for step in copies] == ["pdm_note_counts", "pdm_user_contribs", "pdm_user_names_notes"]
    assert copies[0].path == f"{work_files.work_dir}/notes_2024-01_benches.csv"
    assert copies[1].columns == ("project", "userid", "ts", "contribution", "points")
    assert "DELETE FROM pdm_note_counts WHERE project='2024-01_benches'" in statements
    assert (
        "DELETE FROM pdm_user_contribs WHERE project='2024-01_benches' AND contribution='note'" in statements
    )
    assert any("ON CONFLICT (userid) DO NOTHING" in statement for statement in statements)


def test_checkpoint_write_uses_history_timestamp(make_project, work_files) -> None:
    stages = dict(PlanEmitter(work_files).project_plan(make_project(), WINDOW).stages)
    update = stages["checkpoint_write"][0]

    assert update == Sql(
        "UPDATE pdm_projects SET lastupdate_date='${osh_timestamp}' WHERE project='2024-01_benches'",
        expand=True,
    )


def test_checkpoint_stage_reports_last_update(make_project, work_files) -> None:
    emitter = PlanEmitter(work_files)
    with_checkpoint = ProcessingWindow(start=date(2024, 1, 8), end=date(2024, 1, 10), checkpoint=date(2024, 1, 8))

    first_run = dict(emitter.project_plan(make_project(), WINDOW).stages)["checkpoint"]
    next_run = dict(emitter.project_plan(make_project(), with_checkpoint).stages)["checkpoint"]

    assert Echo("No project last update timestamp found") in first_run
    assert Echo("Starting from project last update: 2024-01-08") in next_run


def test_plan_keeps_project_order_and_notes_precondition(make_project, work_files) -> None:
    first = full_project(make_project)
    second = make_project(id="2024-02_trees")

    plan = PlanEmitter(work_files).plan([(first, WINDOW), (second, WINDOW)])

    assert [project_plan.project_id for project_plan in plan.projects] == ["2024-01_benches", "2024-02_trees"]
    assert plan.header_comments == [NOTES_PRECONDITION]
    assert plan.prerequisites[0] == Echo("== Prerequisites")
    assert isinstance(plan.optimize[1], IfBoundary)


def test_plan_without_notes_has_no_precondition(make_project, work_files) -> None:
    plan = PlanEmitter(work_files).plan([(make_project(), WINDOW)])

    assert plan.header_comments == []
