"""Tag-filter chains over the OSM history file."""

from __future__ import annotations

from datetime import date

from app.projects.definition import ProjectDefinition
from app.services.pipeline.paths import WorkFiles
from app.services.pipeline.steps import Echo, Move, Step, TagsCount, TagsFilter, TimeFilter
from app.utils.helpers import format_day

COUNT_VARIABLE = "nbday"


def end_of_day(day: date) -> str:
    return f"{format_day(day)}T23:59:59Z"


def count_expression(predicate: str) -> str:
    """Match expression of a sub-predicate, without its `nwr/` type prefix."""
    return predicate.split("/")[-1]


class TagFilterPlanner:
    """
    Build the filter chains of a project

    Sub-predicates are applied in authored order, each one narrowing the
    output of the previous one; they are never reordered.
    """

    def __init__(self, files: WorkFiles) -> None:
        self._files = files

    def extraction_chain(self, project: ProjectDefinition) -> list[Step]:
        """Filter the latest history into the project's filtered file."""
        working = self._files.osh_project(project)
        filtered = self._files.osh_filtered(project)

        steps: list[Step] = []
        source = self._files.osh_updated
        for predicate in project.tag_filter_parts:
            steps.extend([
                Echo(f"   => Extract features from OSH PBF ({predicate})"),
                TagsFilter(input=source, predicate=predicate, output=working),
                Move(source=working, target=filtered),
            ])
            source = filtered
        return steps

    def snapshot_chain(self, project: ProjectDefinition, day: date) -> list[Step]:
        """
        Count features as of the end of `day`

        The history is sliced at the end of the day, narrowed by every
        sub-predicate but the last, and the last one is used as the count
        expression. A single sub-predicate gives a count-only chain.
        """
        stats = self._files.osm_stats(project)
        stats_filtered = self._files.osm_stats_filtered(project)
        *narrowing, last = project.tag_filter_parts

        steps: list[Step] = [
            Echo(f"Processing {format_day(day)}"),
            TimeFilter(input=self._files.osh_usefull(project), output=stats, timestamp=end_of_day(day)),
        ]
        for predicate in narrowing:
            steps.extend([
                TagsFilter(input=stats, predicate=predicate, output=stats_filtered, progress=False),
                Move(source=stats_filtered, target=stats),
            ])
        steps.append(TagsCount(input=stats, expression=count_expression(last), variable=COUNT_VARIABLE))
        return steps
