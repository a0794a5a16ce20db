"""Typed steps of the update plan, rendered to bash only by `render.py`."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class Echo:
    message: str


@dataclass(frozen=True)
class Separator:
    pass


@dataclass(frozen=True)
class Pipeline:
    """Commands joined with pipes, optionally redirected to a file."""

    commands: tuple[tuple[str, ...], ...]
    output: str | None = None


@dataclass(frozen=True)
class TagsFilter:
    """Apply one sub-predicate: `osmium tags-filter input -R predicate -o output`."""

    input: str
    predicate: str
    output: str
    progress: bool = True


@dataclass(frozen=True)
class Move:
    source: str
    target: str


@dataclass(frozen=True)
class RemoveFiles:
    paths: tuple[str, ...]


@dataclass(frozen=True)
class GetIdWithHistory:
    """Keep the full history of every object referenced by `ids_file`."""

    ids_file: str
    source: str
    output: str


@dataclass(frozen=True)
class TimeFilter:
    """Snapshot of a history file as of `timestamp`."""

    input: str
    output: str
    timestamp: str


@dataclass(frozen=True)
class TagsCount:
    """Count features matching `expression` into shell variable `variable` (0 if empty)."""

    input: str
    expression: str
    variable: str


@dataclass(frozen=True)
class Sql:
    """`psql -c`; `expand` lets the shell substitute `${var}` references."""

    statement: str
    expand: bool = False


@dataclass(frozen=True)
class SqlFile:
    """`psql -v name=value ... -f path`; values are passed verbatim to psql."""

    path: str
    variables: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class CopyCsv:
    """Client-side bulk load of a CSV file."""

    table: str
    path: str
    columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class RunScript:
    path: str


@dataclass(frozen=True)
class WarnIfTableEmpty:
    table: str
    warning: str


@dataclass(frozen=True)
class ReadOshTimestamp:
    """Load `osh_timestamp` from the file left by the history download."""

    path: str


@dataclass(frozen=True)
class IfBoundary:
    """Run `steps` only when the boundary table exists."""

    steps: tuple["Step", ...]


@dataclass(frozen=True)
class IfFileExists:
    path: str
    steps: tuple["Step", ...]


Step = Union[
    Echo,
    Separator,
    Pipeline,
    TagsFilter,
    Move,
    RemoveFiles,
    GetIdWithHistory,
    TimeFilter,
    TagsCount,
    Sql,
    SqlFile,
    CopyCsv,
    RunScript,
    WarnIfTableEmpty,
    ReadOshTimestamp,
    IfBoundary,
    IfFileExists,
]


@dataclass
class ProjectPlan:
    """Ordered steps of one project, grouped by stage name."""

    project_id: str
    stages: list[tuple[str, list[Step]]] = field(default_factory=list)

    def add(self, stage: str, steps: list[Step]) -> None:
        if steps:
            self.stages.append((stage, steps))

    @property
    def stage_names(self) -> list[str]:
        return [name for name, _ in self.stages]

    @property
    def steps(self) -> list[Step]:
        return [step for _, steps in self.stages for step in steps]


@dataclass
class Plan:
    """Whole update plan: prerequisites, projects in order, global optimize."""

    prerequisites: list[Step] = field(default_factory=list)
    projects: list[ProjectPlan] = field(default_factory=list)
    optimize: list[Step] = field(default_factory=list)
    header_comments: list[str] = field(default_factory=list)
