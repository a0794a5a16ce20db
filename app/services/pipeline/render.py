"""Render typed plan steps to a bash script"""

import re
import shlex
from typing import Callable, Dict, List

from app.services.pipeline.steps import (
    CopyCsv,
    Echo,
    GetIdWithHistory,
    IfBoundary,
    IfFileExists,
    Move,
    Pipeline,
    Plan,
    ReadOshTimestamp,
    RemoveFiles,
    RunScript,
    Separator,
    Sql,
    SqlFile,
    Step,
    TagsCount,
    TagsFilter,
    TimeFilter,
    WarnIfTableEmpty,
)

INDENT = "\t"
SEPARATOR_LINE = "-------------------------------------------------------------------"
BOUNDARY_CHECK_SQL = "SELECT * FROM pdm_boundary LIMIT 1"
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def dquote(text: str) -> str:
    """Double-quote for bash, leaving `$var` expansion active"""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("`", "\\`")
    return f'"{escaped}"'


def sql_literal(value: str) -> str:
    """Quote a value as a SQL string literal"""
    return "'" + value.replace("'", "''") + "'"


def _shell_variable(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid shell variable name: {name!r}")
    return name


class PlanRenderer:
    """
    Turn a `Plan` into bash text

    Every step kind has one render method; nested conditionals indent their
    body with tabs. The output runs with `set -e`, so the first failing step
    aborts the whole plan.
    """

    def __init__(self, database_url: str):
        self.psql = f"psql -d {shlex.quote(database_url)}"
        self._renderers: Dict[type, Callable[..., List[str]]] = {
            Echo: self._echo,
            Separator: self._separator,
            Pipeline: self._pipeline,
            TagsFilter: self._tags_filter,
            Move: self._move,
            RemoveFiles: self._remove_files,
            GetIdWithHistory: self._get_id,
            TimeFilter: self._time_filter,
            TagsCount: self._tags_count,
            Sql: self._sql,
            SqlFile: self._sql_file,
            CopyCsv: self._copy_csv,
            RunScript: self._run_script,
            WarnIfTableEmpty: self._warn_if_empty,
            ReadOshTimestamp: self._read_osh_timestamp,
            IfBoundary: self._if_boundary,
            IfFileExists: self._if_file_exists,
        }

    def render(self, plan: Plan) -> str:
        lines = [
            "#!/bin/bash",
            "",
            "# Script for updating current projects",
            "# Generated automatically by pdm-projects-update",
        ]
        lines.extend(f"# {comment}" for comment in plan.header_comments)
        lines.extend(["", "set -e", ""])

        lines.extend(self.render_steps(plan.prerequisites))
        for project_plan in plan.projects:
            lines.append("")
            for stage_name, steps in project_plan.stages:
                lines.append(f"# [{project_plan.project_id}] {stage_name}")
                lines.extend(self.render_steps(steps))
        lines.append("")
        lines.extend(self.render_steps(plan.optimize))
        return "\n".join(lines) + "\n"

    def render_steps(self, steps: List[Step]) -> List[str]:
        lines: List[str] = []
        for step in steps:
            renderer = self._renderers.get(type(step))
            if renderer is None:
                raise TypeError(f"Unknown plan step: {step!r}")
            lines.extend(renderer(step))
        return lines

    def _nested(self, steps) -> List[str]:
        return [f"{INDENT}{line}" if line else line for line in self.render_steps(list(steps))]

    def _echo(self, step: Echo) -> List[str]:
        return [f"echo {shlex.quote(step.message)}"]

    def _separator(self, step: Separator) -> List[str]:
        return [f'echo "{SEPARATOR_LINE}"', 'echo ""']

    def _pipeline(self, step: Pipeline) -> List[str]:
        line = " | ".join(shlex.join(command) for command in step.commands)
        if step.output is not None:
            line += f" > {shlex.quote(step.output)}"
        return [line]

    def _tags_filter(self, step: TagsFilter) -> List[str]:
        argv = ["osmium", "tags-filter", step.input, "-R", step.predicate]
        if not step.progress:
            argv.append("--no-progress")
        argv.extend(["-O", "-o", step.output])
        return [shlex.join(argv)]

    def _move(self, step: Move) -> List[str]:
        return [shlex.join(["mv", step.source, step.target])]

    def _remove_files(self, step: RemoveFiles) -> List[str]:
        return [shlex.join(["rm", "-f", *step.paths])]

    def _get_id(self, step: GetIdWithHistory) -> List[str]:
        return [shlex.join([
            "osmium", "getid", "--id-osm-file", step.ids_file, "--with-history",
            step.source, "-O", "-o", step.output,
        ])]

    def _time_filter(self, step: TimeFilter) -> List[str]:
        return [shlex.join([
            "osmium", "time-filter", step.input, step.timestamp,
            "--no-progress", "-O", "-o", step.output, "-f", "osm.pbf",
        ])]

    def _tags_count(self, step: TagsCount) -> List[str]:
        var = _shell_variable(step.variable)
        count = shlex.join(["osmium", "tags-count", step.input, "--no-progress", "-F", "osm.pbf", step.expression])
        return [
            f"{var}=$({count} | cut -d$'\\t' -f 1 | paste -sd+ | bc)",
            f'if [ -z "${var}" ]; then',
            f'{INDENT}{var}="0"',
            "fi",
        ]

    def _sql(self, step: Sql) -> List[str]:
        quoted = dquote(step.statement) if step.expand else shlex.quote(step.statement)
        return [f"{self.psql} -c {quoted}"]

    def _sql_file(self, step: SqlFile) -> List[str]:
        variables = " ".join(f"-v {_shell_variable(name)}={shlex.quote(value)}" for name, value in step.variables)
        prefix = f"{self.psql} {variables}" if variables else self.psql
        return [f"{prefix} -f {shlex.quote(step.path)}"]

    def _copy_csv(self, step: CopyCsv) -> List[str]:
        columns = f" ({', '.join(step.columns)})" if step.columns else ""
        statement = f"\\COPY {step.table}{columns} FROM {sql_literal(step.path)} CSV"
        return [f"{self.psql} -c {shlex.quote(statement)}"]

    def _run_script(self, step: RunScript) -> List[str]:
        return [shlex.quote(step.path)]

    def _warn_if_empty(self, step: WarnIfTableEmpty) -> List[str]:
        var = _shell_variable(f"nb_{step.table}")
        query = shlex.quote(f"select count(*) from {step.table}")
        return [
            f"{var}=$({self.psql} -tAc {query} | sed 's/[^0-9]*//g')",
            f'if [[ -z "${var}" || "${var}" -lt 1 ]]; then',
            f"{INDENT}echo {shlex.quote('WARN: ' + step.warning)}",
            "fi",
        ]

    def _read_osh_timestamp(self, step: ReadOshTimestamp) -> List[str]:
        path = shlex.quote(step.path)
        return [
            f"if [ -f {path} ]; then",
            f"{INDENT}osh_timestamp=$(cat {path})",
            f'{INDENT}echo "OSH Timestamp: $osh_timestamp"',
            "else",
            f'{INDENT}echo "No OSH timestamp found"',
            "fi",
        ]

    def _if_boundary(self, step: IfBoundary) -> List[str]:
        check = f"{self.psql} -c {shlex.quote(BOUNDARY_CHECK_SQL)} > /dev/null 2>&1"
        return [f"if {check}; then", *self._nested(step.steps), "fi"]

    def _if_file_exists(self, step: IfFileExists) -> List[str]:
        return [f"if [ -f {shlex.quote(step.path)} ]; then", *self._nested(step.steps), "fi"]
