"""Static project definitions loaded from project info files."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from app.utils.exceptions import InvalidProjectError
from app.utils.helpers import parse_day

NOTES_SOURCE = "notes"
NOTE_CONTRIBUTION = "note"
DEFAULT_NOTE_POINTS = 1
TAG_FILTER_SEPARATOR = "&"
# Ids end up in file names, sed expressions and shell-expanded SQL
PROJECT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class DataSourcePayload(BaseModel):
    """Raw `datasources[]` entry; unknown keys (osmose items...) are ignored."""

    source: str
    terms: list[str] = []

    @field_validator("source")
    @classmethod
    def validate_source(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("source is required")
        return cleaned

    @field_validator("terms", mode="before")
    @classmethod
    def validate_terms(cls, value: Any) -> list[str]:
        return [str(term) for term in value or [] if str(term).strip()]


class StatisticsPayload(BaseModel):
    count: bool = False
    points: dict[str, int | None] = {}

    @field_validator("points", mode="before")
    @classmethod
    def default_points(cls, value: Any) -> Any:
        return value or {}


class DatabasePayload(BaseModel):
    osmium_tag_filter: str = ""

    @field_validator("osmium_tag_filter", mode="before")
    @classmethod
    def default_filter(cls, value: Any) -> Any:
        return value or ""


class ProjectInfoPayload(BaseModel):
    """Validated schema of a project `info.json` file."""

    id: str
    start_date: date
    end_date: date
    database: DatabasePayload = DatabasePayload()
    datasources: list[DataSourcePayload] = []
    statistics: StatisticsPayload = StatisticsPayload()

    @field_validator("id")
    @classmethod
    def validate_id(cls, value: str) -> str:
        cleaned = value.strip()
        if not PROJECT_ID_PATTERN.match(cleaned):
            raise ValueError("id must only contain letters, digits, _ . -")
        return cleaned

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_day(cls, value: Any) -> date:
        day = parse_day(value)
        if day is None:
            raise ValueError(f"invalid day {value!r}")
        return day

    @field_validator("datasources", mode="before")
    @classmethod
    def drop_unnamed_sources(cls, value: Any) -> list[Any]:
        return [raw for raw in value or [] if isinstance(raw, dict) and raw.get("source")]

    @field_validator("database", "statistics", mode="before")
    @classmethod
    def default_section(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class DataSource:
    """One external data source declared by a project."""

    source: str
    terms: tuple[str, ...] = ()

    @property
    def is_notes(self) -> bool:
        return self.source == NOTES_SOURCE


@dataclass(frozen=True)
class StatisticsConfig:
    """Counting flag and points per contribution kind."""

    count: bool = False
    points: dict[str, int] = field(default_factory=dict)

    def points_for(self, contribution: str) -> int | None:
        return self.points.get(contribution)

    @property
    def note_points(self) -> int:
        """Points for a note contribution, 1 when the project leaves it unset."""
        value = self.points_for(NOTE_CONTRIBUTION)
        return DEFAULT_NOTE_POINTS if value is None else value


@dataclass(frozen=True)
class ProjectDefinition:
    """A monitored project, immutable for the duration of a run."""

    id: str
    start_date: date
    end_date: date
    tag_filter: str
    datasources: tuple[DataSource, ...] = ()
    statistics: StatisticsConfig = field(default_factory=StatisticsConfig)

    @property
    def short_name(self) -> str:
        """Last `_` chunk of the id, used for work files and the project table."""
        return self.id.split("_")[-1]

    @property
    def table_name(self) -> str:
        return f"pdm_project_{self.short_name}"

    @property
    def tag_filter_parts(self) -> list[str]:
        return split_tag_filter(self.id, self.tag_filter)

    @property
    def notes_sources(self) -> list[DataSource]:
        return [source for source in self.datasources if source.is_notes]

    @property
    def has_notes(self) -> bool:
        return bool(self.notes_sources)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ProjectDefinition:
        """Build a definition from an `info.json` payload."""
        try:
            info = ProjectInfoPayload.model_validate(payload)
        except ValidationError as e:
            project_id = payload.get("id") if isinstance(payload, dict) else None
            reasons = "; ".join(
                f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}" for error in e.errors()
            )
            raise InvalidProjectError(str(project_id or "<unknown>"), reasons) from e

        # Validated eagerly so a bad filter is caught at load time
        split_tag_filter(info.id, info.database.osmium_tag_filter)

        for raw in info.datasources:
            if raw.source == NOTES_SOURCE and not raw.terms:
                raise InvalidProjectError(info.id, "notes source without search terms")

        points = {kind: value for kind, value in info.statistics.points.items() if value is not None}
        return cls(
            id=info.id,
            start_date=info.start_date,
            end_date=info.end_date,
            tag_filter=info.database.osmium_tag_filter,
            datasources=tuple(DataSource(source=raw.source, terms=tuple(raw.terms)) for raw in info.datasources),
            statistics=StatisticsConfig(count=info.statistics.count, points=points),
        )


def split_tag_filter(project_id: str, expression: str) -> list[str]:
    """
    Split a compound osmium tag filter into its sub-predicates

    Authored order is kept: it only matters for performance and the author
    puts the narrowest predicate first.

    Raises:
        InvalidProjectError: if no sub-predicate remains
    """
    parts = [part.strip() for part in expression.split(TAG_FILTER_SEPARATOR)]
    parts = [part for part in parts if part]
    if not parts:
        raise InvalidProjectError(project_id, "empty osmium tag filter")
    return parts
