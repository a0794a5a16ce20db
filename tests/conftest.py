from __future__ import annotations

from typing import Any

import pytest

from app.projects.definition import ProjectDefinition
from app.services.notes.boundary import Boundary
from app.services.pipeline.paths import WorkFiles

SQUARE = {
    "type": "Polygon",
    "coordinates": [[[0.0, 0.0], [10.0, 0.0], [10.0, 10.0], [0.0, 10.0], [0.0, 0.0]]],
}


def build_project(**overrides: Any) -> ProjectDefinition:
    payload: dict[str, Any] = {
        "id": "2024-01_benches",
        "start_date": "2024-01-01",
        "end_date": "2024-01-31",
        "database": {"osmium_tag_filter": "nwr/leisure=picnic_table&nwr/amenity=bench"},
        "datasources": [],
        "statistics": {"count": False, "points": {"add": 3, "tag": 1}},
    }
    payload.update(overrides)
    return ProjectDefinition.from_dict(payload)


@pytest.fixture
def make_project():
    return build_project


@pytest.fixture
def square_boundary() -> Boundary:
    return Boundary(SQUARE)


@pytest.fixture
def work_files(tmp_path) -> WorkFiles:
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    return WorkFiles(
        work_dir=str(work_dir),
        osh_pbf_url="https://example.org/planet/france.osh.pbf",
        sql_dir="/srv/pdm/db",
        projects_dir="/srv/pdm/projects",
    )
