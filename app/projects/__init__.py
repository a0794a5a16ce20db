"""Project definitions"""

from app.projects.definition import (
    DataSource,
    ProjectDefinition,
    StatisticsConfig,
    split_tag_filter,
)
from app.projects.loader import load_projects

__all__ = [
    "DataSource",
    "ProjectDefinition",
    "StatisticsConfig",
    "split_tag_filter",
    "load_projects",
]
