"""Database models"""

from app.models.project import Project, ProjectPoints

__all__ = [
    "Project",
    "ProjectPoints",
]
