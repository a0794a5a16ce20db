"""Project tables shared with the statistics website"""

from sqlalchemy import Column, Date, DateTime, Integer, PrimaryKeyConstraint, String

from app.config.database import Base


class Project(Base):
    """
    Project identity, date range and update checkpoint

    Maps to `pdm_projects`. `lastupdate_date` is the checkpoint written by the
    last step of each project's update plan.
    """
    __tablename__ = "pdm_projects"

    project = Column(String, primary_key=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    lastupdate_date = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Project {self.project} ({self.start_date} - {self.end_date})>"


class ProjectPoints(Base):
    """Points awarded per contribution kind, mapped to `pdm_projects_points`."""

    __tablename__ = "pdm_projects_points"

    project = Column(String, nullable=False)
    contrib = Column(String, nullable=False)
    points = Column(Integer, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("project", "contrib", name="pdm_projects_points_pkey"),
    )

    def __repr__(self):
        return f"<ProjectPoints {self.project}:{self.contrib}={self.points}>"
