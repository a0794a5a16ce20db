"""Error types raised by the projects updater"""


class UpdaterError(Exception):
    """Base class for updater failures"""


class InvalidProjectError(UpdaterError):
    """A project definition cannot be used (bad dates, empty tag filter...)"""

    def __init__(self, project_id: str, reason: str):
        self.project_id = project_id
        self.reason = reason
        super().__init__(f"Invalid project {project_id}: {reason}")


class NotesQueryError(UpdaterError):
    """A note search query failed; aborts the notes aggregation of one project"""

    def __init__(self, term: str, error: str, status_code: int | None = None):
        self.term = term
        self.error = error
        self.status_code = status_code
        super().__init__(f"Notes search failed for term '{term}': {error}")


class ProjectInstallError(UpdaterError):
    """Projects or points could not be upserted; fatal for the whole run"""
