"""OSM notes statistics"""

from app.services.notes.aggregator import (
    DayBucket,
    NoteAggregator,
    NotesAggregation,
    UserContribution,
    fold_notes,
)
from app.services.notes.boundary import Boundary
from app.services.notes.writer import NotesCsvWriter

__all__ = [
    "Boundary",
    "DayBucket",
    "NoteAggregator",
    "NotesAggregation",
    "NotesCsvWriter",
    "UserContribution",
    "fold_notes",
]
