"""OSM notes crawler primitives."""

from app.crawlers.notes.client import OsmNotesClient
from app.crawlers.notes.contracts import (
    FetchResult,
    FetchState,
    NoteComment,
    NoteRecord,
    NotesContract,
)

__all__ = [
    "OsmNotesClient",
    "FetchState",
    "FetchResult",
    "NoteComment",
    "NoteRecord",
    "NotesContract",
]
