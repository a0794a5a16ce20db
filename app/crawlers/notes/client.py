"""Async client for the OSM notes search API."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from app.config.settings import settings
from app.crawlers.notes.contracts import FetchResult, FetchState, NoteRecord, NotesContract

logger = logging.getLogger(__name__)

SEARCH_PATH = "/api/0.6/notes/search.json"
# closed=-1 asks for notes of any status, however long ago they were closed
ANY_STATUS = -1


class OsmNotesClient:
    """Thin httpx wrapper returning `FetchResult` contracts; no retry."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        limit: int | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._limit = limit or settings.NOTES_SEARCH_LIMIT
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.OSM_URL).rstrip("/"),
            timeout=timeout_seconds or settings.HTTP_TIMEOUT_SECONDS,
            headers={"User-Agent": settings.USER_AGENT},
            transport=transport,
        )

    async def __aenter__(self) -> OsmNotesClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def search_notes(self, term: str, *, from_date: date) -> NotesContract:
        """Search notes matching a free-text term, created on/after `from_date`."""
        params: dict[str, Any] = {
            "q": term,
            "limit": self._limit,
            "closed": ANY_STATUS,
            "from": from_date.isoformat(),
        }
        try:
            response = await self._client.get(SEARCH_PATH, params=params)
        except httpx.HTTPError as exc:
            return FetchResult(state=FetchState.FAILED, error=f"{exc.__class__.__name__}: {exc}")

        if response.status_code >= 400:
            return FetchResult(
                state=FetchState.FAILED,
                status_code=response.status_code,
                error=f"HTTP {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as exc:
            return FetchResult(
                state=FetchState.FAILED,
                status_code=response.status_code,
                error=f"Invalid JSON: {exc}",
            )

        features = payload.get("features") if isinstance(payload, dict) else None
        notes = [
            note
            for note in (NoteRecord.from_feature(f) for f in features or [] if isinstance(f, dict))
            if note is not None
        ]
        logger.debug(f"Notes search '{term}' returned {len(notes)} note(s)")
        state = FetchState.OK if notes else FetchState.EMPTY
        return FetchResult(state=state, data=notes, status_code=response.status_code)
