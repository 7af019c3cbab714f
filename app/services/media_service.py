"""Operations exposed over the media catalog."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any

from pydantic import ValidationError

from ..config import Settings
from ..errors import InvalidMediaTypeError, PatchValidationError, UpstreamUnavailableError
from ..events import EventBus
from ..models import (
    MediaEvent,
    MediaSummary,
    MediaUpdate,
    RematchResult,
    ShowDetail,
    StreamableDetail,
)
from .catalog_store import CatalogStore
from .media_details import DetailAggregator
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

SEARCHABLE_TYPES = frozenset({"movie", "tv"})


class MediaService:
    """Entry point for every catalog operation the API exposes.

    Collaborators are injected so tests can substitute the store, the
    metadata provider or the event bus.
    """

    def __init__(
        self,
        settings: Settings,
        store: CatalogStore,
        events: EventBus,
        tmdb: TMDBClient | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._events = events
        self._tmdb = tmdb
        self._details = DetailAggregator(store)

    async def get_summary(
        self, media_id: int, *, timeout: float | None = None
    ) -> MediaSummary:
        return await asyncio.wait_for(
            self._details.get_summary(media_id), self._deadline(timeout)
        )

    async def get_detail(
        self, media_id: int, user_id: str, *, timeout: float | None = None
    ) -> StreamableDetail | ShowDetail:
        """Return playback detail, cancelling the whole walk past the deadline."""

        return await asyncio.wait_for(
            self._details.get_detail(media_id, user_id), self._deadline(timeout)
        )

    async def update_media(self, media_id: int, patch: Any) -> None:
        try:
            update = MediaUpdate.model_validate(patch)
        except ValidationError as exc:
            raise PatchValidationError(str(exc)) from exc
        changes = update.changes()
        if not changes:
            raise PatchValidationError("There are no changes to save")

        await self._store.update_media(media_id, changes)
        await self._events.publish(MediaEvent(event="media.updated", media_id=media_id))

    async def delete_media(self, media_id: int) -> None:
        await self._store.delete_media(media_id)
        await self._events.publish(MediaEvent(event="media.deleted", media_id=media_id))

    async def search_external(
        self, query: str, *, media_type: str, year: int | None = None
    ) -> list[dict[str, Any]]:
        """Search TMDB for rematch candidates, returned as TMDB ranks them."""

        if media_type not in SEARCHABLE_TYPES:
            raise InvalidMediaTypeError(f"Unsupported media type: {media_type}")
        if self._tmdb is None:
            raise UpstreamUnavailableError("TMDB search is not configured")

        candidates = await self._tmdb.search_many(
            query,
            content_type=media_type,  # type: ignore[arg-type]
            year=year,
            limit=self._settings.tmdb_search_limit,
        )
        return [asdict(candidate) for candidate in candidates]

    async def record_progress(self, media_id: int, user_id: str, offset: int) -> None:
        await self._store.set_progress(user_id, media_id, offset)
        logger.debug("Recorded progress %s for user %s on media %s", offset, user_id, media_id)

    async def rematch_media(self, media_id: int, external_id: int) -> RematchResult:
        """Re-associate a media item with another TMDB entry.

        Refreshing metadata needs the library scanner, which this service does
        not ship, so the request is refused without touching the catalog. Once
        available the refresh runs in the background and publishes
        ``media.metadata_changed``.
        """

        logger.info(
            "Rematch of media %s to TMDB id %s requested but unavailable",
            media_id,
            external_id,
        )
        return RematchResult.UNAVAILABLE

    def _deadline(self, timeout: float | None) -> float:
        return timeout if timeout is not None else self._settings.detail_timeout_seconds
