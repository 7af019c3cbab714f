"""Async access to the persisted media catalog."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..db_models import (
    MAX_SQL_INTEGER,
    MIN_SQL_INTEGER,
    Episode,
    Genre,
    Media,
    MediaFile,
    Progress,
    Season,
    genre_media,
)
from ..errors import MediaNotFoundError
from ..utils import utcnow

logger = logging.getLogger(__name__)


def _storable(media_id: int) -> bool:
    return MIN_SQL_INTEGER <= media_id <= MAX_SQL_INTEGER


def _require_storable(media_id: int) -> None:
    # The driver cannot bind such ids at all; no row can carry them.
    if not _storable(media_id):
        raise MediaNotFoundError(media_id)


class CatalogStore:
    """Read and write catalog records.

    Every call opens its own session so independent lookups can be awaited
    concurrently; a semaphore keeps a large show walk from exhausting the
    connection pool.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_concurrency: int = 8,
    ) -> None:
        self._session_factory = session_factory
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def get_media(self, media_id: int) -> Media:
        _require_storable(media_id)
        async with self._semaphore, self._session_factory() as session:
            media = await session.get(Media, media_id)
        if media is None:
            raise MediaNotFoundError(media_id)
        return media

    async def get_files(self, media_id: int) -> list[MediaFile]:
        """Return the files of a media item in storage order."""

        stmt = (
            select(MediaFile)
            .where(MediaFile.media_id == media_id)
            .order_by(MediaFile.id)
        )
        async with self._semaphore, self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_genres(self, media_id: int) -> list[str]:
        stmt = (
            select(Genre.name)
            .join(genre_media, genre_media.c.genre_id == Genre.id)
            .where(genre_media.c.media_id == media_id)
            .order_by(Genre.name)
        )
        async with self._semaphore, self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_seasons(self, show_id: int) -> list[Season]:
        stmt = (
            select(Season)
            .where(Season.tvshow_id == show_id)
            .order_by(Season.season_number, Season.id)
        )
        async with self._semaphore, self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_episodes_of_season(self, season_id: int) -> list[Episode]:
        stmt = (
            select(Episode)
            .options(selectinload(Episode.media))
            .where(Episode.season_id == season_id)
            .order_by(Episode.episode, Episode.id)
        )
        async with self._semaphore, self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_episodes_of_show(self, show_id: int) -> list[Episode]:
        """Return every episode of every season of a show."""

        stmt = (
            select(Episode)
            .options(selectinload(Episode.media))
            .join(Season, Season.id == Episode.season_id)
            .where(Season.tvshow_id == show_id)
            .order_by(Season.season_number, Episode.episode, Episode.id)
        )
        async with self._semaphore, self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_media(self, media_id: int, changes: Mapping[str, Any]) -> None:
        _require_storable(media_id)
        stmt = update(Media).where(Media.id == media_id).values(**changes)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                raise MediaNotFoundError(media_id)
            await session.commit()
        logger.info("Updated media %s (%s)", media_id, ", ".join(sorted(changes)))

    async def delete_media(self, media_id: int) -> None:
        _require_storable(media_id)
        async with self._session_factory() as session:
            result = await session.execute(delete(Media).where(Media.id == media_id))
            if result.rowcount == 0:
                await session.rollback()
                raise MediaNotFoundError(media_id)
            await session.commit()
        logger.info("Deleted media %s", media_id)

    async def get_progress(self, user_id: str, media_id: int) -> int | None:
        if not _storable(media_id):
            return None
        async with self._semaphore, self._session_factory() as session:
            progress = await session.get(Progress, (user_id, media_id))
        return progress.offset if progress is not None else None

    async def set_progress(self, user_id: str, media_id: int, offset: int) -> None:
        """Insert or overwrite the progress row of ``(user_id, media_id)``."""

        _require_storable(media_id)
        async with self._session_factory() as session:
            if await session.get(Media, media_id) is None:
                raise MediaNotFoundError(media_id)
            await session.merge(
                Progress(
                    user_id=user_id,
                    media_id=media_id,
                    offset=offset,
                    updated_at=utcnow(),
                )
            )
            await session.commit()
