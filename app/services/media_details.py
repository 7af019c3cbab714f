"""Aggregation of catalog records into summary and detail views."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Union

from ..db_models import Episode, Media, MediaFile, MediaType, Season
from ..models import (
    EpisodeDetail,
    MediaSummary,
    SeasonDetail,
    ShowDetail,
    StreamableDetail,
    VersionInfo,
)
from ..utils import gather_successes, pretty_minutes, pretty_show_length
from .catalog_store import CatalogStore

logger = logging.getLogger(__name__)


def list_versions(files: Sequence[MediaFile]) -> list[VersionInfo]:
    """Describe every stored file of a media item, keeping storage order."""

    return [
        VersionInfo(
            id=media_file.id,
            file=media_file.target_file,
            display_name=(
                f"{media_file.codec or 'Unknown VC'} - "
                f"{media_file.audio or 'Unknown AC'} - "
                f"{media_file.original_resolution or 'Unknown res'} - "
                f"Library {media_file.library_id}"
            ),
        )
        for media_file in files
    ]


def last_file_duration(files: Sequence[MediaFile]) -> int | None:
    """Return the duration of the authoritative (last stored) file."""

    if not files:
        return None
    return files[-1].duration


async def resolve_progress(store: CatalogStore, user_id: str, media_id: int) -> int:
    """Return the stored playback offset, or ``0`` when none was recorded."""

    offset = await store.get_progress(user_id, media_id)
    return offset or 0


@dataclass(slots=True)
class Streamable:
    """A movie, an episode, or an item whose kind was never set."""

    media: Media

    async def duration_pretty(self, store: CatalogStore, raw_duration: int) -> str:
        return pretty_minutes(raw_duration)

    async def detail(self, store: CatalogStore, user_id: str) -> StreamableDetail:
        files = await store.get_files(self.media.id)
        return StreamableDetail(
            progress=await resolve_progress(store, user_id, self.media.id),
            versions=list_versions(files),
        )


@dataclass(slots=True)
class Show:
    """A TV show owning seasons of episodes."""

    media: Media

    async def duration_pretty(self, store: CatalogStore, raw_duration: int) -> str:
        # Shows are summarised from their episodes, not from their own files.
        episodes = await store.get_episodes_of_show(self.media.id)
        file_lists = await gather_successes(
            (store.get_files(episode.id) for episode in episodes),
            logger=logger,
            description=f"episode files of show {self.media.id}",
        )
        total = sum(
            duration
            for duration in (last_file_duration(files) for files in file_lists)
            if duration is not None
        )
        return pretty_show_length(len(episodes), total)

    async def detail(self, store: CatalogStore, user_id: str) -> ShowDetail:
        seasons = await store.get_seasons(self.media.id)
        season_details = await gather_successes(
            (self._season_detail(store, season, user_id) for season in seasons),
            logger=logger,
            description=f"season of show {self.media.id}",
        )
        return ShowDetail(seasons=season_details)

    async def _season_detail(
        self, store: CatalogStore, season: Season, user_id: str
    ) -> SeasonDetail:
        episodes = await store.get_episodes_of_season(season.id)
        episode_details = await gather_successes(
            (self._episode_detail(store, episode, user_id) for episode in episodes),
            logger=logger,
            description=f"episode of season {season.id}",
        )
        return SeasonDetail(
            id=season.id,
            season_number=season.season_number,
            added=season.added,
            poster=season.poster,
            episodes=episode_details,
        )

    @staticmethod
    async def _episode_detail(
        store: CatalogStore, episode: Episode, user_id: str
    ) -> EpisodeDetail:
        files = await store.get_files(episode.id)
        return EpisodeDetail(
            id=episode.id,
            progress=await resolve_progress(store, user_id, episode.id),
            episode_number=episode.episode,
            description=episode.media.description,
            rating=episode.media.rating,
            backdrop=episode.media.backdrop_path,
            versions=list_versions(files),
        )


CatalogEntry = Union[Streamable, Show]


def classify(media: Media) -> CatalogEntry:
    """Pick the variant that knows how to describe ``media``."""

    if media.media_type == MediaType.TV:
        return Show(media)
    return Streamable(media)


class DetailAggregator:
    """Builds the summary and detail views of catalog entries."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    async def get_summary(self, media_id: int) -> MediaSummary:
        media = await self._store.get_media(media_id)
        entry = classify(media)
        genres = await self._store.get_genres(media.id)
        duration = await self._raw_duration(media.id)
        duration_pretty = await entry.duration_pretty(self._store, duration)
        return MediaSummary(
            id=media.id,
            library_id=media.library_id,
            name=media.name,
            description=media.description,
            rating=media.rating,
            year=media.year,
            added=media.added,
            poster_path=media.poster_path,
            backdrop_path=media.backdrop_path,
            media_type=media.media_type,
            genres=genres,
            duration=duration,
            duration_pretty=duration_pretty,
        )

    async def get_detail(
        self, media_id: int, user_id: str
    ) -> StreamableDetail | ShowDetail:
        media = await self._store.get_media(media_id)
        return await classify(media).detail(self._store, user_id)

    async def _raw_duration(self, media_id: int) -> int:
        """Seconds of the item's last file; ``0`` when unknown."""

        try:
            files = await self._store.get_files(media_id)
        except Exception as exc:
            logger.warning("File lookup failed for media %s: %s", media_id, exc)
            return 0
        return last_file_duration(files) or 0
