"""Summary and detail aggregation over a seeded catalog."""

from __future__ import annotations

import asyncio

import pytest

from app.db_models import Media, MediaFile, MediaType
from app.errors import MediaNotFoundError
from app.models import ShowDetail, StreamableDetail
from app.services.catalog_store import CatalogStore
from app.services.media_details import (
    DetailAggregator,
    Show,
    Streamable,
    classify,
    list_versions,
)

from catalog_fixtures import (
    MOVIE_ID,
    PILOT_ID,
    SEASON_ONE_ID,
    SEASON_TWO_ID,
    SECOND_EPISODE_ID,
    SHOW_ID,
    UNPROBED_EPISODE_ID,
    UNTYPED_ID,
    add_file,
    create_database,
    seed_catalog,
)


class FlakyCatalogStore(CatalogStore):
    """Catalog store failing lookups for selected seasons and media."""

    def __init__(self, session_factory, *, broken_seasons=(), broken_files=()):
        super().__init__(session_factory)
        self.broken_seasons = set(broken_seasons)
        self.broken_files = set(broken_files)

    async def get_episodes_of_season(self, season_id: int):
        if season_id in self.broken_seasons:
            raise RuntimeError(f"season {season_id} unreadable")
        return await super().get_episodes_of_season(season_id)

    async def get_files(self, media_id: int):
        if media_id in self.broken_files:
            raise RuntimeError(f"files of {media_id} unreadable")
        return await super().get_files(media_id)


def test_movie_summary_reports_last_file_duration(tmp_path) -> None:
    async def runner() -> None:
        database = await create_database(tmp_path / "movie.db")
        await seed_catalog(database)
        aggregator = DetailAggregator(CatalogStore(database.session_factory))

        summary = await aggregator.get_summary(MOVIE_ID)

        assert summary.duration == 7230
        assert summary.duration_pretty == "120 min"
        assert summary.media_type is MediaType.MOVIE
        assert summary.genres == ["Drama", "Sci-Fi"]
        assert summary.name == "Arrival"
        assert summary.poster_path == "/posters/arrival.jpg"
        await database.dispose()

    asyncio.run(runner())


def test_summary_uses_last_stored_file_even_when_unprobed(tmp_path) -> None:
    """The newest file is authoritative; its missing duration counts as zero."""

    async def runner() -> None:
        database = await create_database(tmp_path / "versions.db")
        await seed_catalog(database)
        await add_file(
            database,
            id=103,
            media_id=MOVIE_ID,
            library_id=1,
            target_file="/movies/Arrival (2016) - remux.mkv",
        )
        aggregator = DetailAggregator(CatalogStore(database.session_factory))

        summary = await aggregator.get_summary(MOVIE_ID)

        assert summary.duration == 0
        assert summary.duration_pretty == "0 min"
        await database.dispose()

    asyncio.run(runner())


def test_untyped_media_without_files_reports_zero_duration(tmp_path) -> None:
    async def runner() -> None:
        database = await create_database(tmp_path / "untyped.db")
        await seed_catalog(database)
        aggregator = DetailAggregator(CatalogStore(database.session_factory))

        summary = await aggregator.get_summary(UNTYPED_ID)

        assert summary.media_type is None
        assert summary.duration == 0
        assert summary.duration_pretty == "0 min"
        assert summary.genres == []
        await database.dispose()

    asyncio.run(runner())


def test_unreadable_files_do_not_fail_summary(tmp_path) -> None:
    async def runner() -> None:
        database = await create_database(tmp_path / "unreadable.db")
        await seed_catalog(database)
        store = FlakyCatalogStore(database.session_factory, broken_files={MOVIE_ID})

        summary = await DetailAggregator(store).get_summary(MOVIE_ID)

        assert summary.duration == 0
        assert summary.duration_pretty == "0 min"
        await database.dispose()

    asyncio.run(runner())


def test_show_summary_counts_every_episode(tmp_path) -> None:
    """1800s + 2400s rounds down to one hour; the unprobed episode still counts."""

    async def runner() -> None:
        database = await create_database(tmp_path / "show.db")
        await seed_catalog(database)
        aggregator = DetailAggregator(CatalogStore(database.session_factory))

        summary = await aggregator.get_summary(SHOW_ID)

        assert summary.duration_pretty == "3 episodes | 1 hr"
        assert summary.duration == 0
        assert summary.genres == ["Drama"]
        await database.dispose()

    asyncio.run(runner())


def test_show_summary_skips_episodes_with_unreadable_files(tmp_path) -> None:
    async def runner() -> None:
        database = await create_database(tmp_path / "show-flaky.db")
        await seed_catalog(database)
        store = FlakyCatalogStore(database.session_factory, broken_files={PILOT_ID})

        summary = await DetailAggregator(store).get_summary(SHOW_ID)

        # Only the 2400s episode remains in the sum; all three are counted.
        assert summary.duration_pretty == "3 episodes | 0 hr"
        await database.dispose()

    asyncio.run(runner())


def test_missing_media_raises_not_found(tmp_path) -> None:
    async def runner() -> None:
        database = await create_database(tmp_path / "missing.db")
        await seed_catalog(database)
        aggregator = DetailAggregator(CatalogStore(database.session_factory))

        with pytest.raises(MediaNotFoundError):
            await aggregator.get_summary(999)
        with pytest.raises(MediaNotFoundError):
            await aggregator.get_detail(999, "9")
        await database.dispose()

    asyncio.run(runner())


def test_movie_detail_merges_progress_and_versions(tmp_path) -> None:
    async def runner() -> None:
        database = await create_database(tmp_path / "movie-detail.db")
        await seed_catalog(database)
        store = CatalogStore(database.session_factory)
        await store.set_progress("9", MOVIE_ID, 300)
        aggregator = DetailAggregator(store)

        detail = await aggregator.get_detail(MOVIE_ID, "9")
        other_user = await aggregator.get_detail(MOVIE_ID, "7")

        assert isinstance(detail, StreamableDetail)
        assert detail.progress == 300
        assert other_user.progress == 0
        assert [version.model_dump() for version in detail.versions] == [
            {
                "id": 100,
                "file": "/movies/Arrival (2016).mkv",
                "display_name": "hevc - eac3 - 2160p - Library 1",
            }
        ]
        await database.dispose()

    asyncio.run(runner())


def test_show_detail_nests_seasons_and_episodes(tmp_path) -> None:
    async def runner() -> None:
        database = await create_database(tmp_path / "show-detail.db")
        await seed_catalog(database)
        store = CatalogStore(database.session_factory)
        await store.set_progress("9", SECOND_EPISODE_ID, 120)

        detail = await DetailAggregator(store).get_detail(SHOW_ID, "9")

        assert isinstance(detail, ShowDetail)
        assert [season.id for season in detail.seasons] == [SEASON_ONE_ID, SEASON_TWO_ID]
        assert [season.season_number for season in detail.seasons] == [1, 2]
        assert detail.seasons[1].poster == "/posters/dark-s2.jpg"

        pilot, second = detail.seasons[0].episodes
        assert pilot.id == PILOT_ID
        assert pilot.episode_number == 1
        assert pilot.description == "A boy goes missing"
        assert pilot.rating == 82
        assert pilot.backdrop == "/backdrops/secrets.jpg"
        assert pilot.progress == 0
        assert pilot.versions[0].display_name == "h264 - aac - 1080p - Library 2"
        assert second.progress == 120
        assert second.versions[0].display_name == (
            "Unknown VC - Unknown AC - Unknown res - Library 2"
        )

        (unprobed,) = detail.seasons[1].episodes
        assert unprobed.id == UNPROBED_EPISODE_ID
        assert unprobed.versions == []
        await database.dispose()

    asyncio.run(runner())


def test_show_detail_omits_season_whose_episodes_fail(tmp_path) -> None:
    async def runner() -> None:
        database = await create_database(tmp_path / "show-omit.db")
        await seed_catalog(database)
        store = FlakyCatalogStore(
            database.session_factory, broken_seasons={SEASON_ONE_ID}
        )

        detail = await DetailAggregator(store).get_detail(SHOW_ID, "9")

        assert [season.id for season in detail.seasons] == [SEASON_TWO_ID]
        await database.dispose()

    asyncio.run(runner())


def test_show_detail_omits_episode_whose_files_fail(tmp_path) -> None:
    async def runner() -> None:
        database = await create_database(tmp_path / "episode-omit.db")
        await seed_catalog(database)
        store = FlakyCatalogStore(database.session_factory, broken_files={PILOT_ID})

        detail = await DetailAggregator(store).get_detail(SHOW_ID, "9")

        assert [episode.id for episode in detail.seasons[0].episodes] == [
            SECOND_EPISODE_ID
        ]
        assert len(detail.seasons) == 2
        await database.dispose()

    asyncio.run(runner())


def test_classify_dispatches_only_tv_to_show() -> None:
    for media_type in (MediaType.MOVIE, MediaType.EPISODE, MediaType.UNKNOWN, None):
        media = Media(id=1, library_id=1, name="x", media_type=media_type)
        assert isinstance(classify(media), Streamable)

    show = Media(id=2, library_id=1, name="y", media_type=MediaType.TV)
    assert isinstance(classify(show), Show)


def test_list_versions_keeps_storage_order() -> None:
    files = [
        MediaFile(id=5, library_id=3, target_file="/b.mkv", codec="av1"),
        MediaFile(id=2, library_id=3, target_file="/a.mkv", audio="opus"),
    ]

    versions = list_versions(files)

    assert [version.id for version in versions] == [5, 2]
    assert versions[0].display_name == "av1 - Unknown AC - Unknown res - Library 3"
    assert versions[1].display_name == "Unknown VC - opus - Unknown res - Library 3"
