"""Search client for The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from ..config import Settings
from ..errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/w780"

SearchType = Literal["movie", "tv"]

# TMDB names the release date and its year filter differently per kind.
_DATE_FIELDS: dict[str, tuple[str, str]] = {
    "movie": ("release_date", "year"),
    "tv": ("first_air_date", "first_air_date_year"),
}


@dataclass(slots=True)
class TMDBSearchResult:
    """A rematch candidate as returned to API callers."""

    tmdb_id: int
    title: str
    overview: str | None
    poster_path: str | None
    backdrop_path: str | None
    year: int | None
    rating: float | None


class TMDBClient:
    """Looks up rematch candidates on TMDB."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB_API_KEY must be set to search TMDB")
        self._settings = settings
        self._client = http_client

    async def search_many(
        self,
        title: str,
        *,
        content_type: SearchType,
        year: int | None = None,
        limit: int = 15,
    ) -> list[TMDBSearchResult]:
        """Return up to ``limit`` candidates in the order TMDB ranks them.

        An error answer from TMDB yields no candidates; failing to reach TMDB
        at all raises :class:`UpstreamUnavailableError`.
        """

        try:
            response = await self._client.get(
                f"/search/{content_type}",
                params=self._search_params(title, content_type, year),
            )
        except httpx.HTTPError as exc:
            logger.warning("TMDB unreachable while searching %r: %s", title, exc)
            raise UpstreamUnavailableError("TMDB could not be reached") from exc

        if response.is_error:
            logger.warning(
                "TMDB rejected %s search for %r (%s): %s",
                content_type,
                title,
                response.status_code,
                response.text,
            )
            return []

        try:
            payload = response.json()
        except ValueError:
            logger.warning(
                "TMDB answered %s search for %r with a non-JSON body", content_type, title
            )
            return []
        results = payload.get("results") if isinstance(payload, dict) else None

        candidates = [
            self._to_result(entry, title, content_type)
            for entry in results or []
            if isinstance(entry, dict) and entry.get("id") is not None
        ]
        return candidates[:limit]

    def _search_params(
        self, title: str, content_type: SearchType, year: int | None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "api_key": self._settings.tmdb_api_key,
            "query": title,
            "page": 1,
            "include_adult": "false",
            "language": "en-US",
        }
        if year:
            params[_DATE_FIELDS[content_type][1]] = year
        return params

    @classmethod
    def _to_result(
        cls, entry: dict[str, Any], fallback_title: str, content_type: str
    ) -> TMDBSearchResult:
        rating = entry.get("vote_average")
        return TMDBSearchResult(
            tmdb_id=int(entry["id"]),
            title=entry.get("title") or entry.get("name") or fallback_title,
            overview=entry.get("overview") or None,
            poster_path=cls._image_url(entry.get("poster_path"), POSTER_BASE_URL),
            backdrop_path=cls._image_url(entry.get("backdrop_path"), BACKDROP_BASE_URL),
            year=cls._release_year(entry.get(_DATE_FIELDS[content_type][0])),
            rating=float(rating) if isinstance(rating, (int, float)) else None,
        )

    @staticmethod
    def _release_year(date_value: Any) -> int | None:
        """Year of a ``YYYY-MM-DD`` date, or ``None`` when TMDB left it blank."""

        if not isinstance(date_value, str):
            return None
        year, _, _ = date_value.partition("-")
        return int(year) if len(year) == 4 and year.isdigit() else None

    @staticmethod
    def _image_url(path: str | None, base_url: str) -> str | None:
        if not path:
            return None
        return path if path.startswith("http") else f"{base_url}{path}"
