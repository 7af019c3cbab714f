"""Pydantic models describing catalog payloads."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .db_models import MAX_SQL_INTEGER, MediaType
from .utils import utcnow


class VersionInfo(BaseModel):
    """A playable file version of a media item."""

    id: int
    file: str
    display_name: str


class MediaSummary(BaseModel):
    """Top level description of a catalog entry."""

    id: int
    library_id: int
    name: str
    description: str | None = None
    rating: int | None = None
    year: int | None = None
    added: datetime | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    media_type: MediaType | None = None
    genres: list[str] = Field(default_factory=list)
    # Raw seconds of the last file; kept next to duration_pretty for older clients.
    duration: int = 0
    duration_pretty: str


class StreamableDetail(BaseModel):
    """Playback detail of a movie or a single episode."""

    progress: int = 0
    versions: list[VersionInfo] = Field(default_factory=list)


class EpisodeDetail(BaseModel):
    id: int
    progress: int = 0
    episode_number: int
    description: str | None = None
    rating: int | None = None
    backdrop: str | None = None
    versions: list[VersionInfo] = Field(default_factory=list)


class SeasonDetail(BaseModel):
    id: int
    season_number: int
    added: datetime | None = None
    poster: str | None = None
    episodes: list[EpisodeDetail] = Field(default_factory=list)


class ShowDetail(BaseModel):
    """Nested season and episode detail of a TV show."""

    seasons: list[SeasonDetail] = Field(default_factory=list)


class MediaUpdate(BaseModel):
    """Partial update of the editable catalog fields of a media item."""

    model_config = ConfigDict(extra="forbid")

    library_id: int | None = Field(default=None, ge=0, le=MAX_SQL_INTEGER)
    name: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    rating: int | None = Field(default=None, ge=0, le=100)
    year: int | None = Field(default=None, ge=1800, le=3000)
    added: datetime | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    media_type: MediaType | None = None

    @model_validator(mode="after")
    def _reject_null_required_fields(self) -> "MediaUpdate":
        for field in ("library_id", "name"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} may not be null")
        return self

    def changes(self) -> dict[str, Any]:
        """Return only the fields the caller actually sent."""

        return self.model_dump(exclude_unset=True)


class RematchResult(str, enum.Enum):
    """Outcome of a request to rematch a media item to external metadata."""

    ACCEPTED = "accepted"
    UNAVAILABLE = "unavailable"


class MediaEvent(BaseModel):
    """Notification published to event subscribers."""

    event: str
    media_id: int
    timestamp: datetime = Field(default_factory=utcnow)
