"""SQLAlchemy ORM models backing the media catalog."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .utils import utcnow

# Range of a signed 64-bit SQL INTEGER; larger ids cannot name a stored row.
MIN_SQL_INTEGER = -(2**63)
MAX_SQL_INTEGER = 2**63 - 1


class MediaType(str, enum.Enum):
    """Kind of catalog entry. ``None`` on a row means the kind was never set."""

    MOVIE = "movie"
    TV = "tv"
    EPISODE = "episode"
    UNKNOWN = "unknown"


genre_media = Table(
    "genre_media",
    Base.metadata,
    Column(
        "genre_id",
        Integer,
        ForeignKey("genres.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "media_id",
        Integer,
        ForeignKey("media.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Media(Base):
    """A movie, show or episode stored in a library."""

    __tablename__ = "media"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    library_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    added: Mapped[datetime | None] = mapped_column(
        DateTime, default=utcnow, nullable=True
    )
    poster_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    backdrop_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    media_type: Mapped[MediaType | None] = mapped_column(
        Enum(MediaType, values_callable=lambda kinds: [kind.value for kind in kinds]),
        nullable=True,
    )

    genres: Mapped[list["Genre"]] = relationship(
        secondary=genre_media, back_populates="media"
    )


class Genre(Base):
    __tablename__ = "genres"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), unique=True)

    media: Mapped[list[Media]] = relationship(
        secondary=genre_media, back_populates="genres"
    )


class MediaFile(Base):
    """A single encoded version of a media item on disk."""

    __tablename__ = "media_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("media.id", ondelete="SET NULL"), nullable=True, index=True
    )
    library_id: Mapped[int] = mapped_column(Integer)
    target_file: Mapped[str] = mapped_column(String(2000))
    codec: Mapped[str | None] = mapped_column(String(50), nullable=True)
    audio: Mapped[str | None] = mapped_column(String(50), nullable=True)
    original_resolution: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Season(Base):
    __tablename__ = "seasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    season_number: Mapped[int] = mapped_column(Integer)
    tvshow_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media.id", ondelete="CASCADE"), index=True
    )
    added: Mapped[datetime | None] = mapped_column(
        DateTime, default=utcnow, nullable=True
    )
    poster: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class Episode(Base):
    """Episode row sharing its primary key with the episode's own media row."""

    __tablename__ = "episodes"

    id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media.id", ondelete="CASCADE"), primary_key=True
    )
    season_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("seasons.id", ondelete="CASCADE"), index=True
    )
    episode: Mapped[int] = mapped_column(Integer)

    media: Mapped[Media] = relationship()


class Progress(Base):
    """Playback offset of one user for one media item."""

    __tablename__ = "progress"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    media_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media.id", ondelete="CASCADE"), primary_key=True
    )
    offset: Mapped[int] = mapped_column("offset_seconds", Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )
