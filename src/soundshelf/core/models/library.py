"""Library models: Track."""

from typing import Any, Dict, Optional

from sqlalchemy import JSON, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from soundshelf.core.models.base import Base, TimestampMixin


class Track(Base, TimestampMixin):
    """One audio file on disk together with the tags read from it.

    ``path`` is the upsert key: rescans update the row in place so ``id``
    stays stable for as long as the file exists. ``modified_time`` is the
    file's mtime at the last successful extraction and drives change
    detection. ``created_time`` is the file's creation time as first seen and
    is never rewritten by an update.
    """

    __tablename__ = "tracks"
    __table_args__ = (
        Index("idx_track_artist_album", "artist", "album"),
        Index("idx_track_album_disc_track", "album", "disc_number", "track_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    path: Mapped[str] = mapped_column(String, unique=True, index=True)
    extension: Mapped[str] = mapped_column(String, default="", index=True)

    title: Mapped[str] = mapped_column(String, default="")
    artist: Mapped[str] = mapped_column(String, default="")
    album: Mapped[str] = mapped_column(String, default="", index=True)
    album_artist: Mapped[str] = mapped_column(String, default="", index=True)
    genre: Mapped[str] = mapped_column(String, default="", index=True)
    publisher: Mapped[str] = mapped_column(String, default="")
    catalog_number: Mapped[str] = mapped_column(String, default="")
    disc_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    track_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    audio_bitrate: Mapped[int] = mapped_column(Integer, default=0)
    overall_bitrate: Mapped[int] = mapped_column(Integer, default=0)
    sample_rate: Mapped[int] = mapped_column(Integer, default=0)
    bit_depth: Mapped[int] = mapped_column(Integer, default=0)
    channels: Mapped[int] = mapped_column(Integer, default=0)
    tags: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    modified_time: Mapped[float] = mapped_column(Float, index=True)
    created_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
