"""Tag and stream-property extraction for single audio files.

Extraction is blocking I/O and runs in a worker thread. Any object with an
``extract(path) -> TrackMetadata`` method can stand in for the default
mutagen-backed implementation (tests inject fakes this way).
"""

import os
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import mutagen
from mutagen import MutagenError

from soundshelf.core.errors import ExtractionError, ExtractionErrorKind

_LEADING_INT = re.compile(r"^\s*(\d+)")


@dataclass
class TrackMetadata:
    """Everything read from one file, ready to merge into a catalog record."""

    extension: str = ""
    title: str = ""
    artist: str = ""
    album: str = ""
    album_artist: str = ""
    genre: str = ""
    publisher: str = ""
    catalog_number: str = ""
    disc_number: Optional[int] = None
    track_number: Optional[int] = None
    year: Optional[int] = None
    duration_seconds: int = 0
    audio_bitrate: int = 0
    overall_bitrate: int = 0
    sample_rate: int = 0
    bit_depth: int = 0
    channels: int = 0
    tags: Dict[str, str] = field(default_factory=dict)
    created_time: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MetadataExtractor(Protocol):
    def extract(self, path: str) -> TrackMetadata: ...


def _leading_int(value: str) -> Optional[int]:
    """Parse "3", "3/12" or "2003-05-01" into their leading integer."""
    match = _LEADING_INT.match(value or "")
    return int(match.group(1)) if match else None


def _created_time(st: os.stat_result) -> float:
    # st_birthtime exists on macOS/BSD/Windows; ctime is the closest on Linux
    return float(getattr(st, "st_birthtime", st.st_ctime))


class MutagenExtractor:
    """Reads tags through mutagen's "easy" interface.

    Files mutagen does not recognise, or that carry no tag block at all, are
    reported as unsupported. Parse failures are corrupt. Failures to open or
    read the file are I/O errors.
    """

    def extract(self, path: str) -> TrackMetadata:
        try:
            st = os.stat(path)
            audio = mutagen.File(path, easy=True)
        except MutagenError as e:
            cause = e.__cause__ or e.__context__
            kind = (
                ExtractionErrorKind.IO_ERROR
                if isinstance(cause, OSError)
                else ExtractionErrorKind.CORRUPT
            )
            raise ExtractionError(kind, path, str(e)) from e
        except OSError as e:
            raise ExtractionError(ExtractionErrorKind.IO_ERROR, path, str(e)) from e

        if audio is None:
            raise ExtractionError(
                ExtractionErrorKind.UNSUPPORTED, path, "unrecognised format"
            )
        if not audio.tags:
            raise ExtractionError(ExtractionErrorKind.UNSUPPORTED, path, "no tags")

        return self._build(path, audio, st)

    @staticmethod
    def _flatten_tags(tags: Any) -> Dict[str, str]:
        flat: Dict[str, str] = {}
        for key in tags.keys():
            try:
                values = tags[key]
            except (KeyError, ValueError):
                continue
            if isinstance(values, (list, tuple)):
                flat[key] = "; ".join(str(v) for v in values)
            else:
                flat[key] = str(values)
        return flat

    def _build(self, path: str, audio: Any, st: os.stat_result) -> TrackMetadata:
        tags = self._flatten_tags(audio.tags)

        def first(*keys: str) -> str:
            for key in keys:
                values = audio.tags.get(key)
                if values:
                    return str(values[0]).strip()
            return ""

        info = audio.info
        length = float(getattr(info, "length", 0) or 0)
        bitrate = int(getattr(info, "bitrate", 0) or 0)
        overall = int(round(st.st_size * 8 / length / 1000)) if length > 0 else 0

        return TrackMetadata(
            extension=Path(path).suffix.lower().lstrip("."),
            title=first("title"),
            artist=first("artist"),
            album=first("album"),
            album_artist=first("albumartist"),
            genre=first("genre"),
            publisher=first("organization", "label", "publisher"),
            catalog_number=first("catalognumber"),
            disc_number=_leading_int(first("discnumber")),
            track_number=_leading_int(first("tracknumber")),
            year=_leading_int(first("date", "originaldate", "year")),
            duration_seconds=int(length),
            audio_bitrate=bitrate // 1000,
            overall_bitrate=overall,
            sample_rate=int(getattr(info, "sample_rate", 0) or 0),
            bit_depth=int(getattr(info, "bits_per_sample", 0) or 0),
            channels=int(getattr(info, "channels", 0) or 0),
            tags=tags,
            created_time=_created_time(st),
        )
