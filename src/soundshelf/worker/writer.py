"""Transactional batch upsert of catalog records keyed by path."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from soundshelf.core.errors import WriteRetriesExhausted
from soundshelf.core.models import Track
from soundshelf.core.performance import ScanMetrics

# Columns rewritten when a path already exists. id, path, created_time and
# created_at keep their first-insert values.
UPDATE_COLUMNS = (
    "extension",
    "title",
    "artist",
    "album",
    "album_artist",
    "genre",
    "publisher",
    "catalog_number",
    "disc_number",
    "track_number",
    "year",
    "duration_seconds",
    "audio_bitrate",
    "overall_bitrate",
    "sample_rate",
    "bit_depth",
    "channels",
    "tags",
    "size",
    "modified_time",
    "updated_at",
)


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert
    return sqlite.insert


class UpsertWriter:
    """Applies one batch of records as a single insert-or-update transaction.

    A failed transaction is rolled back and the same batch retried as a unit,
    up to ``max_retries`` extra attempts with exponential backoff. Each attempt
    uses a fresh session from the shared pool.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        metrics: Optional[ScanMetrics] = None,
    ):
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.metrics = metrics

    async def write(self, records: Sequence[Dict[str, Any]]) -> int:
        """Upsert ``records`` atomically and return how many were written.

        Raises:
            WriteRetriesExhausted: If every attempt failed.
        """
        if not records:
            return 0

        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            try:
                await self._write_once(records)
                if self.metrics:
                    self.metrics.upsert_batches += 1
                return len(records)
            except SQLAlchemyError as e:
                last_error = e
                if attempt + 1 >= attempts:
                    break
                delay = self.backoff_seconds * (2 ** attempt)
                if self.metrics:
                    self.metrics.write_retries += 1
                logger.warning(
                    f"Write batch of {len(records)} failed "
                    f"(attempt {attempt + 1}/{attempts}), retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)

        logger.error(f"Write batch of {len(records)} failed after {attempts} attempts")
        raise WriteRetriesExhausted(len(records), attempts, last_error)

    async def _write_once(self, records: Sequence[Dict[str, Any]]) -> None:
        now = datetime.now(timezone.utc)
        rows: List[Dict[str, Any]] = [
            {**record, "created_at": now, "updated_at": now} for record in records
        ]
        async with self.session_factory() as session:
            insert = _insert_for(session.bind.dialect.name)
            stmt = insert(Track).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Track.path],
                set_={col: stmt.excluded[col] for col in UPDATE_COLUMNS},
            )
            async with session.begin():
                await session.execute(stmt)
