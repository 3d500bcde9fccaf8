"""Catalog snapshot strategies used to classify walked files.

A snapshot maps path -> persisted modified_time for the paths of one group.
Paths missing from the returned map have no catalog entry.

Two strategies satisfy the same contract:
- BatchedSnapshotSource queries only the requested paths, so memory stays
  bounded by the group size whatever the catalog size.
- FullCatalogSnapshotSource (legacy mode) reads the whole catalog's
  (path, modified_time) set once and answers every group from it.
"""

from typing import Dict, Optional, Protocol, Sequence

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from soundshelf.core.models import Track
from soundshelf.core.performance import ScanMetrics
from soundshelf.core.scanner_config import ScanConfig


class SnapshotSource(Protocol):
    async def fetch(self, paths: Sequence[str]) -> Dict[str, float]: ...


class BatchedSnapshotSource:
    """Per-group ``SELECT path, modified_time ... WHERE path IN (...)``.

    A session is taken from the pool for each query and returned right
    after, so the indexer never pins a connection between groups.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_paths: int,
        metrics: Optional[ScanMetrics] = None,
    ):
        self.session_factory = session_factory
        self.max_paths = max_paths
        self.metrics = metrics

    async def fetch(self, paths: Sequence[str]) -> Dict[str, float]:
        if len(paths) > self.max_paths:
            raise ValueError(
                f"Snapshot request of {len(paths)} paths exceeds bound {self.max_paths}"
            )
        if not paths:
            return {}

        stmt = select(Track.path, Track.modified_time).where(Track.path.in_(paths))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()
        if self.metrics:
            self.metrics.snapshot_queries += 1
        return {row.path: row.modified_time for row in rows}


class FullCatalogSnapshotSource:
    """Legacy strategy: the whole catalog's (path, modified_time) set in memory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metrics: Optional[ScanMetrics] = None,
    ):
        self.session_factory = session_factory
        self.metrics = metrics
        self._catalog: Optional[Dict[str, float]] = None

    async def _load(self) -> Dict[str, float]:
        stmt = select(Track.path, Track.modified_time)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            catalog = {row.path: row.modified_time for row in result.all()}
        if self.metrics:
            self.metrics.snapshot_queries += 1
        logger.info(f"Loaded full catalog snapshot: {len(catalog)} tracks")
        return catalog

    async def fetch(self, paths: Sequence[str]) -> Dict[str, float]:
        if self._catalog is None:
            self._catalog = await self._load()
        return {p: self._catalog[p] for p in paths if p in self._catalog}


def make_snapshot_source(
    config: ScanConfig,
    session_factory: async_sessionmaker[AsyncSession],
    metrics: Optional[ScanMetrics] = None,
) -> SnapshotSource:
    """Pick the snapshot strategy for this scan from ``optimized_mode``."""
    if config.optimized_mode:
        return BatchedSnapshotSource(
            session_factory, max_paths=config.path_batch_size, metrics=metrics
        )
    return FullCatalogSnapshotSource(session_factory, metrics=metrics)
