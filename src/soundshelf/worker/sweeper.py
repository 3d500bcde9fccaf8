"""Removal of catalog entries whose files were not seen by a completed walk."""

import os
from typing import AbstractSet, List, Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from soundshelf.core.models import Track
from soundshelf.core.performance import ScanMetrics


def root_prefix(root: str) -> str:
    """Path prefix shared by every file under ``root`` (with trailing separator)."""
    return os.path.join(root, "")


class DeletionSweeper:
    """Deletes tracks under the scanned root that the walk did not observe.

    The catalog is read page by page in id order (keyset pagination), and each
    page's missing paths are deleted in that page's own short transaction.
    Only one page of catalog rows is held at a time; the observed-path set is
    owned by the reconciler.

    Must only be called after the walk finished without a fatal error.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        page_size: int = 1000,
        metrics: Optional[ScanMetrics] = None,
    ):
        self.session_factory = session_factory
        self.page_size = page_size
        self.metrics = metrics

    async def sweep(self, root: str, observed_paths: AbstractSet[str]) -> int:
        """Delete unobserved entries under ``root``.

        Returns:
            Number of catalog entries deleted.
        """
        prefix = root_prefix(root)
        deleted = 0
        last_id = 0
        while True:
            stmt = (
                select(Track.id, Track.path)
                .where(Track.id > last_id)
                .where(Track.path.startswith(prefix, autoescape=True))
                .order_by(Track.id)
                .limit(self.page_size)
            )
            async with self.session_factory() as session:
                rows = (await session.execute(stmt)).all()
                if not rows:
                    break
                last_id = rows[-1].id

                # LIKE is case-insensitive on SQLite: re-check the prefix exactly
                missing = [
                    r
                    for r in rows
                    if r.path.startswith(prefix) and r.path not in observed_paths
                ]
                if missing:
                    ids: List[int] = [r.id for r in missing]
                    await session.execute(delete(Track).where(Track.id.in_(ids)))
                    await session.commit()
                    deleted += len(missing)
                    for r in missing:
                        logger.debug(f"Removed missing track {r.path}")

            if self.metrics:
                self.metrics.sweep_pages += 1

        if deleted:
            logger.info(f"Sweep removed {deleted} tracks no longer under {root}")
        return deleted
