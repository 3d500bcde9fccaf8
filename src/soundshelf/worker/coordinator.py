"""Scan lifecycle: single-flight admission and the background pipeline.

The coordinator is the only indexer component the API and CLI talk to.
``start()`` either rejects the request because a scan is running or moves the
shared state to RUNNING and hands the pipeline to an asyncio task. The task
reports exclusively through the ScanStateStore and always leaves it in
exactly one terminal state.

Typical usage example:
    coordinator = ScanCoordinator(AsyncSessionLocal)
    admission = coordinator.start(ScanConfig(root_path="/music"))
    if admission.accepted:
        state = await coordinator.wait()
"""

import asyncio
import os
from dataclasses import dataclass, replace
import uuid
from typing import List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from soundshelf.core.errors import ScanError
from soundshelf.core.models import Track
from soundshelf.core.performance import ScanMetrics
from soundshelf.core.scan_state import ScanState, ScanStateStore, scan_state_store
from soundshelf.core.scanner_config import ScanConfig
from soundshelf.core.stats import ScanStats
from soundshelf.worker.extractor import MetadataExtractor, MutagenExtractor
from soundshelf.worker.progress import ProgressReporter
from soundshelf.worker.reconciler import Reconciler
from soundshelf.worker.snapshot import make_snapshot_source
from soundshelf.worker.sweeper import DeletionSweeper
from soundshelf.worker.walker import count_media_files, walk_media_files
from soundshelf.worker.writer import UpsertWriter


@dataclass(frozen=True)
class ScanAdmission:
    """Outcome of a trigger request."""

    accepted: bool
    reason: Optional[str] = None


class ScanCoordinator:
    """Owns the scan state machine: idle -> running -> completed | failed.

    A new scan may start from idle or from either terminal state; a trigger
    while running is rejected and never queued.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        extractor: Optional[MetadataExtractor] = None,
        state_store: Optional[ScanStateStore] = None,
    ):
        self.session_factory = session_factory
        self.extractor = extractor or MutagenExtractor()
        self.state_store = state_store or scan_state_store
        self._task: Optional[asyncio.Task] = None

    # Public contract used by the serving layer

    def start(self, config: ScanConfig) -> ScanAdmission:
        """Begin a background scan unless one is already running.

        Must be called from within the running event loop. Returns at once.
        """
        config = replace(config, root_path=os.path.abspath(config.root_path))
        if not self.state_store.try_begin(config.root_path):
            logger.info(f"Scan request for {config.root_path} rejected: already running")
            return ScanAdmission(accepted=False, reason="already running")

        self._task = asyncio.create_task(self._run_pipeline(config))
        logger.info(f"Scan of {config.root_path} started")
        return ScanAdmission(accepted=True)

    def status(self) -> ScanState:
        """Read-only snapshot of the current scan state."""
        return self.state_store.snapshot()

    def reset(self) -> bool:
        """Clear a finished scan's result and return to idle.

        Returns:
            False if a scan is running (its state is left untouched).
        """
        return self.state_store.reset()

    trigger_scan = start
    get_scan_state = status

    async def wait(self) -> ScanState:
        """Wait for the in-flight scan (if any) and return the resulting state."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.status()

    async def run(self, config: ScanConfig) -> ScanState:
        """Start a scan and wait for it to reach a terminal state.

        Raises:
            RuntimeError: If another scan is already running.
        """
        admission = self.start(config)
        if not admission.accepted:
            raise RuntimeError(f"Scan not started: {admission.reason}")
        return await self.wait()

    # Pipeline

    async def _run_pipeline(self, config: ScanConfig) -> None:
        # Every line the pipeline logs on the event loop carries this scan's id
        with logger.contextualize(scan_id=uuid.uuid4().hex[:8]):
            await self._pipeline(config)

    async def _pipeline(self, config: ScanConfig) -> None:
        metrics = ScanMetrics()
        progress = ProgressReporter(enabled=config.show_progress)
        reconciler = Reconciler(
            config,
            snapshot_source=make_snapshot_source(config, self.session_factory, metrics),
            writer=UpsertWriter(
                self.session_factory,
                max_retries=config.max_write_retries,
                backoff_seconds=config.retry_backoff_seconds,
                metrics=metrics,
            ),
            extractor=self.extractor,
            state_store=self.state_store,
            metrics=metrics,
            progress=progress,
        )
        stats: Optional[ScanStats] = None

        logger.info(
            f"Starting music library scan at: {config.root_path} "
            f"(optimized={config.optimized_mode}, batch_size={config.batch_size}, "
            f"path_batch_size={config.path_batch_size})"
        )
        try:
            if config.show_progress:
                total = await asyncio.get_running_loop().run_in_executor(
                    None, count_media_files, config.root_path
                )
                self.state_store.set_estimated_total(total)
                progress.start(total)

            skipped: List[str] = []
            stats = await reconciler.run(
                walk_media_files(config.root_path, skipped=skipped)
            )
            stats.walk_errors = len(skipped)

            if skipped:
                # Paths under unreadable subtrees were not observed, not removed
                logger.warning(
                    f"Walk of {config.root_path} skipped {len(skipped)} unreadable "
                    f"paths (first: {skipped[0]}); deletion sweep skipped"
                )
            else:
                sweeper = DeletionSweeper(
                    self.session_factory,
                    page_size=config.path_batch_size,
                    metrics=metrics,
                )
                stats.deleted = await sweeper.sweep(
                    config.root_path, reconciler.observed_paths
                )
        except (ScanError, SQLAlchemyError, OSError) as e:
            logger.error(f"Scan of {config.root_path} failed: {e}")
            self.state_store.fail(str(e), stats)
            return
        except Exception as e:
            logger.exception(f"Unexpected error during scan of {config.root_path}")
            self.state_store.fail(f"{type(e).__name__}: {e}", stats)
            return
        finally:
            progress.close()
            metrics.finish()
            metrics.log_summary("Library scan")

        self.state_store.complete(stats)
        await self._log_completion(stats)

    async def _log_completion(self, stats: ScanStats) -> None:
        try:
            async with self.session_factory() as session:
                total = (await session.execute(select(func.count(Track.id)))).scalar() or 0
        except SQLAlchemyError as e:
            logger.warning(f"Could not count catalog after scan: {e}")
            total = None
        logger.success(
            f"Scan completed: {stats.observed} files scanned, {stats.written} tracks "
            f"processed, {stats.deleted} removed, {total} tracks in database"
        )
