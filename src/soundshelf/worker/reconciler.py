"""Incremental reconciliation of a directory walk against the catalog.

The walk is consumed in groups of ``path_batch_size`` files. Each group is
classified against a snapshot holding only that group's catalog rows, changed
files are sent through metadata extraction, and the resulting records are
written in transactions of exactly ``batch_size`` rows (the tail is flushed
when the walk ends). Peak memory is bounded by the group and batch sizes, not
by the size of the catalog or of the tree.

Typical usage example:
    reconciler = Reconciler(config, snapshot_source, writer, extractor, store)
    stats = await reconciler.run(walk_media_files(config.root_path))
"""

import asyncio
import concurrent.futures
from enum import Enum
from itertools import islice
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set

from loguru import logger

from soundshelf.core.errors import ExtractionError, ExtractionErrorKind
from soundshelf.core.performance import ScanMetrics
from soundshelf.core.scan_state import ScanStateStore
from soundshelf.core.scanner_config import ScanConfig
from soundshelf.core.stats import ScanStats
from soundshelf.worker.extractor import MetadataExtractor
from soundshelf.worker.progress import ProgressReporter
from soundshelf.worker.snapshot import SnapshotSource
from soundshelf.worker.walker import FileDescriptor
from soundshelf.worker.writer import UpsertWriter


class Change(str, Enum):
    NEW = "new"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"


def classify(descriptor: FileDescriptor, snapshot: Mapping[str, float]) -> Change:
    """Classify one walked file against its group's snapshot.

    Any difference in modified time counts as a modification, including a
    time that moved backwards (restored backups, clock skew).
    """
    persisted = snapshot.get(descriptor.path)
    if persisted is None:
        return Change.NEW
    if persisted != descriptor.modified_time:
        return Change.MODIFIED
    return Change.UNCHANGED


def _take(walk: Iterator[FileDescriptor], n: int) -> List[FileDescriptor]:
    return list(islice(walk, n))


class Reconciler:
    """Drives one scan's walk through classification, extraction and upserts.

    Attributes:
        observed_paths: Every path the walk produced, for the deletion sweep.
    """

    def __init__(
        self,
        config: ScanConfig,
        snapshot_source: SnapshotSource,
        writer: UpsertWriter,
        extractor: MetadataExtractor,
        state_store: ScanStateStore,
        metrics: Optional[ScanMetrics] = None,
        progress: Optional[ProgressReporter] = None,
    ):
        self.config = config
        self.snapshot_source = snapshot_source
        self.writer = writer
        self.extractor = extractor
        self.state_store = state_store
        self.metrics = metrics or ScanMetrics()
        self.progress = progress or ProgressReporter(enabled=False)
        self.observed_paths: Set[str] = set()
        self._processed_total = 0

    async def run(self, walk: Iterator[FileDescriptor]) -> ScanStats:
        """Reconcile the whole walk. Fatal errors propagate to the caller.

        Returns:
            ScanStats for this pass (``deleted`` is left for the sweep).
        """
        stats = ScanStats()
        loop = asyncio.get_running_loop()
        buffer: List[Dict[str, Any]] = []
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_extractions
        )
        try:
            while True:
                with self.metrics.timed("time_walking"):
                    group = await loop.run_in_executor(
                        None, _take, walk, self.config.path_batch_size
                    )
                if not group:
                    break
                self.metrics.files_walked += len(group)

                changed = await self._classify_group(group, stats)
                buffer.extend(await self._extract_all(changed, stats, executor))

                while len(buffer) >= self.config.batch_size:
                    chunk = buffer[: self.config.batch_size]
                    del buffer[: self.config.batch_size]
                    await self._flush(chunk, stats)

                stats.observed += len(group)
                self._report(observed=len(group))

            if buffer:
                await self._flush(buffer, stats)
                buffer = []
        finally:
            executor.shutdown(wait=False)

        return stats

    async def _classify_group(
        self, group: List[FileDescriptor], stats: ScanStats
    ) -> List[FileDescriptor]:
        with self.metrics.timed("time_database_ops"):
            snapshot = await self.snapshot_source.fetch([d.path for d in group])

        changed: List[FileDescriptor] = []
        for descriptor in group:
            self.observed_paths.add(descriptor.path)
            change = classify(descriptor, snapshot)
            if change is Change.NEW:
                stats.new += 1
                changed.append(descriptor)
            elif change is Change.MODIFIED:
                stats.modified += 1
                changed.append(descriptor)
            else:
                stats.unchanged += 1
        return changed

    async def _extract_all(
        self,
        descriptors: List[FileDescriptor],
        stats: ScanStats,
        executor: concurrent.futures.Executor,
    ) -> List[Dict[str, Any]]:
        """Extract metadata for changed files, keeping walk order in the result."""
        if not descriptors:
            return []

        semaphore = asyncio.Semaphore(self.config.max_concurrent_extractions)
        loop = asyncio.get_running_loop()

        async def extract_one(descriptor: FileDescriptor) -> Optional[Dict[str, Any]]:
            async with semaphore:
                try:
                    with self.metrics.timed("time_metadata_extraction"):
                        meta = await loop.run_in_executor(
                            executor, self.extractor.extract, descriptor.path
                        )
                except ExtractionError as e:
                    self._log_extraction_error(e)
                    return None
                except Exception as e:
                    logger.error(
                        f"Failed to extract {descriptor.path}: {type(e).__name__}: {e}"
                    )
                    return None
            self.metrics.metadata_extractions += 1
            return {
                **meta.to_dict(),
                "path": descriptor.path,
                "size": descriptor.size,
                "modified_time": descriptor.modified_time,
            }

        results = await asyncio.gather(*(extract_one(d) for d in descriptors))
        records = [r for r in results if r is not None]
        skipped = len(results) - len(records)
        stats.skipped += skipped
        self.metrics.extraction_failures += skipped
        return records

    def _log_extraction_error(self, error: ExtractionError) -> None:
        if error.kind is ExtractionErrorKind.UNSUPPORTED:
            logger.info(f"Skipping {error.path}: {error}")
        else:
            logger.warning(f"Skipping {error.path}: {error}")

    async def _flush(self, records: List[Dict[str, Any]], stats: ScanStats) -> int:
        with self.metrics.timed("time_database_ops"):
            written = await self.writer.write(records)
        stats.written += written
        stats.batches_committed += 1
        self._report(processed=written)
        logger.debug(f"Committed batch of {written} tracks ({stats.written} total)")
        return written

    def _report(self, observed: int = 0, processed: int = 0) -> None:
        self._processed_total += processed
        self.state_store.record_progress(observed=observed, processed=processed)
        self.progress.advance(observed, self._processed_total)
