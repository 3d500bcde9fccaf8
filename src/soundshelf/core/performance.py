"""Performance monitoring utilities for tracking scan metrics.

This module provides utilities for tracking and logging how a library scan
spent its time, split between filesystem walking, metadata extraction and
database round trips.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional

from loguru import logger


@dataclass
class ScanMetrics:
    """Counters and timings for one scan."""

    files_walked: int = 0
    metadata_extractions: int = 0
    extraction_failures: int = 0
    snapshot_queries: int = 0
    upsert_batches: int = 0
    write_retries: int = 0
    sweep_pages: int = 0

    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    duration_seconds: Optional[float] = None
    time_walking: float = 0.0
    time_metadata_extraction: float = 0.0
    time_database_ops: float = 0.0

    def finish(self) -> None:
        """Mark the scan as finished and calculate duration."""
        self.end_time = time.time()
        self.duration_seconds = self.end_time - self.start_time

    @property
    def files_per_second(self) -> float:
        if self.duration_seconds and self.duration_seconds > 0:
            return self.files_walked / self.duration_seconds
        return 0.0

    def _percentage(self, time_value: float) -> float:
        if self.duration_seconds and self.duration_seconds > 0:
            return (time_value / self.duration_seconds) * 100
        return 0.0

    @contextmanager
    def timed(self, attribute: str) -> Iterator[None]:
        """Add the wall time of the block to the named timing attribute.

        Usage:
            with metrics.timed("time_database_ops"):
                await session.execute(stmt)
        """
        started = time.perf_counter()
        try:
            yield
        finally:
            setattr(self, attribute, getattr(self, attribute) + time.perf_counter() - started)

    def log_summary(self, operation_name: str = "Scan") -> None:
        """Log a performance summary."""
        if not self.duration_seconds:
            self.finish()

        logger.info(
            f"\n{'='*80}\n"
            f"{operation_name} Performance Summary\n"
            f"{'='*80}\n"
            f"Duration: {self.duration_seconds:.2f}s\n"
            f"Files walked: {self.files_walked:,} ({self.files_per_second:.1f} files/sec)\n"
            f"  - Metadata extractions: {self.metadata_extractions:,}\n"
            f"  - Extraction failures: {self.extraction_failures:,}\n"
            f"\n"
            f"Database Operations:\n"
            f"  - Snapshot queries: {self.snapshot_queries:,}\n"
            f"  - Upsert batches: {self.upsert_batches:,}\n"
            f"  - Write retries: {self.write_retries:,}\n"
            f"  - Sweep pages: {self.sweep_pages:,}\n"
            f"\n"
            f"Timing Breakdown:\n"
            f"  - Walking: {self.time_walking:.2f}s ({self._percentage(self.time_walking):.1f}%)\n"
            f"  - Metadata extraction: {self.time_metadata_extraction:.2f}s ({self._percentage(self.time_metadata_extraction):.1f}%)\n"
            f"  - Database operations: {self.time_database_ops:.2f}s ({self._percentage(self.time_database_ops):.1f}%)\n"
            f"{'='*80}\n"
        )

    def to_dict(self) -> Dict:
        """Convert metrics to dictionary for JSON serialization."""
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "duration_seconds": self.duration_seconds,
            "files_walked": self.files_walked,
            "files_per_second": self.files_per_second,
            "metadata_extractions": self.metadata_extractions,
            "extraction_failures": self.extraction_failures,
            "snapshot_queries": self.snapshot_queries,
            "upsert_batches": self.upsert_batches,
            "write_retries": self.write_retries,
            "sweep_pages": self.sweep_pages,
            "time_walking": self.time_walking,
            "time_metadata_extraction": self.time_metadata_extraction,
            "time_database_ops": self.time_database_ops,
        }
