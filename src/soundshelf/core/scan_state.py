"""Process-wide scan state shared by the background scan and the API."""

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, field_serializer

from soundshelf.core.stats import ScanStats


class ScanStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScanState(BaseModel):
    """Snapshot of the library scan lifecycle and its progress counters."""

    status: ScanStatus = ScanStatus.IDLE
    root_path: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    files_observed: int = 0
    files_processed: int = 0  # Records durably written
    estimated_total: Optional[int] = None
    last_error: Optional[str] = None
    stats: Optional[Dict[str, int]] = None  # Final ScanStats once terminal

    @property
    def progress(self) -> float:
        """Fraction of the estimated tree observed so far (0.0 when unknown)."""
        if self.status == ScanStatus.COMPLETED:
            return 1.0
        if not self.estimated_total:
            return 0.0
        return min(1.0, self.files_observed / self.estimated_total)

    @property
    def is_running(self) -> bool:
        return self.status == ScanStatus.RUNNING

    @field_serializer("started_at", "finished_at")
    def serialize_datetime(self, dt: Optional[datetime], _info) -> Optional[str]:
        """Serialize datetime fields to ISO format strings."""
        return dt.isoformat() if dt else None


class ScanStateStore:
    """Single owned cell holding the current ScanState.

    Every mutation and every read takes the same lock, and reads return deep
    copies, so a poller never sees a status from one update paired with
    counters from another.

    Usage (module-level - recommended):
        from soundshelf.core.scan_state import scan_state_store

        if scan_state_store.try_begin("/music"):
            scan_state_store.record_progress(observed=1000, processed=100)
        state = scan_state_store.snapshot()

    Instantiate ScanStateStore() for isolated state (e.g. tests).
    """

    def __init__(self) -> None:
        self._state = ScanState()
        self._lock = threading.Lock()

    def snapshot(self) -> ScanState:
        """Return an immutable copy of the current state."""
        with self._lock:
            return self._state.model_copy(deep=True)

    def try_begin(self, root_path: str) -> bool:
        """Move to RUNNING with fresh counters unless a scan is already running."""
        with self._lock:
            if self._state.status == ScanStatus.RUNNING:
                return False
            self._state = ScanState(
                status=ScanStatus.RUNNING,
                root_path=root_path,
                started_at=datetime.now(timezone.utc),
            )
            return True

    def set_estimated_total(self, total: Optional[int]) -> None:
        with self._lock:
            if self._state.status == ScanStatus.RUNNING:
                self._state.estimated_total = total

    def record_progress(self, observed: int = 0, processed: int = 0) -> None:
        """Advance both counters in one step. Counters never decrease."""
        if observed < 0 or processed < 0:
            raise ValueError("progress counters are monotonic")
        with self._lock:
            if self._state.status != ScanStatus.RUNNING:
                return
            self._state.files_observed += observed
            self._state.files_processed += processed

    def complete(self, stats: ScanStats) -> None:
        """Mark the running scan COMPLETED."""
        self._finish(ScanStatus.COMPLETED, stats, None)

    def fail(self, error: str, stats: Optional[ScanStats] = None) -> None:
        """Mark the running scan FAILED with the given error message."""
        self._finish(ScanStatus.FAILED, stats, error)

    def reset(self) -> bool:
        """Return to IDLE from a terminal state. Refused while RUNNING."""
        with self._lock:
            if self._state.status == ScanStatus.RUNNING:
                return False
            self._state = ScanState()
            return True

    def _finish(
        self, status: ScanStatus, stats: Optional[ScanStats], error: Optional[str]
    ) -> None:
        with self._lock:
            if self._state.status != ScanStatus.RUNNING:
                raise RuntimeError(
                    f"Cannot move scan to {status.value}: scan is {self._state.status.value}"
                )
            self._state.status = status
            self._state.finished_at = datetime.now(timezone.utc)
            self._state.last_error = error
            self._state.stats = stats.to_dict() if stats else None


# Global singleton instance
scan_state_store = ScanStateStore()


def get_scan_state_store() -> ScanStateStore:
    """Return the global scan state store (for dependency injection)."""
    return scan_state_store
