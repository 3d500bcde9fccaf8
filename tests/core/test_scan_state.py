"""Unit tests for ScanStateStore."""
import threading

import pytest

from soundshelf.core.scan_state import (
    ScanState,
    ScanStateStore,
    ScanStatus,
    get_scan_state_store,
    scan_state_store,
)
from soundshelf.core.stats import ScanStats


class TestScanStateStore:
    """Test suite for the scan state machine."""

    def setup_method(self):
        self.store = ScanStateStore()

    def test_initial_state_is_idle(self):
        state = self.store.snapshot()
        assert state.status == ScanStatus.IDLE
        assert state.files_observed == 0
        assert state.files_processed == 0
        assert state.last_error is None
        assert state.progress == 0.0

    def test_try_begin_moves_to_running(self):
        assert self.store.try_begin("/music")
        state = self.store.snapshot()
        assert state.status == ScanStatus.RUNNING
        assert state.is_running
        assert state.root_path == "/music"
        assert state.started_at is not None
        assert state.finished_at is None

    def test_try_begin_rejected_while_running(self):
        assert self.store.try_begin("/music")
        assert not self.store.try_begin("/other")
        assert self.store.snapshot().root_path == "/music"

    @pytest.mark.parametrize("finish", ["complete", "fail"])
    def test_new_scan_allowed_after_terminal_state(self, finish):
        self.store.try_begin("/music")
        self.store.record_progress(observed=10, processed=5)
        if finish == "complete":
            self.store.complete(ScanStats())
        else:
            self.store.fail("boom")

        assert self.store.try_begin("/music")
        state = self.store.snapshot()
        assert state.status == ScanStatus.RUNNING
        assert state.files_observed == 0
        assert state.files_processed == 0
        assert state.last_error is None
        assert state.stats is None

    def test_record_progress_accumulates(self):
        self.store.try_begin("/music")
        self.store.record_progress(observed=100)
        self.store.record_progress(observed=50, processed=100)
        state = self.store.snapshot()
        assert state.files_observed == 150
        assert state.files_processed == 100

    def test_record_progress_rejects_negative_counts(self):
        self.store.try_begin("/music")
        with pytest.raises(ValueError):
            self.store.record_progress(observed=-1)

    def test_record_progress_ignored_when_not_running(self):
        self.store.record_progress(observed=10)
        assert self.store.snapshot().files_observed == 0

    def test_complete_records_stats(self):
        self.store.try_begin("/music")
        self.store.complete(ScanStats(observed=3, new=3, written=3))
        state = self.store.snapshot()
        assert state.status == ScanStatus.COMPLETED
        assert state.finished_at is not None
        assert state.stats["written"] == 3
        assert state.progress == 1.0

    def test_fail_records_error_and_keeps_counters(self):
        self.store.try_begin("/music")
        self.store.record_progress(observed=40, processed=20)
        self.store.fail("disk I/O error")
        state = self.store.snapshot()
        assert state.status == ScanStatus.FAILED
        assert state.last_error == "disk I/O error"
        assert state.files_processed == 20

    def test_finish_requires_running_scan(self):
        with pytest.raises(RuntimeError):
            self.store.complete(ScanStats())
        self.store.try_begin("/music")
        self.store.fail("first")
        with pytest.raises(RuntimeError):
            self.store.fail("second")

    def test_reset_refused_while_running(self):
        self.store.try_begin("/music")
        assert not self.store.reset()
        self.store.complete(ScanStats())
        assert self.store.reset()
        assert self.store.snapshot().status == ScanStatus.IDLE

    def test_snapshot_is_a_copy(self):
        self.store.try_begin("/music")
        snap = self.store.snapshot()
        snap.files_observed = 999
        snap.status = ScanStatus.FAILED
        state = self.store.snapshot()
        assert state.files_observed == 0
        assert state.status == ScanStatus.RUNNING

    def test_progress_uses_estimated_total(self):
        self.store.try_begin("/music")
        self.store.set_estimated_total(200)
        self.store.record_progress(observed=50)
        assert self.store.snapshot().progress == 0.25

    def test_concurrent_begin_admits_exactly_one(self):
        results = []
        barrier = threading.Barrier(8)

        def attempt():
            barrier.wait()
            results.append(self.store.try_begin("/music"))

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1

    def test_concurrent_progress_is_never_lost(self):
        self.store.try_begin("/music")

        def bump():
            for _ in range(500):
                self.store.record_progress(observed=1, processed=1)

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        state = self.store.snapshot()
        assert state.files_observed == 2000
        assert state.files_processed == 2000


def test_state_serializes_datetimes_to_iso():
    store = ScanStateStore()
    store.try_begin("/music")
    data = store.snapshot().model_dump(mode="json")
    assert data["status"] == "running"
    assert isinstance(data["started_at"], str)
    assert data["finished_at"] is None


def test_default_state_model():
    assert ScanState().status == ScanStatus.IDLE


def test_global_store_accessor():
    assert get_scan_state_store() is scan_state_store
