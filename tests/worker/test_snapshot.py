"""Tests for the batched and full-catalog snapshot strategies."""
import pytest

from soundshelf.core.models import Track
from soundshelf.core.performance import ScanMetrics
from soundshelf.core.scanner_config import ScanConfig
from soundshelf.worker.snapshot import (
    BatchedSnapshotSource,
    FullCatalogSnapshotSource,
    make_snapshot_source,
)


@pytest.fixture
async def catalog(db_session):
    db_session.add_all(
        [
            Track(path="/music/a.mp3", modified_time=100.0),
            Track(path="/music/b.mp3", modified_time=200.5),
            Track(path="/music/c.mp3", modified_time=300.0),
        ]
    )
    await db_session.commit()


async def test_batched_returns_only_requested_known_paths(session_factory, catalog):
    source = BatchedSnapshotSource(session_factory, max_paths=10)

    snapshot = await source.fetch(["/music/a.mp3", "/music/b.mp3", "/music/new.mp3"])

    assert snapshot == {"/music/a.mp3": 100.0, "/music/b.mp3": 200.5}


async def test_batched_empty_request(session_factory, catalog):
    source = BatchedSnapshotSource(session_factory, max_paths=10)
    assert await source.fetch([]) == {}


async def test_batched_rejects_oversized_request(session_factory):
    source = BatchedSnapshotSource(session_factory, max_paths=2)
    with pytest.raises(ValueError):
        await source.fetch(["/a", "/b", "/c"])


async def test_batched_counts_queries(session_factory, catalog):
    metrics = ScanMetrics()
    source = BatchedSnapshotSource(session_factory, max_paths=10, metrics=metrics)
    await source.fetch(["/music/a.mp3"])
    await source.fetch(["/music/c.mp3"])
    assert metrics.snapshot_queries == 2


async def test_full_catalog_loads_once(session_factory, catalog):
    metrics = ScanMetrics()
    source = FullCatalogSnapshotSource(session_factory, metrics=metrics)

    first = await source.fetch(["/music/a.mp3", "/music/zzz.mp3"])
    second = await source.fetch(["/music/c.mp3"])

    assert first == {"/music/a.mp3": 100.0}
    assert second == {"/music/c.mp3": 300.0}
    assert metrics.snapshot_queries == 1


async def test_strategies_agree(session_factory, catalog):
    paths = ["/music/c.mp3", "/music/missing.mp3", "/music/a.mp3"]
    batched = BatchedSnapshotSource(session_factory, max_paths=10)
    full = FullCatalogSnapshotSource(session_factory)
    assert await batched.fetch(paths) == await full.fetch(paths)


async def test_factory_picks_strategy_from_mode(session_factory):
    optimized = make_snapshot_source(
        ScanConfig(root_path="/music", path_batch_size=50), session_factory
    )
    legacy = make_snapshot_source(
        ScanConfig(root_path="/music", optimized_mode=False), session_factory
    )
    assert isinstance(optimized, BatchedSnapshotSource)
    assert optimized.max_paths == 50
    assert isinstance(legacy, FullCatalogSnapshotSource)
