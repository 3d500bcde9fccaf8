import asyncio
import json
import threading

from soundshelf.core.scan_state import ScanStatus


async def _wait_for_terminal(client, attempts=500):
    for _ in range(attempts):
        data = (await client.get("/api/v1/admin/scan")).json()
        if data["status"] != "running":
            return data
        await asyncio.sleep(0.01)
    raise AssertionError("scan did not finish")


async def test_scan_status_idle(client):
    response = await client.get("/api/v1/admin/scan")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "idle"
    assert data["files_observed"] == 0
    assert data["progress"] == 0.0


async def test_trigger_scan_runs_in_background(client, library):
    library("Artist/Album/01.mp3")
    library("Artist/Album/02.mp3")

    response = await client.post(
        "/api/v1/admin/scan", json={"path": str(library.root), "batch_size": 1}
    )

    assert response.status_code == 202
    data = response.json()
    assert data["status"] == "started"
    assert data["path"] == str(library.root)

    final = await _wait_for_terminal(client)
    assert final["status"] == "completed"
    assert final["files_observed"] == 2
    assert final["files_processed"] == 2
    assert final["stats"]["batches_committed"] == 2
    assert final["finished_at"] is not None


async def test_trigger_scan_while_running_is_rejected(
    client, session_factory, state_store, library, make_extractor
):
    from soundshelf.api.deps import get_coordinator
    from soundshelf.api.main import app
    from soundshelf.worker.coordinator import ScanCoordinator

    library("a.mp3")
    gate = threading.Event()
    coordinator = ScanCoordinator(
        session_factory, extractor=make_extractor(gate=gate), state_store=state_store
    )
    app.dependency_overrides[get_coordinator] = lambda: coordinator

    first = await client.post("/api/v1/admin/scan", json={"path": str(library.root)})
    second = await client.post("/api/v1/admin/scan", json={"path": str(library.root)})

    assert first.status_code == 202
    assert second.status_code == 409
    assert second.json() == {"detail": "already running"}
    assert state_store.snapshot().status == ScanStatus.RUNNING

    gate.set()
    final = await coordinator.wait()
    assert final.status == ScanStatus.COMPLETED


async def test_trigger_scan_missing_root_reports_failure(client, tmp_path):
    response = await client.post(
        "/api/v1/admin/scan", json={"path": str(tmp_path / "missing")}
    )
    assert response.status_code == 202

    final = await _wait_for_terminal(client)
    assert final["status"] == "failed"
    assert "directory not found" in final["last_error"]


async def test_trigger_scan_rejects_invalid_batch_size(client, library):
    response = await client.post(
        "/api/v1/admin/scan", json={"path": str(library.root), "batch_size": 0}
    )
    assert response.status_code == 422


async def test_scan_stream_ends_when_idle(client):
    async with client.stream("GET", "/api/v1/admin/scan/stream") as response:
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = [
            json.loads(line[len("data: "):])
            async for line in response.aiter_lines()
            if line.startswith("data: ")
        ]

    assert events[0] == {"connected": True}
    assert events[-1]["status"] == "idle"


async def test_scan_stream_follows_scan_to_completion(client, library, coordinator):
    library("a.mp3")
    await client.post("/api/v1/admin/scan", json={"path": str(library.root)})

    async with client.stream("GET", "/api/v1/admin/scan/stream") as response:
        events = [
            json.loads(line[len("data: "):])
            async for line in response.aiter_lines()
            if line.startswith("data: ")
        ]

    await coordinator.wait()
    assert events[-1]["status"] == "completed"
    observed = [e["files_observed"] for e in events[1:]]
    assert observed == sorted(observed)


async def test_trigger_scan_without_body_uses_music_path(client, library, monkeypatch):
    from soundshelf.core.config import settings

    library("a.mp3")
    monkeypatch.setattr(settings, "MUSIC_PATH", str(library.root))

    response = await client.post("/api/v1/admin/scan")

    assert response.status_code == 202
    assert response.json()["path"] == str(library.root)
    final = await _wait_for_terminal(client)
    assert final["status"] == "completed"


async def test_reset_scan_state(client, library, coordinator):
    library("a.mp3")
    await client.post("/api/v1/admin/scan", json={"path": str(library.root)})
    await coordinator.wait()

    response = await client.delete("/api/v1/admin/scan")

    assert response.status_code == 200
    assert response.json()["status"] == "idle"
    assert (await client.get("/api/v1/admin/scan")).json()["stats"] is None


async def test_reset_scan_state_while_running_is_rejected(
    client, session_factory, state_store, library, make_extractor
):
    from soundshelf.api.deps import get_coordinator
    from soundshelf.api.main import app
    from soundshelf.worker.coordinator import ScanCoordinator

    library("a.mp3")
    gate = threading.Event()
    coordinator = ScanCoordinator(
        session_factory, extractor=make_extractor(gate=gate), state_store=state_store
    )
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    await client.post("/api/v1/admin/scan", json={"path": str(library.root)})

    response = await client.delete("/api/v1/admin/scan")

    assert response.status_code == 409
    gate.set()
    await coordinator.wait()
