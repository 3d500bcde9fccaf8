import asyncio
import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from loguru import logger

from soundshelf.api.deps import get_coordinator
from soundshelf.api.schemas import ScanRequest, ScanStarted
from soundshelf.core.scan_state import ScanStatus
from soundshelf.core.scanner_config import ScanConfig
from soundshelf.worker.coordinator import ScanCoordinator

router = APIRouter()


@router.post("/scan", response_model=ScanStarted, status_code=202)
async def trigger_scan(
    req: Optional[ScanRequest] = None,
    coordinator: ScanCoordinator = Depends(get_coordinator),
):
    """Trigger a library rescan. The scan runs in the background."""
    req = req or ScanRequest()
    try:
        config = ScanConfig.from_settings(
            req.path,
            batch_size=req.batch_size,
            path_batch_size=req.path_batch_size,
            optimized_mode=req.optimized_mode,
            show_progress=False,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    admission = coordinator.start(config)
    if not admission.accepted:
        raise HTTPException(status_code=409, detail=admission.reason)

    state = coordinator.status()
    return ScanStarted(
        message="Music library rescan initiated", path=state.root_path or config.root_path
    )


@router.get("/scan")
async def get_scan_state(coordinator: ScanCoordinator = Depends(get_coordinator)):
    """Current scan status and progress counters."""
    state = coordinator.status()
    return {**state.model_dump(mode="json"), "progress": state.progress}


@router.get("/scan/stream")
async def stream_scan_state(coordinator: ScanCoordinator = Depends(get_coordinator)):
    """Server-Sent Events endpoint for real-time scan progress.
    Returns a stream of JSON updates every 500ms until the scan is not running.
    """

    async def event_generator():
        try:
            yield f"data: {json.dumps({'connected': True})}\n\n"

            while True:
                state = coordinator.status()
                payload = {**state.model_dump(mode="json"), "progress": state.progress}
                yield f"data: {json.dumps(payload)}\n\n"

                if state.status != ScanStatus.RUNNING:
                    break

                await asyncio.sleep(0.5)  # 500ms updates
        except asyncio.CancelledError:
            logger.debug("Scan progress stream closed by client")
            raise

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.delete("/scan")
async def reset_scan_state(coordinator: ScanCoordinator = Depends(get_coordinator)):
    """Clear the last scan's result and return to idle. Refused while running."""
    if not coordinator.reset():
        raise HTTPException(status_code=409, detail="already running")
    state = coordinator.status()
    return {**state.model_dump(mode="json"), "progress": state.progress}
