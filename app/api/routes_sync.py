from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_services, get_sync_manager
from app.core.errors import StorageFailure
from app.core.logger import get_logger
from app.schemas.transcript import SyncState
from app.services.container import PipelineServices
from app.services.sync_manager import SyncManager

router = APIRouter()
log = get_logger(__name__)


@router.get("/status")
async def get_sync_status(services: PipelineServices = Depends(get_services)):
    state = services.sync.status() if services.sync is not None else SyncState()
    return {"configured": services.sync is not None, **state.model_dump()}


@router.post("/run")
async def run_sync(force: bool = Query(True), sync: SyncManager = Depends(get_sync_manager)):
    """Manual sync. Forced by default, like the UI's sync button."""
    try:
        result = await sync.sync(force=force)
    except StorageFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"ok": result.ok, **result.model_dump()}


@router.post("/export-all")
async def export_all(sync: SyncManager = Depends(get_sync_manager)):
    """Push every buffered entry to the remote sink without evicting."""
    try:
        result = await sync.export_all()
    except StorageFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        log.exception("Export to remote sink failed")
        raise HTTPException(status_code=502, detail=f"Export failed: {e}")
    return {"ok": result.ok, **result.model_dump()}


@router.post("/auto/start")
async def start_auto_sync(
    interval_ms: Optional[int] = Query(None, ge=1000),
    sync: SyncManager = Depends(get_sync_manager),
):
    await sync.start(interval_ms)
    return sync.status().model_dump()


@router.post("/auto/stop")
async def stop_auto_sync(sync: SyncManager = Depends(get_sync_manager)):
    await sync.stop()
    return sync.status().model_dump()
