from fastapi import HTTPException, Request

from app.services.container import PipelineServices
from app.services.sync_manager import SyncManager


def get_services(request: Request) -> PipelineServices:
    return request.app.state.services


def get_sync_manager(request: Request) -> SyncManager:
    sync = get_services(request).sync
    if sync is None:
        raise HTTPException(status_code=503, detail="Remote sync is not configured")
    return sync
