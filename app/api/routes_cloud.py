from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_services
from app.core.errors import RankingFailure
from app.services.container import PipelineServices

router = APIRouter()


@router.post("/snapshot")
def generate_snapshot(
    mode: str = Query("word"),
    max_items: Optional[int] = Query(None, ge=1),
    version: Optional[str] = Query(None),
    services: PipelineServices = Depends(get_services),
):
    """Rank every buffered entry and cache the result as the session snapshot."""
    try:
        snapshot = services.manager.generate_and_cache_snapshot(mode, max_items=max_items, version=version)
    except RankingFailure as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"snapshot": snapshot.model_dump(mode="json")}


@router.get("/snapshot")
def get_snapshot(
    version: Optional[str] = Query(None),
    services: PipelineServices = Depends(get_services),
):
    """Last cached snapshot; null when absent or built by another version."""
    snapshot = services.manager.get_snapshot(version=version)
    return {"snapshot": snapshot.model_dump(mode="json") if snapshot else None}
