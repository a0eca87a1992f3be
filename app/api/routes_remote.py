from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_services
from app.core.errors import RemoteSinkError
from app.services.container import PipelineServices
from app.services.remote_sink import SupabaseSink

router = APIRouter()


def _remote(services: PipelineServices = Depends(get_services)) -> SupabaseSink:
    if not isinstance(services.sink, SupabaseSink):
        raise HTTPException(status_code=503, detail="Remote store is not configured")
    return services.sink


@router.get("/transcripts")
async def remote_transcripts(
    start: Optional[int] = Query(None),
    end: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    sink: SupabaseSink = Depends(_remote),
):
    """Rows already migrated to the remote store, newest first."""
    try:
        rows = await sink.fetch_range(start, end, limit)
    except RemoteSinkError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"transcripts": rows}


@router.get("/search")
async def remote_search(
    q: str = Query(..., min_length=1),
    limit: int = Query(50, ge=1, le=500),
    sink: SupabaseSink = Depends(_remote),
):
    try:
        rows = await sink.search(q, limit)
    except RemoteSinkError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"query": q, "transcripts": rows}


@router.get("/stats")
async def remote_stats(sink: SupabaseSink = Depends(_remote)):
    try:
        stats = await sink.stats()
    except RemoteSinkError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return stats.model_dump()


@router.delete("/old")
async def remote_delete_old(
    days: int = Query(30, ge=1),
    sink: SupabaseSink = Depends(_remote),
):
    try:
        removed = await sink.delete_older_than(days)
    except RemoteSinkError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"deleted": removed}
