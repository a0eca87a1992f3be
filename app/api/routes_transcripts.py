from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_services
from app.core.errors import IngestFailure, StorageFailure
from app.core.logger import get_logger
from app.schemas.transcript import TranscriptEntry
from app.services.container import PipelineServices

router = APIRouter()
log = get_logger(__name__)


@router.post("")
def add_transcript(entry: TranscriptEntry, services: PipelineServices = Depends(get_services)):
    """Ingest one transcript entry from the upstream producer."""
    try:
        services.manager.add_entry(entry)
    except IngestFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"ok": True, "timestamp": entry.timestamp}


@router.get("/recent")
def get_recent(
    n: Optional[int] = Query(None, ge=0),
    services: PipelineServices = Depends(get_services),
):
    """Newest entries first; defaults to DISPLAY_LIMIT."""
    try:
        entries = services.manager.get_recent(n)
    except StorageFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"transcripts": [e.model_dump(by_alias=True) for e in entries]}


@router.get("/count")
def get_count(services: PipelineServices = Depends(get_services)):
    try:
        count = services.buffer.count()
    except StorageFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"count": count, "cap": services.settings.BUFFER_CAP}


@router.delete("")
def clear_transcripts(services: PipelineServices = Depends(get_services)):
    """Drop every buffered entry and every session."""
    services.manager.clear_all()
    return {"ok": True}
