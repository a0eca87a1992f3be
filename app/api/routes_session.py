from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_services
from app.schemas.transcript import SessionExport
from app.services.container import PipelineServices

router = APIRouter()


@router.get("")
def get_session(services: PipelineServices = Depends(get_services)):
    session = services.manager.get_current_session()
    return {"session": session.model_dump(mode="json") if session else None}


@router.post("/start")
def start_session(
    language: Optional[str] = Query(None),
    services: PipelineServices = Depends(get_services),
):
    session_id = services.manager.start_session(language)
    return {"session_id": session_id}


@router.get("/export")
def export_session(services: PipelineServices = Depends(get_services)):
    """Portable backup document: id, metadata, all entries, snapshot."""
    try:
        doc = services.manager.export_session()
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return doc.model_dump(mode="json", by_alias=True)


@router.post("/import")
def import_session(document: SessionExport, services: PipelineServices = Depends(get_services)):
    session = services.manager.import_session(document)
    return {"ok": True, "session_id": session.id, "transcripts": len(document.transcripts)}
