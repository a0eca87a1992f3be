from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_services
from app.core.logger import get_logger
from app.services.container import PipelineServices

router = APIRouter()
log = get_logger(__name__)


@router.get("/ready")
def readiness_probe(services: PipelineServices = Depends(get_services)):
    try:
        count = services.buffer.count()
    except Exception:
        log.exception("Readiness check failed: buffer unavailable")
        raise HTTPException(status_code=503, detail="buffer unavailable")
    return {"status": "ready", "buffered": count, "sync_configured": services.sync is not None}


@router.get("/live")
def liveness_probe():
    return {"status": "alive"}
