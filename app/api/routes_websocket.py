from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import json
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from app.core.errors import IngestFailure, RankingFailure
from app.core.logger import get_logger
from app.schemas.transcript import TranscriptEntry
from app.services.container import PipelineServices

router = APIRouter()
log = get_logger(__name__)


class SnapshotRequest(BaseModel):
    mode: str = "word"
    max_items: Optional[int] = Field(default=None, ge=1)


async def _handle_entry(services: PipelineServices, message: dict) -> dict:
    try:
        entry = TranscriptEntry.model_validate(message)
    except ValidationError as e:
        return {"type": "error", "message": f"invalid entry: {e.error_count()} errors"}
    try:
        await asyncio.to_thread(services.manager.add_entry, entry)
    except IngestFailure as e:
        return {"type": "error", "message": str(e), "timestamp": entry.timestamp}
    return {"type": "ack", "timestamp": entry.timestamp}


async def _handle_snapshot(services: PipelineServices, message: dict) -> dict:
    try:
        request = SnapshotRequest.model_validate(message)
    except ValidationError as e:
        return {"type": "error", "message": f"invalid snapshot request: {e.error_count()} errors"}
    try:
        snapshot = await asyncio.to_thread(
            services.manager.generate_and_cache_snapshot, request.mode, request.max_items
        )
    except RankingFailure as e:
        return {"type": "error", "message": str(e)}
    return {"type": "snapshot", "data": snapshot.model_dump(mode="json")}


@router.websocket("/ws/transcripts")
async def transcript_stream(websocket: WebSocket):
    """
    Streaming ingestion for the speech-capture producer.

    Messages:
    - {"type": "entry", "text": "...", "timestamp": 1700000000000, "isFinal": true}
      -> {"type": "ack", "timestamp": ...}
    - {"type": "snapshot", "mode": "word" | "sentence"} -> {"type": "snapshot", "data": {...}}
    - {"type": "ping"} -> {"type": "pong"}
    """
    await websocket.accept()
    services: PipelineServices = websocket.app.state.services
    log.info("Transcript stream connected")

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "invalid json"})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "expected an object"})
                continue

            kind = message.get("type")
            if kind == "entry":
                await websocket.send_json(await _handle_entry(services, message))
            elif kind == "snapshot":
                await websocket.send_json(await _handle_snapshot(services, message))
            elif kind == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({"type": "error", "message": "unknown type"})
    except WebSocketDisconnect:
        log.info("Transcript stream closed")
