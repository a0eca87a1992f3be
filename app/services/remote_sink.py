"""
Remote durable sink for evicted transcript rows.

`RemoteSink` is the only contract the sync manager depends on: push one batch,
get back the number of rows inserted, or an exception. `SupabaseSink` is the
default implementation, talking to a Supabase/PostgREST table over httpx.
A batch is a single INSERT request, so it is accepted or rejected as a whole.

The read helpers (fetch_range, search, delete_older_than, stats) back the
/remote routes and are not used by sync.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import httpx

from app.core.config import Settings, get_settings
from app.core.errors import InitializationFailure, RemoteSinkError, SyncBatchFailure
from app.core.logger import get_logger
from app.schemas.transcript import RemoteStats, TranscriptRow

log = get_logger(__name__)


class RemoteSink(Protocol):
    async def push_batch(self, rows: Sequence[TranscriptRow]) -> int:
        ...


class SupabaseSink:
    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        table: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.url = (url or self._settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key or self._settings.SUPABASE_KEY
        self.table = table or self._settings.SUPABASE_TABLE
        self._timeout = timeout or self._settings.SUPABASE_TIMEOUT
        self._transport = transport
        self._aclient: Optional[httpx.AsyncClient] = None
        if not self.url or not self.api_key:
            raise InitializationFailure("SUPABASE_URL and SUPABASE_KEY must be set for the remote sink")

    @property
    def endpoint(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _get_async_client(self) -> httpx.AsyncClient:
        if self._aclient is None:
            self._aclient = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._aclient

    async def push_batch(self, rows: Sequence[TranscriptRow]) -> int:
        """Insert one batch of rows. Returns the number of rows the table accepted.

        Raises SyncBatchFailure on any transport or HTTP error.
        """
        if not rows:
            return 0
        payload = [r.model_dump() for r in rows]
        try:
            client = self._get_async_client()
            resp = await client.post(self.endpoint, json=payload, headers=self._headers("return=representation"))
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SyncBatchFailure(f"Supabase insert failed: {e}", batch_size=len(rows)) from e
        return len(data) if isinstance(data, list) else 0

    # -------------------------
    # Read-side helpers
    # -------------------------
    async def _request(
        self,
        method: str,
        params: Sequence[Tuple[str, str]],
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        try:
            client = self._get_async_client()
            resp = await client.request(method, self.endpoint, params=list(params), headers=self._headers(prefer))
            resp.raise_for_status()
            return resp
        except httpx.HTTPError as e:
            log.exception("Supabase %s request failed", method)
            raise RemoteSinkError(f"Supabase {method} failed: {e}") from e

    async def fetch_range(
        self,
        start_timestamp: Optional[int] = None,
        end_timestamp: Optional[int] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        params: List[Tuple[str, str]] = [("select", "*"), ("order", "timestamp.desc"), ("limit", str(limit))]
        if start_timestamp is not None:
            params.append(("timestamp", f"gte.{start_timestamp}"))
        if end_timestamp is not None:
            params.append(("timestamp", f"lte.{end_timestamp}"))
        resp = await self._request("GET", params)
        return resp.json() or []

    async def search(self, text: str, limit: int = 50) -> List[Dict[str, Any]]:
        params = [
            ("select", "*"),
            ("text", f"ilike.*{text}*"),
            ("order", "timestamp.desc"),
            ("limit", str(limit)),
        ]
        resp = await self._request("GET", params)
        return resp.json() or []

    async def delete_older_than(self, days_to_keep: int = 30) -> int:
        cutoff = int(time.time() * 1000) - days_to_keep * 24 * 60 * 60 * 1000
        resp = await self._request("DELETE", [("timestamp", f"lt.{cutoff}")], prefer="return=representation")
        data = resp.json()
        removed = len(data) if isinstance(data, list) else 0
        log.info("Deleted %d remote rows older than %d days", removed, days_to_keep)
        return removed

    async def _edge_timestamp(self, direction: str) -> Optional[int]:
        resp = await self._request(
            "GET", [("select", "timestamp"), ("order", f"timestamp.{direction}"), ("limit", "1")]
        )
        rows = resp.json() or []
        return int(rows[0]["timestamp"]) if rows else None

    async def stats(self) -> RemoteStats:
        resp = await self._request("HEAD", [("select", "*")], prefer="count=exact")
        # Content-Range looks like "0-24/3573" or "*/0"
        content_range = resp.headers.get("content-range", "")
        total = 0
        if "/" in content_range:
            tail = content_range.rsplit("/", 1)[1]
            total = int(tail) if tail.isdigit() else 0
        return RemoteStats(
            total_count=total,
            latest_timestamp=await self._edge_timestamp("desc"),
            oldest_timestamp=await self._edge_timestamp("asc"),
        )

    async def aclose(self) -> None:
        if self._aclient is not None:
            await self._aclient.aclose()
            self._aclient = None
