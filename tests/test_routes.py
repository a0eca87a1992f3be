import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.services.container import create_services


def _entry(i, text=None, is_final=True):
    return {"text": text or f"entry number {i}", "timestamp": 1_700_000_000_000 + i, "isFinal": is_final}


@pytest.fixture
def client(make_settings, fake_sink):
    settings = make_settings(BUFFER_CAP=5, SYNC_BATCH_SIZE=2)
    app = create_app(services=create_services(settings, sink=fake_sink))
    with TestClient(app) as c:
        yield c


@pytest.fixture
def offline_client(make_settings):
    app = create_app(services=create_services(make_settings()))
    with TestClient(app) as c:
        yield c


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    assert client.get("/health/live").json() == {"status": "alive"}
    ready = client.get("/health/ready").json()
    assert ready["status"] == "ready"
    assert ready["buffered"] == 0
    assert ready["sync_configured"] is True


def test_ingest_and_read_back(client):
    for i in range(3):
        r = client.post("/transcripts", json=_entry(i, is_final=i != 2))
        assert r.status_code == 200
        assert r.json()["ok"] is True

    assert client.get("/transcripts/count").json() == {"count": 3, "cap": 5}

    recent = client.get("/transcripts/recent", params={"n": 2}).json()["transcripts"]
    assert [t["timestamp"] for t in recent] == [1_700_000_000_002, 1_700_000_000_001]
    assert recent[0]["isFinal"] is False


def test_invalid_entry_rejected(client):
    assert client.post("/transcripts", json={"text": "no timestamp"}).status_code == 422


def test_clear_transcripts(client):
    client.post("/transcripts", json=_entry(1))
    assert client.delete("/transcripts").json() == {"ok": True}
    assert client.get("/transcripts/count").json()["count"] == 0


def test_snapshot_generate_and_fetch(client):
    for i in range(3):
        client.post("/transcripts", json=_entry(i, text="Kubernetes cluster upgrade"))

    r = client.post("/cloud/snapshot", params={"mode": "word", "max_items": 2})
    assert r.status_code == 200
    snapshot = r.json()["snapshot"]
    assert snapshot["mode"] == "word"
    assert len(snapshot["items"]) == 2
    assert len(snapshot["items"][0]["position"]) == 3

    assert client.get("/cloud/snapshot").json()["snapshot"] == snapshot
    assert client.get("/cloud/snapshot", params={"version": "v9"}).json()["snapshot"] is None


def test_snapshot_unknown_mode(client):
    assert client.post("/cloud/snapshot", params={"mode": "paragraph"}).status_code == 422


def test_session_export_and_import(client, make_settings):
    client.post("/transcripts", json=_entry(1, text="hello big world"))
    session = client.get("/session").json()["session"]
    assert session["metadata"]["total_transcripts"] == 1
    assert session["metadata"]["total_words"] == 3

    doc = client.get("/session/export").json()
    assert doc["id"] == session["id"]
    assert doc["transcripts"][0]["isFinal"] is True

    other = create_app(services=create_services(make_settings()))
    with TestClient(other) as c:
        r = c.post("/session/import", json=doc)
        assert r.json() == {"ok": True, "session_id": doc["id"], "transcripts": 1}
        assert c.get("/transcripts/count").json()["count"] == 1
        assert c.get("/session").json()["session"]["id"] == doc["id"]


def test_start_session_with_language(client):
    session_id = client.post("/session/start", params={"language": "en-US"}).json()["session_id"]
    session = client.get("/session").json()["session"]
    assert session["id"] == session_id
    assert session["metadata"]["language"] == "en-US"


def test_manual_sync_and_status(client, fake_sink):
    for i in range(7):
        client.post("/transcripts", json=_entry(i))

    status = client.get("/sync/status").json()
    assert status["configured"] is True
    assert status["is_syncing"] is False

    result = client.post("/sync/run", params={"force": False}).json()
    assert result["ok"] is True
    assert result["synced"] == 2
    assert client.get("/transcripts/count").json()["count"] == 5
    assert [r.timestamp for r in fake_sink.rows] == [1_700_000_000_000, 1_700_000_000_001]
    assert client.get("/sync/status").json()["last_sync_time"] > 0


def test_export_all_and_failure(client, fake_sink):
    for i in range(3):
        client.post("/transcripts", json=_entry(i))

    result = client.post("/sync/export-all").json()
    assert result["synced"] == 3
    assert client.get("/transcripts/count").json()["count"] == 3

    fake_sink.fail_calls = {fake_sink.calls + 1}
    assert client.post("/sync/export-all").status_code == 502


def test_auto_sync_start_and_stop(client):
    state = client.post("/sync/auto/start", params={"interval_ms": 60_000}).json()
    assert state["auto_sync_active"] is True
    state = client.post("/sync/auto/stop").json()
    assert state["auto_sync_active"] is False


def test_remote_routes_need_supabase(client):
    assert client.get("/remote/stats").status_code == 503


def test_sync_routes_without_sink(offline_client):
    assert offline_client.get("/sync/status").json()["configured"] is False
    assert offline_client.post("/sync/run").status_code == 503
    assert offline_client.post("/sync/export-all").status_code == 503
    assert offline_client.get("/remote/search", params={"q": "x"}).status_code == 503
    assert offline_client.get("/health/ready").json()["sync_configured"] is False
    # ingestion keeps working
    assert offline_client.post("/transcripts", json=_entry(1)).status_code == 200


def test_websocket_stream(client):
    with client.websocket_connect("/ws/transcripts") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        for i in range(3):
            ws.send_json({"type": "entry", **_entry(i, text="Robots build robots")})
            assert ws.receive_json() == {"type": "ack", "timestamp": 1_700_000_000_000 + i}

        ws.send_json({"type": "snapshot", "mode": "word"})
        reply = ws.receive_json()
        assert reply["type"] == "snapshot"
        assert reply["data"]["items"][0]["text"] == "Robots"

        ws.send_json({"type": "entry", "text": "missing timestamp"})
        assert ws.receive_json()["type"] == "error"

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "message": "invalid json"}

        ws.send_json({"type": "snapshot", "mode": "paragraph"})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"type": "dance"})
        assert ws.receive_json() == {"type": "error", "message": "unknown type"}

    assert client.get("/transcripts/count").json()["count"] == 3


def test_websocket_rejects_bad_max_items_and_stays_open(client):
    with client.websocket_connect("/ws/transcripts") as ws:
        ws.send_json({"type": "entry", **_entry(1, text="Robots build robots")})
        assert ws.receive_json()["type"] == "ack"

        ws.send_json({"type": "snapshot", "mode": "word", "max_items": "ten"})
        reply = ws.receive_json()
        assert reply["type"] == "error"
        assert reply["message"].startswith("invalid snapshot request")

        ws.send_json({"type": "snapshot", "mode": "word", "max_items": 0})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"type": "snapshot", "mode": "word", "max_items": 1})
        reply = ws.receive_json()
        assert reply["type"] == "snapshot"
        assert len(reply["data"]["items"]) == 1


def test_buffer_failure_maps_to_503(client):
    client.post("/transcripts", json=_entry(1))
    client.app.state.services.buffer.close()

    assert client.post("/sync/run").status_code == 503
    assert client.post("/sync/export-all").status_code == 503
    assert client.get("/transcripts/count").status_code == 503
    assert client.get("/transcripts/recent").status_code == 503
    assert client.get("/sync/status").json()["is_syncing"] is False
