import json

import pytest

from app.core.errors import IngestFailure, RankingFailure
from app.schemas.transcript import DisplayMode
from app.services.local_buffer import TranscriptBuffer
from app.services.session_manager import TranscriptionSessionManager, word_count
from app.services.session_store import SessionStore


def test_word_count():
    assert word_count("hello big  world") == 3
    assert word_count("   ") == 0


def test_session_created_lazily_on_first_entry(manager):
    assert manager.sessions.latest() is None
    manager.on_entry("hello big world", timestamp=1)
    manager.on_entry("again", timestamp=2)

    session = manager.get_current_session()
    assert session is not None
    assert session.metadata.total_transcripts == 2
    assert session.metadata.total_words == 4
    assert session.metadata.language == "ja-JP"
    assert session.metadata.updated_at >= session.metadata.created_at


def test_latest_session_is_resumed(buffer, settings):
    store = SessionStore(":memory:")
    first = TranscriptionSessionManager(buffer, store, settings=settings)
    first.on_entry("one", timestamp=1)
    session_id = first.current_session_id()

    second = TranscriptionSessionManager(buffer, store, settings=settings)
    assert second.current_session_id() == session_id
    second.on_entry("two", timestamp=2)
    assert store.get(session_id).metadata.total_transcripts == 2


def test_start_session_ids_are_unique(manager):
    a = manager.start_session()
    b = manager.start_session(language="en-US")
    assert a != b
    assert manager.current_session_id() == b
    assert manager.get_current_session().metadata.language == "en-US"


def test_failed_write_leaves_counters_unchanged(manager):
    manager.start_session()
    manager.buffer.close()
    with pytest.raises(IngestFailure):
        manager.on_entry("lost words", timestamp=5)
    meta = manager.get_current_session().metadata
    assert meta.total_transcripts == 0
    assert meta.total_words == 0


def test_snapshot_is_cached_with_version(manager):
    for i in range(3):
        manager.on_entry("Kubernetes cluster upgrade", timestamp=i)

    snapshot = manager.generate_and_cache_snapshot(version="v2")
    assert snapshot.mode is DisplayMode.word
    assert {i.text for i in snapshot.items} >= {"Kubernetes", "cluster", "upgrade"}

    assert manager.get_snapshot() == snapshot
    assert manager.get_snapshot("v2") == snapshot
    assert manager.get_snapshot("v1.0.0") is None


def test_snapshot_uses_default_version(manager):
    manager.on_entry("anything", timestamp=1)
    assert manager.generate_and_cache_snapshot().version == "v1.0.0"


def test_new_snapshot_replaces_old(manager):
    manager.on_entry("Quantum computing changes cryptography research", timestamp=1)
    manager.on_entry("Quantum computing changes cryptography forever", timestamp=2)

    manager.generate_and_cache_snapshot(DisplayMode.word)
    manager.generate_and_cache_snapshot("sentence")

    cached = manager.get_snapshot()
    assert cached.mode is DisplayMode.sentence
    assert all(item.text.startswith("Quantum") for item in cached.items)


def test_snapshot_ranks_all_entries_not_display_window(buffer, make_settings):
    manager = TranscriptionSessionManager(buffer, SessionStore(":memory:"), settings=make_settings(DISPLAY_LIMIT=2))
    for i in range(3):
        manager.on_entry("mango report", timestamp=i)
    manager.on_entry("papaya", timestamp=10)
    manager.on_entry("papaya", timestamp=11)

    assert [e.text for e in manager.get_recent()] == ["papaya", "papaya"]
    texts = {i.text for i in manager.generate_and_cache_snapshot().items}
    assert "mango" in texts


def test_unknown_mode_is_rejected(manager):
    with pytest.raises(RankingFailure):
        manager.generate_and_cache_snapshot("paragraph")


def test_export_import_round_trip(manager, settings):
    manager.on_entry("first fragment", timestamp=100, is_final=False)
    manager.on_entry("second fragment", timestamp=200)
    manager.generate_and_cache_snapshot()

    exported = manager.export_session_json()
    doc = json.loads(exported)
    assert doc["id"] == manager.current_session_id()
    assert doc["transcripts"][0]["isFinal"] is True
    assert doc["transcripts"][1]["isFinal"] is False

    restored = TranscriptionSessionManager(TranscriptBuffer(":memory:"), SessionStore(":memory:"), settings=settings)
    session = restored.import_session(exported)

    assert session.id == doc["id"]
    assert restored.current_session_id() == doc["id"]
    assert restored.buffer.count() == 2
    restored_meta = restored.get_current_session().metadata
    assert restored_meta.total_transcripts == 2
    assert restored_meta.total_words == 4
    assert {(e.timestamp, e.text, e.is_final) for e in restored.get_all()} == {
        (e.timestamp, e.text, e.is_final) for e in manager.get_all()
    }
    assert restored.get_snapshot() == manager.get_snapshot()


def test_import_accepts_dict(manager, settings):
    manager.on_entry("hello", timestamp=1)
    doc = manager.export_session().model_dump(by_alias=True)

    restored = TranscriptionSessionManager(TranscriptBuffer(":memory:"), SessionStore(":memory:"), settings=settings)
    restored.import_session(doc)
    assert [e.text for e in restored.get_all()] == ["hello"]


def test_clear_all(manager):
    manager.on_entry("hello", timestamp=1)
    manager.clear_all()
    assert manager.buffer.count() == 0
    assert manager.sessions.latest() is None
