"""Tests for the HTTP and WebSocket surface (FastAPI TestClient)."""

import base64

import pytest
from fastapi.testclient import TestClient

from speakerid.engine import SpeakerEngine
from speakerid.main import create_app
from speakerid.speakers import ProfileStore


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine)) as c:
        yield c


def _resolve(client, session_id, label, audio):
    resp = client.post(f"/api/sessions/{session_id}/resolve", json={"label": label, "audio": b64(audio)})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestSessions:
    def test_resolve_creates_then_caches(self, client):
        first = _resolve(client, "s1", "spk_0", b"A")
        assert first["is_new_speaker"] is True
        assert first["speaker_name"] == "Speaker 1"
        again = _resolve(client, "s1", "spk_0", b"A2")
        assert again["speaker_id"] == first["speaker_id"]
        assert again["confidence"] == 0.9

    def test_resolve_unusable_audio_returns_placeholder(self, client):
        match = _resolve(client, "s1", "spk_0", b"garbage")
        assert match["speaker_id"] == "unknown"
        assert match["speaker_name"] == "Unknown Speaker"

    def test_resolve_rejects_invalid_base64(self, client):
        resp = client.post("/api/sessions/s1/resolve", json={"label": "spk_0", "audio": "***"})
        assert resp.status_code == 422

    def test_end_session(self, client):
        _resolve(client, "s1", "spk_0", b"A")
        assert client.delete("/api/sessions/s1").status_code == 200
        assert client.delete("/api/sessions/s1").status_code == 404

    def test_store_failure_is_503(self, tmp_path, analyzer):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        engine = SpeakerEngine(ProfileStore(str(blocker / "p.json")), analyzer)
        with TestClient(create_app(engine)) as c:
            resp = c.post("/api/sessions/s1/resolve", json={"label": "spk_0", "audio": b64(b"A")})
        assert resp.status_code == 503


class TestSpeakers:
    def test_list_and_get(self, client):
        first = _resolve(client, "s1", "spk_0", b"A")
        listed = client.get("/api/speakers").json()
        assert [p["id"] for p in listed] == [first["speaker_id"]]
        assert listed[0]["features"]["pitch"] == 120.0
        assert listed[0]["meeting_ids"] == ["s1"]
        assert client.get(f"/api/speakers/{first['speaker_id']}").status_code == 200
        assert client.get("/api/speakers/missing").status_code == 404

    def test_rename(self, client):
        first = _resolve(client, "s1", "spk_0", b"A")
        resp = client.put(f"/api/speakers/{first['speaker_id']}/name", json={"name": "  Alice "})
        assert resp.status_code == 200
        profile = client.get(f"/api/speakers/{first['speaker_id']}").json()
        assert profile["display_name"] == "Alice"
        assert profile["verified"] is True
        assert client.put(f"/api/speakers/{first['speaker_id']}/name", json={"name": "  "}).status_code == 400
        assert client.put("/api/speakers/missing/name", json={"name": "Bob"}).status_code == 404

    def test_merge(self, client):
        a = _resolve(client, "s1", "spk_0", b"A")
        b = _resolve(client, "s1", "spk_1", b"B")
        body = {"primary_speaker_id": a["speaker_id"], "secondary_speaker_id": b["speaker_id"]}
        assert client.post("/api/speakers/merge", json=body).status_code == 200
        listed = client.get("/api/speakers").json()
        assert len(listed) == 1
        assert listed[0]["sample_count"] == 2
        # Secondary is gone now.
        assert client.post("/api/speakers/merge", json=body).status_code == 404

    def test_merge_with_itself_is_400(self, client):
        a = _resolve(client, "s1", "spk_0", b"A")
        body = {"primary_speaker_id": a["speaker_id"], "secondary_speaker_id": a["speaker_id"]}
        assert client.post("/api/speakers/merge", json=body).status_code == 400

    def test_delete(self, client):
        a = _resolve(client, "s1", "spk_0", b"A")
        assert client.delete(f"/api/speakers/{a['speaker_id']}").status_code == 200
        assert client.delete(f"/api/speakers/{a['speaker_id']}").status_code == 404
        again = _resolve(client, "s1", "spk_0", b"A")
        assert again["speaker_id"] != a["speaker_id"]

    def test_stats(self, client):
        empty = client.get("/api/speakers/stats").json()
        assert empty == {
            "total_speakers": 0,
            "verified_speakers": 0,
            "average_sample_count": 0.0,
            "recent_speakers": 0,
        }
        _resolve(client, "s1", "spk_0", b"A")
        assert client.get("/api/speakers/stats").json()["total_speakers"] == 1

    def test_create_train_identify(self, client):
        resp = client.post("/api/speakers/create", json={"display_name": "Bob", "audio": b64(b"B")})
        assert resp.status_code == 200
        bob = resp.json()
        assert bob["verified"] is True
        assert bob["meeting_ids"] == ["manual"]

        resp = client.post(f"/api/speakers/{bob['id']}/train", json={"audio": b64(b"B"), "session_id": "m2"})
        assert resp.status_code == 200
        assert resp.json()["sample_count"] == 2

        match = client.post("/api/speakers/identify", json={"audio": b64(b"B")}).json()
        assert match["speaker_id"] == bob["id"]
        known = client.post(
            "/api/speakers/identify", json={"audio": b64(b"A"), "known_speaker_id": bob["id"]}
        ).json()
        assert known == {"speaker_id": bob["id"], "speaker_name": "Bob", "confidence": 1.0, "is_new_speaker": False}

    def test_create_and_train_reject_bad_audio(self, client):
        resp = client.post("/api/speakers/create", json={"display_name": "Bob", "audio": b64(b"garbage")})
        assert resp.status_code == 422
        resp = client.post("/api/speakers/create", json={"display_name": " ", "audio": b64(b"B")})
        assert resp.status_code == 400
        resp = client.post("/api/speakers/missing/train", json={"audio": b64(b"B")})
        assert resp.status_code == 404


class TestSessionStream:
    def test_stream_attributes_each_event(self, client, engine):
        with client.websocket_connect("/ws/sessions/live-1") as ws:
            ws.send_text('{"label": "spk_0", "audio": "%s"}' % b64(b"A"))
            first = ws.receive_json()
            ws.send_text('{"label": "spk_0", "audio": "%s"}' % b64(b"A2"))
            second = ws.receive_json()
            ws.send_text('{"label": "spk_1", "audio": "%s"}' % b64(b"B"))
            third = ws.receive_json()

        assert first["type"] == "speaker"
        assert first["is_new_speaker"] is True
        assert second["speaker_id"] == first["speaker_id"]
        assert second["confidence"] == 0.9
        assert third["speaker_name"] == "Speaker 2"

    def test_bad_events_do_not_end_stream(self, client):
        with client.websocket_connect("/ws/sessions/live-2") as ws:
            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"
            ws.send_text('{"audio": "%s"}' % b64(b"A"))
            assert ws.receive_json()["detail"] == "label is required"
            ws.send_text('{"label": "spk_0", "audio": "%s"}' % b64(b"A"))
            assert ws.receive_json()["type"] == "speaker"

    def test_binary_frame_does_not_end_stream(self, client, engine):
        with client.websocket_connect("/ws/sessions/live-4") as ws:
            ws.send_bytes(b"\x00\x01")
            reply = ws.receive_json()
            assert reply == {"type": "error", "label": None, "detail": "event must be a JSON text message"}
            assert engine.sessions.get("live-4") is not None
            ws.send_text('{"label": "spk_0", "audio": "%s"}' % b64(b"A"))
            assert ws.receive_json()["type"] == "speaker"

    def test_disconnect_ends_session(self, client, engine):
        with client.websocket_connect("/ws/sessions/live-3") as ws:
            ws.send_text('{"label": "spk_0", "audio": "%s"}' % b64(b"A"))
            ws.receive_json()
            assert engine.sessions.get("live-3") is not None
        # The server-side finally block runs once the close is processed.
        assert client.get("/health").status_code == 200
        assert engine.sessions.get("live-3") is None
