"""Tests for the FastAPI surface: REST endpoints and the WebSocket relay."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeSynthesis
from krishi.api.routes import voice
from krishi.core.session import AssistantSession
from krishi.main import app


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        response = client.get("/health/ready")
        assert response.json()["status"] == "ready"

    def test_live(self, client):
        assert client.get("/health/live").json()["status"] == "alive"

    def test_metrics_counts_sessions(self, client):
        before = client.get("/health/metrics").json()["active_sessions"]

        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "synthesis": False})
            ws.receive_json()
            assert client.get("/health/metrics").json()["active_sessions"] == before + 1

    def test_nlu_self_test(self, client):
        results = client.get("/nlu-test").json()["results"]

        assert results[0]["language"]["language"] == "mr"
        assert results[0]["intent"]["intent"] == "weather"
        assert results[1]["language"]["language"] == "en"
        assert results[1]["intent"]["intent"] == "market"


class TestAssistantRoutes:
    def test_message_with_location(self, client):
        response = client.post("/api/v1/assistant/message", json={
            "text": "उद्या पाऊस पडेल का?",
            "location": {"latitude": 19.8762, "longitude": 75.3433, "accuracy": 20}
        })

        assert response.status_code == 200
        data = response.json()
        assert data["detected_language"] == "mr"
        assert data["intent"]["intent"] == "weather"
        assert data["intent"]["entities"] == {"timeframe": "उद्या"}
        assert data["location"]["latitude"] == 19.8762

    def test_message_without_location(self, client):
        response = client.post("/api/v1/assistant/message", json={"text": "Market price of cotton?"})

        data = response.json()
        assert data["intent"]["intent"] == "market"
        assert data["intent"]["entities"]["crops"] == ["cotton"]
        assert "location" not in data

    def test_message_with_attachment(self, client):
        response = client.post("/api/v1/assistant/message", json={
            "text": "पानावर डाग",
            "attachment": {"filename": "leaf.jpg", "content_type": "image/jpeg", "size": 1024}
        })
        assert response.json()["attachment"]["filename"] == "leaf.jpg"

    def test_empty_message_rejected(self, client):
        response = client.post("/api/v1/assistant/message", json={"text": ""})
        assert response.status_code == 422

    def test_understand(self, client):
        response = client.post("/api/v1/assistant/understand", json={
            "text": "माझ्या कापसाच्या पिकाला पाऊस नुकसान"
        })

        data = response.json()
        assert data["language"]["language"] == "mr"
        assert data["intent"]["intent"] == "weather"
        assert data["intent"]["entities"]["crops"] == ["कापूस"]

    def test_understand_blank(self, client):
        data = client.post("/api/v1/assistant/understand", json={"text": "  "}).json()
        assert data["language"] == {"language": "unknown", "confidence": 0.0}
        assert data["intent"]["intent"] == "general"

    def test_markets(self, client):
        response = client.get("/api/v1/assistant/markets", params={
            "latitude": 19.8762,
            "longitude": 75.3433,
            "radius_km": 100
        })

        markets = response.json()["markets"]
        assert [m["name"] for m in markets][0] == "Aurangabad APMC Market"
        assert markets[1]["name_marathi"] == "जालना कृषी उत्पादन मार्केट कमिटी"

    def test_markets_rejects_bad_coordinates(self, client):
        response = client.get("/api/v1/assistant/markets", params={"latitude": 120, "longitude": 75})
        assert response.status_code == 422


class TestVoiceStream:
    def test_text_turn(self, client):
        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "recognition": False, "geolocation": False, "synthesis": False})
            session = ws.receive_json()
            assert session["type"] == "session"
            assert session["capabilities"]["speech_recognition"] is False

            ws.send_json({"type": "text", "text": "What is the onion price in the market?"})
            reply = ws.receive_json()

            assert reply["type"] == "message"
            assert reply["message"]["intent"]["intent"] == "market"
            assert "location" not in reply["message"]

    def test_listen_without_recognition(self, client):
        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "synthesis": False})
            ws.receive_json()

            ws.send_json({"type": "listen"})
            error = ws.receive_json()

            assert error["type"] == "error"
            assert error["error"] == "UNSUPPORTED_CAPABILITY"

    def test_voice_turn_with_location(self, client):
        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({
                "type": "hello",
                "recognition": True,
                "languages": ["mr-IN", "en-IN"],
                "geolocation": True,
                "synthesis": False
            })
            ws.receive_json()

            ws.send_json({"type": "listen"})
            command = ws.receive_json()
            assert command["type"] == "recognition.start"
            assert command["channel"] == "capture"
            assert command["config"]["language"] == "mr-IN"

            ws.send_json({
                "type": "recognition.event",
                "channel": "capture",
                "generation": command["generation"],
                "event": "result",
                "result_index": 0,
                "results": [{
                    "is_final": True,
                    "alternatives": [{"transcript": "माझ्या कापसाच्या पिकाला पाऊस नुकसान", "confidence": 0.9}]
                }]
            })
            ws.send_json({
                "type": "recognition.event",
                "channel": "capture",
                "generation": command["generation"],
                "event": "end"
            })

            transcript = ws.receive_json()
            assert transcript["type"] == "transcript"
            assert transcript["is_final"] is True
            assert transcript["transcript"]["detected_language"] == "mr"

            request = ws.receive_json()
            assert request["type"] == "geolocation.request"
            ws.send_json({
                "type": "geolocation.position",
                "request_id": request["request_id"],
                "latitude": 19.8762,
                "longitude": 75.3433,
                "accuracy": 25
            })

            reply = ws.receive_json()
            assert reply["type"] == "message"
            message = reply["message"]
            assert message["intent"]["intent"] == "weather"
            assert message["intent"]["entities"]["crops"] == ["कापूस"]
            assert message["location"]["address"] == {"state": "Maharashtra", "country": "India"}

    def test_location_denied_over_relay(self, client):
        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "geolocation": True, "synthesis": False})
            ws.receive_json()

            ws.send_json({"type": "text", "text": "market rate for onion"})
            request = ws.receive_json()
            ws.send_json({"type": "geolocation.error", "request_id": request["request_id"], "code": 1})

            reply = ws.receive_json()
            assert reply["type"] == "message"
            assert "location" not in reply["message"]

    def test_ping(self, client):
        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "synthesis": False})
            ws.receive_json()
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_speak_reports_voice(self, client, monkeypatch):
        monkeypatch.setattr(voice, "EdgeTTSSynthesis", lambda sink: FakeSynthesis())

        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello"})
            session = ws.receive_json()
            assert session["capabilities"]["speech_synthesis"] is True

            ws.send_json({"type": "speak", "text": "उद्या पाऊस पडेल", "language": "mr"})
            assert ws.receive_json() == {
                "type": "speaking",
                "language": "mr-IN",
                "voice": "hi-IN-SwaraNeural"
            }

    def test_malformed_position_keeps_connection(self, client):
        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "geolocation": True, "synthesis": False})
            ws.receive_json()

            ws.send_json({"type": "geolocation.position", "request_id": "nope"})
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_malformed_position_fails_pending_request(self, client):
        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "geolocation": True, "synthesis": False})
            ws.receive_json()

            ws.send_json({"type": "text", "text": "market rate for onion"})
            request = ws.receive_json()
            ws.send_json({"type": "geolocation.position", "request_id": request["request_id"], "latitude": "north"})

            reply = ws.receive_json()
            assert reply["type"] == "message"
            assert "location" not in reply["message"]

    def test_malformed_recognition_result_is_dropped(self, client):
        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "recognition": True, "synthesis": False})
            ws.receive_json()

            ws.send_json({"type": "listen"})
            command = ws.receive_json()
            ws.send_json({
                "type": "recognition.event",
                "channel": "capture",
                "generation": command["generation"],
                "event": "result",
                "results": "पाऊस"
            })
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_non_object_message_ignored(self, client):
        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "synthesis": False})
            ws.receive_json()

            ws.send_json(["ping"])
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_unexpected_handler_error_reported(self, client, monkeypatch):
        def broken(self):
            raise RuntimeError("cache corrupted")

        monkeypatch.setattr(AssistantSession, "clear_location", broken)

        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "synthesis": False})
            ws.receive_json()

            ws.send_json({"type": "location.clear"})
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["error"] == "INTERNAL_ERROR"

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_unexpected_turn_error_reported(self, client, monkeypatch):
        async def broken(self):
            raise RuntimeError("geocoder exploded")

        monkeypatch.setattr(AssistantSession, "request_location", broken)

        with client.websocket_connect("/api/v1/voice/stream") as ws:
            ws.send_json({"type": "hello", "geolocation": True, "synthesis": False})
            ws.receive_json()

            ws.send_json({"type": "location.request"})
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["error"] == "INTERNAL_ERROR"

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}
