"""
Voice WebSocket Endpoint.
Relays the browser's native speech recognition, geolocation and audio
playback to a server-side AssistantSession.
"""

import asyncio
import json
import logging
from typing import Any, Coroutine, Dict, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from krishi.config import get_settings
from krishi.core.exceptions import AssistantException
from krishi.core.message import OutgoingMessage
from krishi.core.session import AssistantSession, SessionManager
from krishi.services.location.capability import ClientGeolocation
from krishi.services.location.geocoding import NominatimGeocoder
from krishi.services.location.models import LocationFix
from krishi.services.stt.capability import ClientRecognition
from krishi.services.tts.capability import EdgeTTSSynthesis

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()

# Live WebSocket sessions
session_manager = SessionManager()


class WebSocketTransport:
    """Sends finished envelopes back over the connection."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send(self, message: OutgoingMessage):
        await self.websocket.send_json({"type": "message", "message": message.to_dict()})


def error_payload(exc: AssistantException) -> Dict[str, Any]:
    return {
        "type": "error",
        "error": exc.error_code,
        "message": exc.message,
        "details": exc.details
    }


def internal_error_payload(exc: Exception) -> Dict[str, Any]:
    return {
        "type": "error",
        "error": "INTERNAL_ERROR",
        "message": "An unexpected error occurred",
        "details": {"type": type(exc).__name__} if settings.DEBUG else {}
    }


def known_fix_from(data: Dict[str, Any]) -> Optional[LocationFix]:
    location = data.get("location")
    if not location:
        return None
    try:
        return LocationFix.from_dict(location)
    except (KeyError, TypeError, ValueError):
        logger.warning(f"Ignoring malformed location: {location}")
        return None


class VoiceConnection:
    """
    Message loop for one WebSocket client.

    Turns run as tasks so recognizer and geolocation events keep
    flowing while a capture or location fetch is awaited.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.session: Optional[AssistantSession] = None
        self.recognition: Optional[ClientRecognition] = None
        self.wake_recognition: Optional[ClientRecognition] = None
        self.geolocation: Optional[ClientGeolocation] = None
        self._tasks: Set[asyncio.Task] = set()

    def build_session(self, hello: Dict[str, Any], session_id: Optional[str]) -> AssistantSession:
        send = self.websocket.send_json
        languages = hello.get("languages") or None
        has_recognition = bool(hello.get("recognition"))

        self.recognition = ClientRecognition(send, "capture", has_recognition, languages)
        self.wake_recognition = ClientRecognition(send, "wake", has_recognition, languages)
        self.geolocation = ClientGeolocation(
            send,
            available=bool(hello.get("geolocation")),
            permission=str(hello.get("permission", "prompt"))
        )
        synthesis = EdgeTTSSynthesis(self.websocket.send_bytes) if hello.get("synthesis", True) else None
        geocoder = NominatimGeocoder() if settings.GEOCODING_ENABLED else None

        return AssistantSession(
            session_id=session_id,
            recognition=self.recognition,
            wake_recognition=self.wake_recognition,
            synthesis=synthesis,
            geolocation=self.geolocation,
            geocoder=geocoder,
            transport=WebSocketTransport(self.websocket),
            agent_logger=getattr(self.websocket.app.state, "agent_logger", None)
        )

    def spawn(self, coro: Coroutine):
        task = asyncio.create_task(self._report_errors(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _report_errors(self, coro: Coroutine):
        try:
            await coro
        except AssistantException as e:
            payload = error_payload(e)
        except Exception as e:
            logger.exception(f"Unexpected error in turn: {e}")
            payload = internal_error_payload(e)
        else:
            return

        try:
            await self.websocket.send_json(payload)
        except (RuntimeError, WebSocketDisconnect) as e:
            logger.debug(f"Could not report error, client is gone: {e}")

    async def send_error(self, exc: AssistantException):
        await self.websocket.send_json(error_payload(exc))

    # =========================
    # Turns
    # =========================

    async def voice_turn(self, known_fix: Optional[LocationFix]):
        def on_interim(text: str):
            self.spawn(self.websocket.send_json({
                "type": "transcript",
                "transcript": text,
                "is_final": False
            }))

        query = await self.session.record(on_interim=on_interim)
        await self.websocket.send_json({
            "type": "transcript",
            "is_final": True,
            **query.to_dict()
        })
        await self.session.send_voice_query(query, known_fix)

    async def speak(self, text: str, language: str):
        utterance = await self.session.speak(text, language)
        if utterance is not None:
            await self.websocket.send_json({
                "type": "speaking",
                "language": utterance.lang,
                "voice": utterance.voice
            })

    async def request_location(self):
        fix = await self.session.request_location()
        await self.websocket.send_json({"type": "location", "location": fix.to_dict()})

    async def start_wake_word(self):
        def on_detected():
            self.spawn(self.websocket.send_json({"type": "wake_word"}))

        await self.session.start_wake_word(on_detected=on_detected, on_error=self.send_error)
        await self.websocket.send_json({"type": "wake_word.listening", "listening": True})

    async def stop_wake_word(self):
        await self.session.stop_wake_word()
        await self.websocket.send_json({"type": "wake_word.listening", "listening": False})

    # =========================
    # Dispatch
    # =========================

    async def handle(self, data: Dict[str, Any]):
        msg_type = data.get("type")

        if msg_type == "recognition.event":
            channel = data.get("channel", "capture")
            target = self.wake_recognition if channel == "wake" else self.recognition
            target.dispatch(data)

        elif msg_type in ("geolocation.position", "geolocation.error", "geolocation.permission"):
            self.geolocation.dispatch(data)

        elif msg_type == "listen":
            self.spawn(self.voice_turn(known_fix_from(data)))

        elif msg_type == "stop":
            await self.session.stop_recording()

        elif msg_type == "abort":
            await self.session.abort_recording()

        elif msg_type == "text":
            text = str(data.get("text", "")).strip()
            if not text:
                await self.websocket.send_json({"type": "error", "error": "EMPTY_TEXT", "message": "No text provided"})
                return
            self.spawn(self.session.handle_text(text, known_fix=known_fix_from(data)))

        elif msg_type == "speak":
            self.spawn(self.speak(str(data.get("text", "")), str(data.get("language", "mr"))))

        elif msg_type == "stop_speaking":
            self.session.stop_speaking()

        elif msg_type == "wake_word.start":
            await self.start_wake_word()

        elif msg_type == "wake_word.stop":
            await self.stop_wake_word()

        elif msg_type == "location.request":
            self.spawn(self.request_location())

        elif msg_type == "location.clear":
            self.session.clear_location()

        elif msg_type == "ping":
            await self.websocket.send_json({"type": "pong"})

        else:
            logger.warning(f"Unknown message type: {msg_type}")

    async def close(self):
        for task in list(self._tasks):
            task.cancel()
        if self.session is not None:
            await session_manager.remove(self.session.session_id)


@router.websocket("/stream")
async def voice_stream(
    websocket: WebSocket,
    session_id: Optional[str] = None
):
    """
    WebSocket endpoint for voice and text queries.

    Protocol:
    1. Client connects and sends {"type": "hello", "recognition": bool,
       "languages": [...], "geolocation": bool, "synthesis": bool}
    2. Server replies {"type": "session", "session_id", "capabilities"}
    3. Client sends commands ("listen", "text", "speak", ...) and relays
       its recognizer / geolocation events back
    4. Server sends "transcript", "message", "error" and binary audio

    Server → client commands:
        - {"type": "recognition.start", "channel", "generation", "config"}
        - {"type": "recognition.stop" | "recognition.abort", "channel"}
        - {"type": "geolocation.request", "request_id", "options"}
        - {"type": "geolocation.watch" | "geolocation.clear_watch", "watch_id"}
    """
    await websocket.accept()
    connection = VoiceConnection(websocket)

    try:
        hello = await websocket.receive_json()
        if hello.get("type") != "hello":
            logger.warning("First message was not a hello, assuming no client capabilities")
            hello = {}

        session = session_manager.add(connection.build_session(hello, session_id))
        connection.session = session
        await session.start()

        await websocket.send_json({
            "type": "session",
            "session_id": session.session_id,
            "capabilities": session.capabilities.to_dict()
        })

        while True:
            message = await websocket.receive()

            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect()

            if message.get("text") is None:
                continue

            try:
                data = json.loads(message["text"])
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON message: {message['text']}")
                continue

            if not isinstance(data, dict):
                logger.warning(f"Ignoring non-object message: {message['text']}")
                continue

            try:
                await connection.handle(data)
            except AssistantException as e:
                await connection.send_error(e)
            except WebSocketDisconnect:
                raise
            except Exception as e:
                # One bad frame must not end the session
                logger.exception(f"Failed to handle {data.get('type')} message: {e}")
                await websocket.send_json(internal_error_payload(e))

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {connection.session.session_id if connection.session else session_id}")
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
    finally:
        try:
            await connection.close()
        except (RuntimeError, WebSocketDisconnect) as e:
            # Releasing client-side capabilities fails once the socket is gone
            logger.debug(f"Cleanup after disconnect: {e}")
