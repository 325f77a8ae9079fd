"""
Assistant Session for the Krishi Assistant.
Owns the capability-backed services for one connected client and wires
voice capture, wake word, location and synthesis into the query pipeline.
"""

import asyncio
import logging
import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from krishi.core.exceptions import AssistantException
from krishi.core.message import Attachment, OutgoingMessage
from krishi.core.pipeline import (
    MessageTransport,
    PipelineResult,
    QueryPipeline,
    QueryUnderstanding
)
from krishi.logging.agent_logger import AgentLogger
from krishi.nlu.intent import IntentClassifier, IntentResult
from krishi.nlu.language import LanguageDetector, LanguageResult
from krishi.services.location import LocationService
from krishi.services.location.capability import GeolocationCapability
from krishi.services.location.geocoding import NominatimGeocoder
from krishi.services.location.models import LocationFix
from krishi.services.location.policy import LocationAugmentationPolicy
from krishi.services.stt import SpeechRecognitionService, TranscriptResult
from krishi.services.stt.capability import RecognitionCapability
from krishi.services.tts import SpeechSynthesizer
from krishi.services.tts.capability import SynthesisCapability, Utterance
from krishi.services.wake_word import WakeWordListener

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapabilityReport:
    """Which optional capabilities this environment provides."""
    speech_recognition: bool
    wake_word: bool
    speech_synthesis: bool
    geolocation: bool

    def to_dict(self) -> Dict[str, bool]:
        return {
            "speech_recognition": self.speech_recognition,
            "wake_word": self.wake_word,
            "speech_synthesis": self.speech_synthesis,
            "geolocation": self.geolocation
        }


@dataclass(frozen=True)
class VoiceQuery:
    """A finished capture together with how it was understood."""
    transcript: TranscriptResult
    intent: IntentResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcript": self.transcript.to_dict(),
            "intent": self.intent.to_dict()
        }


class AssistantSession:
    """
    One farmer's connection to the assistant.

    Every capability is injected; a missing one just disables the
    feature that needs it (see `capabilities`). Finished messages are
    handed to `transport` when one is attached.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        recognition: Optional[RecognitionCapability] = None,
        wake_recognition: Optional[RecognitionCapability] = None,
        synthesis: Optional[SynthesisCapability] = None,
        geolocation: Optional[GeolocationCapability] = None,
        geocoder: Optional[NominatimGeocoder] = None,
        transport: Optional[MessageTransport] = None,
        agent_logger: Optional[AgentLogger] = None
    ):
        self.session_id = session_id or str(uuid4())
        self.created_at = datetime.now()
        self.last_activity = datetime.now()

        self.detector = LanguageDetector()
        self.classifier = IntentClassifier()

        self.speech = SpeechRecognitionService(recognition, self.detector)
        self.wake_word = WakeWordListener(wake_recognition)
        self.synthesizer = SpeechSynthesizer(synthesis)
        self.location = LocationService(geolocation, geocoder)
        self.location_policy = LocationAugmentationPolicy(self.location)

        self.pipeline = QueryPipeline(
            self.detector,
            self.classifier,
            self.location_policy,
            agent_logger
        )
        self.transport = transport
        self.agent_logger = agent_logger

        self.capabilities = CapabilityReport(
            speech_recognition=self.speech.is_supported,
            wake_word=self.wake_word.is_supported,
            speech_synthesis=self.synthesizer.is_supported,
            geolocation=self.location.is_supported
        )

        self.last_voice_query: Optional[VoiceQuery] = None
        self.turn_count = 0

        self._wake_auto_start = True
        self._wake_pause_while_recording = True
        self._on_wake: Optional[Callable[[], Any]] = None
        self._on_wake_error: Optional[Callable[[AssistantException], Any]] = None
        self._closed = False
        self._wake_turn_pending = False

    def touch(self):
        self.last_activity = datetime.now()

    async def start(self):
        """Record the session start in the agent log."""
        logger.info(f"Session {self.session_id} started with {self.capabilities.to_dict()}")
        if self.agent_logger:
            await self.agent_logger.log_session_start(self.session_id, self.capabilities.to_dict())

    # =========================
    # Text and voice turns
    # =========================

    def understand(self, text: str) -> QueryUnderstanding:
        """Language and intent for a query, without sending anything."""
        return self.pipeline.understand(text)

    async def handle_text(
        self,
        text: str,
        known_fix: Optional[LocationFix] = None,
        attachment: Optional[Attachment] = None
    ) -> OutgoingMessage:
        """Process a typed query and hand the envelope to the transport."""
        self.touch()
        result = await self.pipeline.process(
            self.session_id,
            text,
            known_fix=known_fix,
            attachment=attachment
        )
        return await self._deliver(result)

    async def record(self, on_interim: Optional[Callable[[str], None]] = None) -> VoiceQuery:
        """
        Capture one utterance and classify it.

        Raises:
            The capture exceptions of SpeechRecognitionService.listen()
        """
        self.touch()
        try:
            transcript = await self.speech.listen(on_interim=on_interim)
        except AssistantException as e:
            await self._log_error(e)
            raise

        if self.agent_logger:
            await self.agent_logger.log_transcript(
                self.session_id,
                transcript.transcript,
                transcript.confidence,
                transcript.detected_language
            )

        intent = self.classifier.classify(transcript.transcript, transcript.detected_language)
        query = VoiceQuery(transcript=transcript, intent=intent)
        self.last_voice_query = query
        return query

    async def handle_voice(
        self,
        known_fix: Optional[LocationFix] = None,
        on_interim: Optional[Callable[[str], None]] = None
    ) -> OutgoingMessage:
        """Record, classify and send one spoken query."""
        query = await self.record(on_interim=on_interim)
        return await self.send_voice_query(query, known_fix)

    async def send_voice_query(
        self,
        query: VoiceQuery,
        known_fix: Optional[LocationFix] = None
    ) -> OutgoingMessage:
        """Send a recorded query without re-detecting its language."""
        understanding = QueryUnderstanding(
            language=LanguageResult(
                language=query.transcript.detected_language,
                confidence=query.transcript.language_confidence
            ),
            intent=query.intent
        )
        result = await self.pipeline.process(
            self.session_id,
            query.transcript.transcript,
            understanding=understanding,
            known_fix=known_fix
        )
        return await self._deliver(result)

    async def stop_recording(self):
        await self.speech.stop_listening()

    async def abort_recording(self):
        await self.speech.abort()

    async def _deliver(self, result: PipelineResult) -> OutgoingMessage:
        self.turn_count += 1
        if self.transport is not None:
            await self.transport.send(result.message)
        return result.message

    # =========================
    # Wake word
    # =========================

    async def start_wake_word(
        self,
        on_detected: Optional[Callable[[], Any]] = None,
        on_error: Optional[Callable[[AssistantException], Any]] = None,
        auto_start: bool = True,
        pause_while_recording: bool = True
    ):
        """
        Listen for the wake word.

        Args:
            on_detected: Called on every detection
            on_error: Called when a wake-triggered capture fails
            auto_start: Start a voice turn on detection
            pause_while_recording: Stop wake detection during that turn
        """
        self._on_wake = on_detected
        self._on_wake_error = on_error
        self._wake_auto_start = auto_start
        self._wake_pause_while_recording = pause_while_recording
        await self.wake_word.start(self._handle_wake_word)

    async def stop_wake_word(self):
        await self.wake_word.stop()

    def _handle_wake_word(self) -> Optional[Awaitable[None]]:
        if self._on_wake is not None:
            self._on_wake()

        if not self._wake_auto_start or self.speech.is_listening or self._wake_turn_pending:
            return None
        # Set before the turn runs so a second detection in the same tick is ignored
        self._wake_turn_pending = True
        return self._wake_turn()

    async def _wake_turn(self):
        paused = self._wake_pause_while_recording and self.wake_word.is_listening
        if paused:
            await self.wake_word.stop()

        try:
            await self.handle_voice()
        except AssistantException as e:
            logger.info(f"Wake-word capture ended without a message: {e.error_code}")
            if self._on_wake_error is not None:
                outcome = self._on_wake_error(e)
                if asyncio.iscoroutine(outcome):
                    await outcome
        finally:
            self._wake_turn_pending = False
            if paused and not self._closed:
                await self.wake_word.start(self._handle_wake_word)

    # =========================
    # Location and speech output
    # =========================

    async def request_location(self) -> LocationFix:
        """Fetch a fresh fix outside any query."""
        self.touch()
        fix = await self.location.get_current_location()
        if self.agent_logger:
            await self.agent_logger.log_location(self.session_id, fix.to_dict())
        return fix

    def clear_location(self):
        self.location.clear_cache()

    async def speak(self, text: str, language: str = "mr") -> Optional[Utterance]:
        return await self.synthesizer.speak(text, language)

    def stop_speaking(self):
        self.synthesizer.stop()

    # =========================
    # Lifecycle
    # =========================

    async def _log_error(self, error: AssistantException):
        if self.agent_logger:
            await self.agent_logger.log_error(
                self.session_id,
                error.error_code,
                error.message,
                traceback.format_exc()
            )

    async def close(self):
        """Release every capability this session holds."""
        self._closed = True
        await self.wake_word.stop()
        await self.speech.cleanup()
        self.synthesizer.stop()
        await self.location.cleanup()

        logger.info(f"Session {self.session_id} closed after {self.turn_count} turns")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "turn_count": self.turn_count,
            "capabilities": self.capabilities.to_dict(),
            "last_voice_query": self.last_voice_query.to_dict() if self.last_voice_query else None
        }


class SessionManager:
    """Keeps live assistant sessions by id."""

    def __init__(self):
        self._sessions: Dict[str, AssistantSession] = {}

    def add(self, session: AssistantSession) -> AssistantSession:
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[AssistantSession]:
        return self._sessions.get(session_id)

    async def remove(self, session_id: str):
        session = self._sessions.pop(session_id, None)
        if session is not None:
            await session.close()

    def sessions(self) -> List[AssistantSession]:
        return list(self._sessions.values())

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    async def close_all(self):
        for session_id in list(self._sessions):
            await self.remove(session_id)
