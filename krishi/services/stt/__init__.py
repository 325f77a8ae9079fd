"""
Speech capture on top of the client's native recognizer.
Aggregates interim/final fragments into one transcript per recording.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Any, Optional, Tuple
from uuid import uuid4

from krishi.config import get_settings
from krishi.core.exceptions import (
    AlreadyActiveException,
    CaptureAbortedException,
    CaptureFailedException,
    NoSpeechDetectedException,
    UnsupportedCapabilityException
)
from krishi.nlu.language import LanguageDetector
from krishi.services.stt.capability import (
    RecognitionBatch,
    RecognitionCapability,
    RecognitionConfig
)

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class TranscriptResult:
    """Result of one completed capture."""
    transcript: str
    confidence: float
    detected_language: str
    language_confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcript": self.transcript,
            "confidence": self.confidence,
            "detected_language": self.detected_language,
            "language_confidence": self.language_confidence
        }


class CaptureState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERRORED = "errored"


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


class CaptureSession:
    """
    One recording attempt.

    IDLE -> LISTENING -> COMPLETED | ABORTED | ERRORED. Once the session
    leaves LISTENING every later recognizer callback is ignored.
    """

    def __init__(
        self,
        capability: RecognitionCapability,
        detector: LanguageDetector,
        languages: Tuple[str, str] = (
            settings.PRIMARY_RECOGNITION_LANGUAGE,
            settings.SECONDARY_RECOGNITION_LANGUAGE
        ),
        max_alternatives: int = settings.RECOGNITION_MAX_ALTERNATIVES,
        interim_results: bool = settings.RECOGNITION_INTERIM_RESULTS,
        default_confidence: float = settings.DEFAULT_FRAGMENT_CONFIDENCE,
        on_interim: Optional[Callable[[str], None]] = None
    ):
        self.session_id = uuid4().hex[:8]
        self.capability = capability
        self.detector = detector
        self.languages = languages
        self.max_alternatives = max_alternatives
        self.interim_results = interim_results
        self.default_confidence = default_confidence
        self.on_interim = on_interim

        self.state = CaptureState.IDLE
        self.language: Optional[str] = None
        self.final_transcript = ""
        self.interim_transcript = ""
        self.best_confidence = 0.0
        self._result: Optional[asyncio.Future] = None

    @property
    def is_listening(self) -> bool:
        return self.state == CaptureState.LISTENING

    async def run(self) -> TranscriptResult:
        """Start capturing and wait for the transcript."""
        await self.start()
        return await self._result

    async def start(self):
        """
        Begin capture in the primary language, falling back once to the
        secondary language if the recognizer rejects the first.
        """
        if self.state != CaptureState.IDLE:
            raise AlreadyActiveException()

        self.final_transcript = ""
        self.interim_transcript = ""
        self.best_confidence = 0.0
        self._result = asyncio.get_running_loop().create_future()

        self.capability.set_handlers(
            on_start=self._handle_start,
            on_result=self._handle_result,
            on_end=self._handle_end,
            on_error=self._handle_error
        )
        self.state = CaptureState.LISTENING

        primary, secondary = self.languages
        try:
            await self._start_in(primary)
        except CaptureFailedException as e:
            logger.warning(f"Recognizer rejected {primary} ({e.code}), retrying with {secondary}")
            try:
                await self._start_in(secondary)
            except CaptureFailedException:
                logger.error(f"Failed to start speech recognition in {primary} and {secondary}")
                self.state = CaptureState.ERRORED
                self.capability.clear_handlers()
                self._result.cancel()
                raise

    async def _start_in(self, language: str):
        self.language = language
        self.capability.configure(RecognitionConfig(
            language=language,
            continuous=False,
            interim_results=self.interim_results,
            max_alternatives=self.max_alternatives
        ))
        await self.capability.start()

    async def stop(self):
        """Stop listening and finish with what has been heard so far."""
        if not self.is_listening:
            return
        self._finish()
        await self.capability.stop()

    async def abort(self):
        """Stop listening and discard the transcript."""
        if not self.is_listening:
            return
        self.final_transcript = ""
        self.interim_transcript = ""
        self._settle(CaptureState.ABORTED, error=CaptureAbortedException())
        await self.capability.abort()

    # =========================
    # Recognizer callbacks
    # =========================

    def _handle_start(self):
        if self.is_listening:
            logger.info(f"Speech recognition started [{self.session_id}] in {self.language}")

    def _handle_result(self, batch: RecognitionBatch):
        if not self.is_listening:
            return

        # Interim text only describes the current batch
        self.interim_transcript = ""

        for item in batch.pending():
            alternative = item.best
            if item.is_final:
                self.final_transcript += alternative.transcript
                confidence = _clamp(alternative.confidence or self.default_confidence)
                self.best_confidence = max(self.best_confidence, confidence)
            else:
                self.interim_transcript += alternative.transcript

        if self.on_interim and self.interim_transcript:
            self.on_interim(self.interim_transcript)

    def _handle_end(self):
        if not self.is_listening:
            return
        logger.info(f"Speech recognition ended [{self.session_id}]")
        self._finish()

    def _handle_error(self, code: str):
        if not self.is_listening:
            return
        logger.error(f"Speech recognition error [{self.session_id}]: {code}")
        self.final_transcript = ""
        self.interim_transcript = ""
        self._settle(CaptureState.ERRORED, error=CaptureFailedException(code))

    # =========================
    # Completion
    # =========================

    def _finish(self):
        transcript = self.final_transcript.strip()
        if not transcript:
            self._settle(CaptureState.ERRORED, error=NoSpeechDetectedException())
            return

        detection = self.detector.detect(transcript)
        self._settle(CaptureState.COMPLETED, result=TranscriptResult(
            transcript=transcript,
            confidence=self.best_confidence,
            detected_language=detection.language,
            language_confidence=detection.confidence
        ))

    def _settle(
        self,
        state: CaptureState,
        result: Optional[TranscriptResult] = None,
        error: Optional[Exception] = None
    ):
        self.state = state
        self.capability.clear_handlers()

        if self._result is None or self._result.done():
            return
        if error is not None:
            self._result.set_exception(error)
        else:
            self._result.set_result(result)


class SpeechRecognitionService:
    """
    Speech capture for one assistant session.

    Supports:
    - One foreground capture at a time (a second listen() fails fast)
    - Marathi-first recognition with English fallback
    - Running language detection on the final transcript
    """

    def __init__(
        self,
        capability: Optional[RecognitionCapability],
        detector: Optional[LanguageDetector] = None
    ):
        self.capability = capability
        self.detector = detector or LanguageDetector()
        self._is_supported = capability is not None and capability.is_available()
        self._active: Optional[CaptureSession] = None

        if not self._is_supported:
            logger.warning("Speech recognition not supported in this environment")

    @property
    def is_supported(self) -> bool:
        return self._is_supported

    @property
    def active_session(self) -> Optional[CaptureSession]:
        return self._active

    @property
    def is_listening(self) -> bool:
        return self._active is not None and self._active.is_listening

    async def listen(self, on_interim: Optional[Callable[[str], None]] = None) -> TranscriptResult:
        """
        Record one utterance.

        Returns:
            TranscriptResult with detected language

        Raises:
            UnsupportedCapabilityException: no recognizer in this environment
            AlreadyActiveException: another capture is listening
            NoSpeechDetectedException: nothing final was heard
            CaptureFailedException: the recognizer reported an error
            CaptureAbortedException: the capture was aborted
        """
        if not self._is_supported:
            raise UnsupportedCapabilityException("speech_recognition")

        if self.is_listening:
            raise AlreadyActiveException()

        session = CaptureSession(self.capability, self.detector, on_interim=on_interim)
        self._active = session

        try:
            return await session.run()
        finally:
            if self._active is session:
                self._active = None

    async def stop_listening(self):
        if self._active is not None:
            await self._active.stop()

    async def abort(self):
        if self._active is not None:
            await self._active.abort()

    async def cleanup(self):
        """Abort any capture in flight."""
        await self.abort()
        logger.info("Speech recognition service cleaned up")
