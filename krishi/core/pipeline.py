"""
Query Pipeline for the Krishi Assistant.
Coordinates language detection → intent classification → location
augmentation and produces the outgoing message envelope.
"""

import time
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Protocol
import logging

from krishi.core.exceptions import LocationException
from krishi.core.message import Attachment, OutgoingMessage
from krishi.logging.agent_logger import AgentLogger
from krishi.nlu.intent import IntentClassifier, IntentResult
from krishi.nlu.language import LanguageDetector, LanguageResult
from krishi.services.location.models import LocationFix
from krishi.services.location.policy import LocationAugmentationPolicy

logger = logging.getLogger(__name__)


class MessageTransport(Protocol):
    """Where finished envelopes go (response generator, WebSocket, ...)."""

    async def send(self, message: OutgoingMessage) -> None:
        ...


@dataclass
class PipelineMetrics:
    """Metrics for a single pipeline execution."""
    start_time: float = field(default_factory=time.time)
    detect_start: Optional[float] = None
    detect_end: Optional[float] = None
    classify_start: Optional[float] = None
    classify_end: Optional[float] = None
    location_start: Optional[float] = None
    location_end: Optional[float] = None

    @property
    def detect_latency_ms(self) -> Optional[float]:
        if self.detect_start and self.detect_end:
            return (self.detect_end - self.detect_start) * 1000
        return None

    @property
    def classify_latency_ms(self) -> Optional[float]:
        if self.classify_start and self.classify_end:
            return (self.classify_end - self.classify_start) * 1000
        return None

    @property
    def location_latency_ms(self) -> Optional[float]:
        if self.location_start and self.location_end:
            return (self.location_end - self.location_start) * 1000
        return None

    @property
    def total_latency_ms(self) -> float:
        return (time.time() - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detect_latency_ms": self.detect_latency_ms,
            "classify_latency_ms": self.classify_latency_ms,
            "location_latency_ms": self.location_latency_ms,
            "total_latency_ms": self.total_latency_ms
        }


@dataclass(frozen=True)
class QueryUnderstanding:
    """What the assistant made of a query."""
    language: LanguageResult
    intent: IntentResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language.to_dict(),
            "intent": self.intent.to_dict()
        }


@dataclass
class PipelineResult:
    """Result of a complete pipeline execution."""
    session_id: str
    message: OutgoingMessage
    metrics: PipelineMetrics
    location_error: Optional[LocationException] = None


class QueryPipeline:
    """
    Turns a user query into an OutgoingMessage.

    Flow:
    1. Detect language (skipped when the caller already knows it)
    2. Classify intent and extract entities
    3. Fetch a location fix if the intent needs one
    """

    def __init__(
        self,
        detector: LanguageDetector,
        classifier: IntentClassifier,
        location_policy: LocationAugmentationPolicy,
        agent_logger: Optional[AgentLogger] = None
    ):
        self.detector = detector
        self.classifier = classifier
        self.location_policy = location_policy
        self.logger = agent_logger

    def understand(
        self,
        text: str,
        language: Optional[LanguageResult] = None,
        metrics: Optional[PipelineMetrics] = None
    ) -> QueryUnderstanding:
        """Detect language (unless given) and classify intent."""
        metrics = metrics or PipelineMetrics()

        if language is None:
            metrics.detect_start = time.time()
            language = self.detector.detect(text)
            metrics.detect_end = time.time()

        metrics.classify_start = time.time()
        intent = self.classifier.classify(text, language.language)
        metrics.classify_end = time.time()

        return QueryUnderstanding(language=language, intent=intent)

    async def process(
        self,
        session_id: str,
        text: str,
        understanding: Optional[QueryUnderstanding] = None,
        known_fix: Optional[LocationFix] = None,
        attachment: Optional[Attachment] = None
    ) -> PipelineResult:
        """
        Run the full pipeline for one user turn.

        Args:
            session_id: Owning assistant session
            text: User query
            understanding: Precomputed language/intent (voice turns)
            known_fix: Location the caller already has
            attachment: Optional file sent with the query

        Returns:
            PipelineResult with the envelope and stage metrics
        """
        metrics = PipelineMetrics()
        text = text.strip()

        if understanding is None:
            understanding = self.understand(text, metrics=metrics)

        if self.logger:
            await self.logger.log_intent(
                session_id,
                text,
                understanding.language.language,
                understanding.intent.to_dict()
            )

        message = OutgoingMessage(
            text=text,
            detected_language=understanding.language.language,
            intent=understanding.intent,
            attachment=attachment
        )

        needs_location = self.location_policy.requires_location(understanding.intent, known_fix)
        metrics.location_start = time.time()
        message = await self.location_policy.augment(message, known_fix)
        metrics.location_end = time.time()
        location_error = self.location_policy.last_error

        if self.logger and needs_location:
            await self.logger.log_location(
                session_id,
                message.location.to_dict() if message.location else None,
                location_error.message if location_error else None
            )

        logger.info(
            f"Processed query [{session_id}] language={message.detected_language} "
            f"intent={understanding.intent.intent} location={'yes' if message.location else 'no'} "
            f"in {metrics.total_latency_ms:.1f}ms"
        )

        if self.logger:
            await self.logger.log_turn_complete(session_id, message.to_dict(), metrics.to_dict())

        return PipelineResult(
            session_id=session_id,
            message=message,
            metrics=metrics,
            location_error=location_error
        )
