"""
Speech recognition capability interface.

The recognition engine itself lives on the client (the browser's native
recognizer). This module defines the contract the server drives it through
and adapts its start/result/end/error events to registered handlers.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from krishi.core.exceptions import CaptureFailedException

logger = logging.getLogger(__name__)


@dataclass
class RecognitionConfig:
    """Recognizer configuration applied before each start."""
    language: str = "mr-IN"
    continuous: bool = False
    interim_results: bool = True
    max_alternatives: int = 3

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RecognitionAlternative:
    """One hypothesis for a result entry."""
    transcript: str
    confidence: Optional[float] = None


@dataclass(frozen=True)
class RecognitionResultItem:
    """One result entry with its alternatives, best first."""
    alternatives: List[RecognitionAlternative]
    is_final: bool = False

    @property
    def best(self) -> RecognitionAlternative:
        return self.alternatives[0] if self.alternatives else RecognitionAlternative("")


@dataclass(frozen=True)
class RecognitionBatch:
    """
    A result event. Entries before result_index were already delivered
    in earlier batches and must not be processed again.
    """
    results: List[RecognitionResultItem] = field(default_factory=list)
    result_index: int = 0

    def pending(self) -> Iterable[RecognitionResultItem]:
        return self.results[self.result_index:]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecognitionBatch":
        """
        Build a batch from the JSON shape the client relays.

        Raises:
            ValueError: the payload does not have that shape
        """
        raw_results = data.get("results", [])
        result_index = data.get("result_index", 0)
        if not isinstance(raw_results, list) or not isinstance(result_index, int):
            raise ValueError("results must be a list and result_index an integer")

        results = []
        for item in raw_results:
            if not isinstance(item, dict) or not isinstance(item.get("alternatives", []), list):
                raise ValueError(f"Malformed result entry: {item!r}")

            alternatives = []
            for alt in item.get("alternatives", []):
                if not isinstance(alt, dict):
                    raise ValueError(f"Malformed alternative: {alt!r}")
                confidence = alt.get("confidence")
                alternatives.append(RecognitionAlternative(
                    transcript=str(alt.get("transcript", "")),
                    confidence=float(confidence) if confidence is not None else None
                ))

            results.append(RecognitionResultItem(
                alternatives=alternatives,
                is_final=bool(item.get("is_final", False))
            ))
        return cls(results=results, result_index=result_index)


class RecognitionCapability(ABC):
    """
    Contract for a speech recognizer.

    Owners register handlers with set_handlers(); bindings report engine
    events through the emit_* methods.
    """

    def __init__(self):
        self.config = RecognitionConfig()
        self._on_start: Optional[Callable[[], None]] = None
        self._on_result: Optional[Callable[[RecognitionBatch], None]] = None
        self._on_end: Optional[Callable[[], None]] = None
        self._on_error: Optional[Callable[[str], None]] = None

    @abstractmethod
    def is_available(self) -> bool:
        """Whether a recognizer exists in this environment."""

    @abstractmethod
    async def start(self) -> None:
        """Begin capture with the current config. Raises CaptureFailedException if rejected."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop capture, delivering pending results."""

    @abstractmethod
    async def abort(self) -> None:
        """Stop capture, discarding pending results."""

    def configure(self, config: RecognitionConfig):
        self.config = config

    def set_handlers(
        self,
        on_start: Optional[Callable[[], None]] = None,
        on_result: Optional[Callable[[RecognitionBatch], None]] = None,
        on_end: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[str], None]] = None
    ):
        self._on_start = on_start
        self._on_result = on_result
        self._on_end = on_end
        self._on_error = on_error

    def clear_handlers(self):
        self.set_handlers()

    # =========================
    # Event adapters
    # =========================

    def emit_start(self):
        if self._on_start:
            self._on_start()

    def emit_result(self, batch: RecognitionBatch):
        if self._on_result:
            self._on_result(batch)

    def emit_end(self):
        if self._on_end:
            self._on_end()

    def emit_error(self, code: str):
        if self._on_error:
            self._on_error(code)


class ClientRecognition(RecognitionCapability):
    """
    Recognizer running in the connected client.

    Commands go out through `send`; the connection handler feeds the
    client's events back in with dispatch(). Each instance is addressed by
    its channel so several recognizers can share one connection.

    Every start carries a generation number. Events the client tags with
    an older generation belong to a finished capture and are dropped.
    """

    def __init__(
        self,
        send: Callable[[Dict[str, Any]], Awaitable[None]],
        channel: str,
        available: bool = False,
        supported_languages: Optional[List[str]] = None
    ):
        super().__init__()
        self._send = send
        self.channel = channel
        self._available = available
        self._supported_languages = supported_languages
        self.generation = 0

    def is_available(self) -> bool:
        return self._available

    async def start(self):
        language = self.config.language
        if self._supported_languages is not None and language not in self._supported_languages:
            raise CaptureFailedException("language-not-supported")

        self.generation += 1
        await self._send({
            "type": "recognition.start",
            "channel": self.channel,
            "generation": self.generation,
            "config": self.config.to_dict()
        })

    async def stop(self):
        await self._send({"type": "recognition.stop", "channel": self.channel})

    async def abort(self):
        await self._send({"type": "recognition.abort", "channel": self.channel})

    def dispatch(self, message: Dict[str, Any]):
        """Route one `recognition.event` message from the client."""
        event = message.get("event")

        generation = message.get("generation")
        if generation is not None and generation != self.generation:
            logger.debug(f"Dropping stale {event} event on {self.channel} (generation {generation})")
            return

        if event == "start":
            self.emit_start()
        elif event == "result":
            try:
                batch = RecognitionBatch.from_dict(message)
            except (TypeError, ValueError) as e:
                logger.warning(f"Dropping malformed result on {self.channel}: {e}")
                return
            self.emit_result(batch)
        elif event == "end":
            self.emit_end()
        elif event == "error":
            self.emit_error(str(message.get("error", "unknown")))
        else:
            logger.warning(f"Unknown recognition event on {self.channel}: {event}")
