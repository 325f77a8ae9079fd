"""
Speech synthesis capability interface and the edge-tts binding.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import edge_tts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Voice:
    """A synthesis voice and the language tag it speaks."""
    name: str
    lang: str


@dataclass(frozen=True)
class Utterance:
    """Text to speak with its voice parameters."""
    text: str
    lang: str
    voice: Optional[str] = None
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0


class SynthesisCapability(ABC):
    """Contract for a speech synthesizer."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether a synthesizer exists in this environment."""

    @abstractmethod
    async def voices(self) -> List[Voice]:
        """Installed voices."""

    @abstractmethod
    async def speak(self, utterance: Utterance) -> None:
        """Start speaking. Returns once the utterance is queued."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the utterance in flight, if any."""

    @property
    @abstractmethod
    def speaking(self) -> bool:
        """Whether an utterance is in flight."""


# Voices used when no installed voice matched the language
DEFAULT_EDGE_VOICES = {
    "mr": "mr-IN-AarohiNeural",
    "hi": "hi-IN-SwaraNeural",
    "en": "en-IN-NeerjaNeural"
}


def _percent(value: float) -> str:
    """1.0 -> "+0%", 0.9 -> "-10%"."""
    return f"{round((value - 1.0) * 100):+d}%"


def _hertz(pitch: float) -> str:
    return f"{round((pitch - 1.0) * 50):+d}Hz"


class EdgeTTSSynthesis(SynthesisCapability):
    """
    Synthesizes with edge-tts and streams the audio to a sink
    (for example a WebSocket's send_bytes) from a background task.
    """

    def __init__(self, sink: Callable[[bytes], Awaitable[None]]):
        self._sink = sink
        self._task: Optional[asyncio.Task] = None
        self._voices: Optional[List[Voice]] = None

    def is_available(self) -> bool:
        return True

    async def voices(self) -> List[Voice]:
        if self._voices is None:
            try:
                raw = await edge_tts.list_voices()
            except Exception as e:
                # Not cached, so the next call retries; DEFAULT_EDGE_VOICES covers this one
                logger.error(f"Failed to list edge-tts voices: {e}")
                return []
            self._voices = [Voice(name=v["ShortName"], lang=v["Locale"]) for v in raw]
        return self._voices

    async def speak(self, utterance: Utterance):
        self.cancel()
        self._task = asyncio.create_task(self._stream(utterance))

    def cancel(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()

    @property
    def speaking(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _stream(self, utterance: Utterance):
        family = utterance.lang.split("-")[0]
        voice = utterance.voice or DEFAULT_EDGE_VOICES.get(family, DEFAULT_EDGE_VOICES["en"])

        communicate = edge_tts.Communicate(
            utterance.text,
            voice,
            rate=_percent(utterance.rate),
            volume=_percent(utterance.volume),
            pitch=_hertz(utterance.pitch)
        )

        try:
            async for chunk in communicate.stream():
                if chunk["type"] == "audio":
                    await self._sink(chunk["data"])
        except asyncio.CancelledError:
            logger.debug("Utterance cancelled")
            raise
        except Exception as e:
            logger.error(f"edge-tts error: {e}")
