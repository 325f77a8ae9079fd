"""
Wake word detection.
Passively watches a continuous recognizer for "Krishi" / "कृषी".
"""

import asyncio
import inspect
import logging
from typing import Callable, List, Optional, Set

from krishi.config import get_settings
from krishi.core.exceptions import UnsupportedCapabilityException
from krishi.services.stt.capability import (
    RecognitionBatch,
    RecognitionCapability,
    RecognitionConfig
)

logger = logging.getLogger(__name__)
settings = get_settings()


class WakeWordListener:
    """
    Long-lived listener on its own recognizer handle.

    Nothing is accumulated: each result batch is checked for a trigger
    phrase and the callback fires at most once per batch. Detection does
    not stop capture; the owner decides whether to pause the listener.
    """

    def __init__(
        self,
        capability: Optional[RecognitionCapability],
        wake_words: Optional[List[str]] = None,
        language: str = settings.PRIMARY_RECOGNITION_LANGUAGE,
        restart_on_end: bool = settings.WAKE_WORD_RESTART_ON_END
    ):
        self.capability = capability
        self.wake_words = [w.lower() for w in (wake_words or settings.WAKE_WORDS)]
        self.language = language
        self.restart_on_end = restart_on_end

        self._is_supported = capability is not None and capability.is_available()
        self._is_listening = False
        self._callback: Optional[Callable[[], object]] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_supported(self) -> bool:
        return self._is_supported

    @property
    def is_listening(self) -> bool:
        return self._is_listening

    async def start(self, callback: Callable[[], object]):
        """
        Start watching for the wake word.

        Args:
            callback: Called on detection. May return an awaitable, which
                is scheduled as a task.
        """
        if not self._is_supported:
            raise UnsupportedCapabilityException("wake_word")

        self._callback = callback
        if self._is_listening:
            return

        self.capability.configure(RecognitionConfig(
            language=self.language,
            continuous=True,
            interim_results=True,
            max_alternatives=1
        ))
        self.capability.set_handlers(
            on_result=self._handle_result,
            on_end=self._handle_end,
            on_error=self._handle_error
        )
        self._is_listening = True

        try:
            await self.capability.start()
        except Exception:
            self._is_listening = False
            self.capability.clear_handlers()
            raise

        logger.info("Wake word detection started")

    async def stop(self):
        """Stop watching. Safe to call when not listening."""
        if not self._is_listening:
            return

        self._is_listening = False
        self.capability.clear_handlers()
        await self.capability.stop()
        logger.info("Wake word detection stopped")

    def matches(self, transcript: str) -> bool:
        text = transcript.lower()
        return any(word in text for word in self.wake_words)

    def _handle_result(self, batch: RecognitionBatch):
        if not self._is_listening:
            return

        for item in batch.pending():
            transcript = item.best.transcript
            if self.matches(transcript):
                logger.info(f"Wake word detected: {transcript}")
                self._fire()
                break

    def _fire(self):
        if self._callback is None:
            return

        outcome = self._callback()
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _handle_end(self):
        if not self._is_listening:
            return

        if self.restart_on_end:
            logger.debug("Wake word recognizer ended, restarting")
            task = asyncio.ensure_future(self._restart())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            self._is_listening = False
            self.capability.clear_handlers()

    async def _restart(self):
        if not self._is_listening:
            return
        try:
            await self.capability.start()
        except Exception as e:
            logger.error(f"Failed to restart wake word detection: {e}")
            self._is_listening = False
            self.capability.clear_handlers()

    def _handle_error(self, code: str):
        if not self._is_listening:
            return
        logger.warning(f"Wake word recognizer error: {code}")
        # "no-speech" just means silence; the recognizer ends and is restarted
        if code not in ("no-speech", "aborted"):
            self._is_listening = False
            self.capability.clear_handlers()
