"""
Text-to-Speech for assistant replies.
At most one utterance speaks at a time; a new one cancels the old.
"""

import logging
from typing import Optional

from krishi.config import get_settings, SYNTHESIS_LANGUAGE_TAGS
from krishi.core.exceptions import UnsupportedCapabilityException
from krishi.services.tts.capability import SynthesisCapability, Utterance, Voice

logger = logging.getLogger(__name__)
settings = get_settings()

# Voice language fragments to look for, in order, per reply language
VOICE_PREFERENCES = {
    "mr": ("mr", "hi"),
    "en": ("en-IN", "en-GB")
}


def reply_language(language: str) -> str:
    """Replies are spoken in English or Marathi; Hindi and unknown use Marathi."""
    return "en" if language == "en" else "mr"


class SpeechSynthesizer:
    """
    Speaks replies through a synthesis capability.

    Supports:
    - Cancel-before-speak (one utterance at a time)
    - Voice selection by language family
    - Slightly slow, softer delivery for clarity
    """

    def __init__(
        self,
        capability: Optional[SynthesisCapability],
        rate: float = settings.TTS_RATE,
        pitch: float = settings.TTS_PITCH,
        volume: float = settings.TTS_VOLUME
    ):
        self.capability = capability
        self.rate = rate
        self.pitch = pitch
        self.volume = volume
        self._is_supported = capability is not None and capability.is_available()

    @property
    def is_supported(self) -> bool:
        return self._is_supported

    @property
    def is_speaking(self) -> bool:
        return self._is_supported and self.capability.speaking

    async def select_voice(self, language: str) -> Optional[Voice]:
        """First installed voice matching the language family, if any."""
        preferences = VOICE_PREFERENCES[reply_language(language)]
        for voice in await self.capability.voices():
            if any(fragment in voice.lang for fragment in preferences):
                return voice
        return None

    async def speak(self, text: str, language: str = "mr") -> Optional[Utterance]:
        """
        Speak text, interrupting anything already speaking.

        Args:
            text: Reply text
            language: Reply language (mr or en)

        Returns:
            The utterance handed to the synthesizer, or None for blank text
        """
        if not self._is_supported:
            raise UnsupportedCapabilityException("speech_synthesis")

        if not text.strip():
            return None

        if self.capability.speaking:
            self.capability.cancel()

        language = reply_language(language)
        voice = await self.select_voice(language)

        utterance = Utterance(
            text=text,
            lang=SYNTHESIS_LANGUAGE_TAGS[language],
            voice=voice.name if voice else None,
            rate=self.rate,
            pitch=self.pitch,
            volume=self.volume
        )
        await self.capability.speak(utterance)

        logger.debug(f"Speaking {len(text)} chars in {utterance.lang} with voice {utterance.voice}")
        return utterance

    def stop(self):
        if self._is_supported:
            self.capability.cancel()
