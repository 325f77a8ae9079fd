"""Services module initialization."""

from krishi.services.stt import SpeechRecognitionService, TranscriptResult
from krishi.services.tts import SpeechSynthesizer
from krishi.services.wake_word import WakeWordListener
from krishi.services.location import LocationService

__all__ = [
    "SpeechRecognitionService",
    "TranscriptResult",
    "SpeechSynthesizer",
    "WakeWordListener",
    "LocationService"
]
