"""Shared fakes for the client capabilities: no browser, microphone or GPS needed."""

import asyncio
import os
import tempfile

# Must be set before krishi.config is first imported
os.environ.setdefault("AGENT_LOG_PATH", os.path.join(tempfile.mkdtemp(prefix="krishi-"), "agent_log.md"))
os.environ.setdefault("GEOCODING_ENABLED", "false")

import pytest

from krishi.core.exceptions import CaptureFailedException, GeocodingException
from krishi.services.location.capability import (
    GeolocationCapability,
    Position,
    PositionError
)
from krishi.services.location.models import PlaceAddress
from krishi.services.stt.capability import (
    RecognitionAlternative,
    RecognitionBatch,
    RecognitionCapability,
    RecognitionResultItem
)
from krishi.services.tts.capability import SynthesisCapability, Voice

AURANGABAD = Position(latitude=19.8762, longitude=75.3433, accuracy=15.0, timestamp=1700000000000.0)


async def settle(rounds: int = 10):
    """Let scheduled tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeRecognition(RecognitionCapability):
    """Recognizer driven by the test through say() / emit_*()."""

    def __init__(self, available=True, reject_languages=()):
        super().__init__()
        self.available = available
        self.reject_languages = set(reject_languages)
        self.started_with = []
        self.configs = []
        self.stop_calls = 0
        self.abort_calls = 0

    def is_available(self):
        return self.available

    async def start(self):
        self.started_with.append(self.config.language)
        self.configs.append(self.config)
        if self.config.language in self.reject_languages:
            raise CaptureFailedException("language-not-supported")

    async def stop(self):
        self.stop_calls += 1

    async def abort(self):
        self.abort_calls += 1

    def say(self, transcript, confidence=0.9, is_final=True):
        self.emit_result(RecognitionBatch(results=[
            RecognitionResultItem(
                alternatives=[RecognitionAlternative(transcript, confidence)],
                is_final=is_final
            )
        ]))


class FakeGeolocation(GeolocationCapability):
    """Position source returning a fixed reading or a W3C error code."""

    def __init__(self, position=AURANGABAD, error_code=None, available=True, permission="granted"):
        self.position = position
        self.error_code = error_code
        self.available = available
        self.permission = permission
        self.calls = 0
        self.last_options = None
        self.watches = {}
        self.cleared = []

    def is_available(self):
        return self.available

    async def get_current_position(self, options):
        self.calls += 1
        self.last_options = options
        if self.error_code is not None:
            raise PositionError(self.error_code)
        return self.position

    async def watch_position(self, on_position, on_error, options):
        watch_id = len(self.watches) + len(self.cleared) + 1
        self.watches[watch_id] = (on_position, on_error)
        return watch_id

    async def clear_watch(self, watch_id):
        self.watches.pop(watch_id, None)
        self.cleared.append(watch_id)

    async def permission_state(self):
        return self.permission

    def push(self, position):
        for on_position, _ in list(self.watches.values()):
            on_position(position)


class FakeSynthesis(SynthesisCapability):
    """Synthesizer that records utterances instead of playing them."""

    def __init__(self, voices=None, available=True):
        if voices is None:
            voices = [
                Voice("en-US-GuyNeural", "en-US"),
                Voice("hi-IN-SwaraNeural", "hi-IN"),
                Voice("en-IN-NeerjaNeural", "en-IN")
            ]
        self._voices = voices
        self.available = available
        self.spoken = []
        self.cancel_calls = 0
        self._speaking = False

    def is_available(self):
        return self.available

    async def voices(self):
        return self._voices

    async def speak(self, utterance):
        self.spoken.append(utterance)
        self._speaking = True

    def cancel(self):
        self.cancel_calls += 1
        self._speaking = False

    @property
    def speaking(self):
        return self._speaking


class StubGeocoder:
    """Reverse geocoder returning a fixed address, or failing."""

    def __init__(self, address=None, fail=False):
        self.address = address or PlaceAddress(
            village="Chikalthana",
            taluka="Aurangabad",
            district="Aurangabad",
            state="Maharashtra",
            country="India",
            pincode="431006"
        )
        self.fail = fail
        self.calls = 0

    async def reverse(self, latitude, longitude):
        self.calls += 1
        if self.fail:
            raise GeocodingException("connection refused")
        return self.address


class CollectingTransport:
    """Transport that keeps every envelope it is handed."""

    def __init__(self):
        self.messages = []

    async def send(self, message):
        self.messages.append(message)


@pytest.fixture
def recognition():
    return FakeRecognition()


@pytest.fixture
def geolocation():
    return FakeGeolocation()


@pytest.fixture
def synthesis():
    return FakeSynthesis()


@pytest.fixture
def transport():
    return CollectingTransport()
