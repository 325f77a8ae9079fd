"""Tests for krishi.services.stt: capture sessions and the recognition service."""

import asyncio

import pytest

from conftest import FakeRecognition, settle
from krishi.core.exceptions import (
    AlreadyActiveException,
    CaptureAbortedException,
    CaptureFailedException,
    NoSpeechDetectedException,
    UnsupportedCapabilityException
)
from krishi.services.stt import CaptureState, SpeechRecognitionService
from krishi.services.stt.capability import (
    ClientRecognition,
    RecognitionAlternative,
    RecognitionBatch,
    RecognitionResultItem
)


async def start_listening(service, **kwargs):
    task = asyncio.create_task(service.listen(**kwargs))
    await settle()
    return task


class TestSpeechRecognitionService:
    async def test_unsupported_raises_before_starting(self):
        service = SpeechRecognitionService(None)
        assert not service.is_supported
        with pytest.raises(UnsupportedCapabilityException):
            await service.listen()

    async def test_unavailable_capability_is_unsupported(self):
        recognition = FakeRecognition(available=False)
        service = SpeechRecognitionService(recognition)
        with pytest.raises(UnsupportedCapabilityException):
            await service.listen()
        assert recognition.started_with == []

    async def test_final_transcript_with_language(self, recognition):
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)

        assert service.is_listening
        config = recognition.configs[0]
        assert config.language == "mr-IN"
        assert config.continuous is False
        assert config.max_alternatives == 3

        recognition.say("माझ्या कापसाच्या पिकाला पाऊस नुकसान", confidence=0.82)
        recognition.emit_end()
        result = await task

        assert result.transcript == "माझ्या कापसाच्या पिकाला पाऊस नुकसान"
        assert result.confidence == pytest.approx(0.82)
        assert result.detected_language == "mr"
        assert result.language_confidence == pytest.approx(1.0)
        assert not service.is_listening

    async def test_final_fragments_are_concatenated(self, recognition):
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)

        recognition.say("onion ", confidence=0.6)
        recognition.say("price today", confidence=0.9)
        recognition.emit_end()
        result = await task

        assert result.transcript == "onion price today"
        assert result.confidence == pytest.approx(0.9)
        assert result.detected_language == "en"

    async def test_missing_confidence_uses_default(self, recognition):
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)

        recognition.say("rain", confidence=None)
        recognition.emit_end()
        result = await task

        assert result.confidence == pytest.approx(0.5)

    async def test_already_delivered_entries_are_skipped(self, recognition):
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)

        recognition.emit_result(RecognitionBatch(
            results=[
                RecognitionResultItem([RecognitionAlternative("old ", 0.9)], is_final=True),
                RecognitionResultItem([RecognitionAlternative("new", 0.9)], is_final=True)
            ],
            result_index=1
        ))
        recognition.emit_end()

        assert (await task).transcript == "new"

    async def test_interim_text_reported(self, recognition):
        heard = []
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service, on_interim=heard.append)

        recognition.say("कापूस", is_final=False)
        recognition.say("कापूस भाव", is_final=False)
        recognition.say("कापूस भाव", confidence=0.7)
        recognition.emit_end()
        result = await task

        assert heard == ["कापूस", "कापूस भाव"]
        assert result.transcript == "कापूस भाव"

    async def test_interim_only_is_no_speech(self, recognition):
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)

        recognition.say("kap", is_final=False)
        recognition.emit_end()

        with pytest.raises(NoSpeechDetectedException):
            await task

    async def test_end_without_results_is_no_speech(self, recognition):
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)

        recognition.emit_end()

        with pytest.raises(NoSpeechDetectedException):
            await task
        assert service.active_session is None

    async def test_recognizer_error(self, recognition):
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)

        recognition.say("partial")
        recognition.emit_error("network")

        with pytest.raises(CaptureFailedException) as exc_info:
            await task
        assert exc_info.value.code == "network"
        assert exc_info.value.error_code == "CAPTURE_ERROR"

    async def test_second_listen_fails_and_first_is_unaffected(self, recognition):
        service = SpeechRecognitionService(recognition)
        first = await start_listening(service)
        session = service.active_session

        with pytest.raises(AlreadyActiveException):
            await service.listen()

        assert service.active_session is session
        assert session.state == CaptureState.LISTENING
        assert recognition.started_with == ["mr-IN"]

        recognition.say("पाऊस")
        recognition.emit_end()
        assert (await first).transcript == "पाऊस"

    async def test_falls_back_to_secondary_language(self):
        recognition = FakeRecognition(reject_languages={"mr-IN"})
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)

        assert recognition.started_with == ["mr-IN", "en-IN"]
        assert service.active_session.language == "en-IN"

        recognition.say("weather tomorrow")
        recognition.emit_end()
        assert (await task).detected_language == "en"

    async def test_both_languages_rejected(self):
        recognition = FakeRecognition(reject_languages={"mr-IN", "en-IN"})
        service = SpeechRecognitionService(recognition)

        with pytest.raises(CaptureFailedException):
            await service.listen()

        assert recognition.started_with == ["mr-IN", "en-IN"]
        assert not service.is_listening
        assert service.active_session is None

    async def test_stop_finishes_with_what_was_heard(self, recognition):
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)

        recognition.say("कांदा भाव")
        await service.stop_listening()
        result = await task

        assert result.transcript == "कांदा भाव"
        assert recognition.stop_calls == 1

        # Late events from the stopped recognizer are ignored
        recognition.say("extra")
        recognition.emit_end()

    async def test_abort_discards_transcript(self, recognition):
        service = SpeechRecognitionService(recognition)
        task = await start_listening(service)
        session = service.active_session

        recognition.say("कांदा")
        await service.abort()

        with pytest.raises(CaptureAbortedException):
            await task
        assert session.state == CaptureState.ABORTED
        assert session.final_transcript == ""
        assert recognition.abort_calls == 1

    async def test_listen_again_after_completion(self, recognition):
        service = SpeechRecognitionService(recognition)

        for text in ("first", "second"):
            task = await start_listening(service)
            recognition.say(text)
            recognition.emit_end()
            assert (await task).transcript == text

        assert recognition.started_with == ["mr-IN", "mr-IN"]


class TestClientRecognition:
    async def test_start_sends_command_with_generation(self):
        sent = []

        async def send(message):
            sent.append(message)

        recognition = ClientRecognition(send, "capture", available=True)
        await recognition.start()
        await recognition.stop()

        assert sent[0]["type"] == "recognition.start"
        assert sent[0]["channel"] == "capture"
        assert sent[0]["generation"] == 1
        assert sent[0]["config"]["language"] == "mr-IN"
        assert sent[1] == {"type": "recognition.stop", "channel": "capture"}

    async def test_unsupported_language_rejected(self):
        async def send(message):
            pass

        recognition = ClientRecognition(send, "capture", available=True, supported_languages=["en-IN"])
        with pytest.raises(CaptureFailedException):
            await recognition.start()

    async def test_stale_events_dropped(self):
        async def send(message):
            pass

        batches = []
        recognition = ClientRecognition(send, "capture", available=True)
        recognition.set_handlers(on_result=batches.append)
        await recognition.start()
        await recognition.start()

        result = {
            "type": "recognition.event",
            "event": "result",
            "result_index": 0,
            "results": [{"is_final": True, "alternatives": [{"transcript": "पाऊस", "confidence": 0.9}]}]
        }
        recognition.dispatch({**result, "generation": 1})
        assert batches == []

        recognition.dispatch({**result, "generation": 2})
        assert batches[0].results[0].best.transcript == "पाऊस"

    @pytest.mark.parametrize("payload", [
        {"results": "पाऊस"},
        {"results": [], "result_index": "0"},
        {"results": ["पाऊस"]},
        {"results": [{"alternatives": "पाऊस"}]},
        {"results": [{"alternatives": [{"transcript": "पाऊस", "confidence": "high"}]}]}
    ])
    def test_malformed_batch_rejected(self, payload):
        with pytest.raises(ValueError):
            RecognitionBatch.from_dict(payload)

    async def test_malformed_result_dropped(self):
        async def send(message):
            pass

        batches = []
        recognition = ClientRecognition(send, "capture", available=True)
        recognition.set_handlers(on_result=batches.append)
        await recognition.start()

        recognition.dispatch({"type": "recognition.event", "event": "result", "generation": 1, "results": "पाऊस"})
        assert batches == []

        recognition.dispatch({
            "type": "recognition.event",
            "event": "result",
            "generation": 1,
            "results": [{"is_final": True, "alternatives": [{"transcript": "पाऊस"}]}]
        })
        assert batches[0].results[0].best.confidence is None
