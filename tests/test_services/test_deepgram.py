"""Tests for Deepgram STT service."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from voicecall.audio.capture import AudioUnit
from voicecall.services.stt.deepgram import DeepgramService
from voicecall.services.stt.exceptions import STTConnectionError, STTServiceError
from voicecall.services.stt.protocol import TranscriptMetadata


def prerecorded_response(transcript: str, confidence: float = 0.9) -> SimpleNamespace:
    """Minimal prerecorded response shape."""
    alternative = SimpleNamespace(transcript=transcript, confidence=confidence)
    channel = SimpleNamespace(alternatives=[alternative], detected_language="en")
    return SimpleNamespace(results=SimpleNamespace(channels=[channel]))


class TestExtractTranscript:
    """Tests for response parsing."""

    def test_top_alternative(self, settings) -> None:
        """The first alternative of the first channel is used."""
        service = DeepgramService(settings=settings)
        metadata = TranscriptMetadata()

        text = service._extract_transcript(prerecorded_response("turn on the light"), metadata)

        assert text == "turn on the light"
        assert metadata.confidence == 0.9
        assert metadata.detected_languages == ["en"]

    def test_no_channels(self, settings) -> None:
        """A response without channels is an empty transcript."""
        service = DeepgramService(settings=settings)
        response = SimpleNamespace(results=SimpleNamespace(channels=[]))

        assert service._extract_transcript(response, TranscriptMetadata()) == ""

    def test_malformed_response(self, settings) -> None:
        """A response without results is a service error."""
        service = DeepgramService(settings=settings)

        with pytest.raises(STTServiceError):
            service._extract_transcript(object(), TranscriptMetadata())


class TestDeepgramService:
    """Tests for DeepgramService requests."""

    @pytest.fixture
    def deepgram_service(self, settings) -> DeepgramService:
        service = DeepgramService(settings=settings)
        service._client = MagicMock()
        return service

    @pytest.mark.asyncio
    async def test_transcribe_sends_wav(self, deepgram_service) -> None:
        """The recording is sent as a WAV buffer."""
        transcribe_file = deepgram_service._client.listen.prerecorded.v.return_value.transcribe_file
        transcribe_file.return_value = prerecorded_response("hello")
        unit = AudioUnit(audio_bytes=b"\x00\x00" * 1600)

        text = await deepgram_service.transcribe(unit)

        assert text == "hello"
        payload = transcribe_file.call_args.args[0]
        assert payload["mimetype"] == "audio/wav"
        assert payload["buffer"].startswith(b"RIFF")
        assert deepgram_service.last_metadata.audio_ms == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_request_failure_mapped(self, deepgram_service) -> None:
        """Request errors become STTConnectionError."""
        transcribe_file = deepgram_service._client.listen.prerecorded.v.return_value.transcribe_file
        transcribe_file.side_effect = RuntimeError("network down")

        with pytest.raises(STTConnectionError):
            await deepgram_service.transcribe(AudioUnit(audio_bytes=b"\x00\x00"))

    @pytest.mark.asyncio
    async def test_health_check_without_key(self, settings_factory) -> None:
        """Missing API key reports unhealthy."""
        service = DeepgramService(settings=settings_factory(deepgram_api_key=None))

        assert await service.health_check() is False
