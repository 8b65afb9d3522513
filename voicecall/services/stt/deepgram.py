"""Deepgram STT service for finished recordings."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from voicecall.config import Settings, get_settings
from voicecall.logging_config import get_logger
from voicecall.services.stt.exceptions import (
    STTAuthenticationError,
    STTConnectionError,
    STTServiceError,
)
from voicecall.services.stt.protocol import TranscriptMetadata

if TYPE_CHECKING:
    from deepgram import DeepgramClient

    from voicecall.audio.capture import AudioUnit

logger: Any = get_logger(__name__)

DEEPGRAM_MODEL = "nova-2"


class DeepgramService:
    """Deepgram prerecorded transcription, one request per utterance.

    Each listening cycle produces a complete recording, so the REST endpoint
    is used instead of a live WebSocket.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.deepgram_model or DEEPGRAM_MODEL
        self._language = self._settings.stt_language
        self._client: DeepgramClient | None = None
        self.last_metadata: TranscriptMetadata | None = None

    @property
    def client(self) -> DeepgramClient:
        """Lazy initialization of Deepgram client."""
        if self._client is None:
            if self._settings.deepgram_api_key is None:
                raise STTAuthenticationError("DEEPGRAM_API_KEY is not set")

            from deepgram import DeepgramClient

            self._client = DeepgramClient(
                api_key=self._settings.deepgram_api_key.get_secret_value(),
            )
        return self._client

    async def transcribe(self, unit: AudioUnit) -> str:
        """Transcribe a finished recording.

        Raises:
            STTConnectionError: When the request fails
            STTServiceError: For malformed responses
        """
        from deepgram import PrerecordedOptions

        options = PrerecordedOptions(
            model=self._model,
            language=self._language,
            smart_format=True,
            punctuate=True,
        )

        start_time = time.perf_counter()
        try:
            response = await asyncio.to_thread(
                self.client.listen.prerecorded.v("1").transcribe_file,
                {"buffer": unit.to_wav(), "mimetype": "audio/wav"},
                options,
            )
        except STTServiceError:
            raise
        except Exception as e:
            logger.error(f"Deepgram transcription error: {e}")
            raise STTConnectionError(f"Deepgram request failed: {e}") from e
        latency_ms = (time.perf_counter() - start_time) * 1000

        metadata = TranscriptMetadata(
            model=self._model,
            audio_ms=unit.duration_ms,
            latency_ms=latency_ms,
        )
        transcript = self._extract_transcript(response, metadata)
        self.last_metadata = metadata
        logger.debug(f"Deepgram transcribed {unit.duration_ms:.0f}ms in {latency_ms:.0f}ms")
        return transcript

    def _extract_transcript(self, response: Any, metadata: TranscriptMetadata) -> str:
        """Pull the top alternative out of a prerecorded response."""
        try:
            results = response.results
            channels = results.channels if results else []
        except AttributeError as e:
            raise STTServiceError(f"Unexpected Deepgram response: {e}") from e

        if not channels:
            return ""

        alternatives = channels[0].alternatives
        if not alternatives:
            return ""

        best = alternatives[0]
        metadata.confidence = getattr(best, "confidence", 0.0) or 0.0
        detected = getattr(channels[0], "detected_language", None)
        if detected:
            metadata.detected_languages.append(detected)
        return best.transcript or ""

    async def close(self) -> None:
        """Close the Deepgram client."""
        self._client = None

    async def health_check(self) -> bool:
        """Check if a Deepgram client can be created."""
        try:
            _ = self.client
            return True
        except Exception as e:
            logger.error(f"Deepgram health check failed: {e}")
            return False
