"""Speech-to-Text services (Deepgram)."""

from voicecall.services.stt.deepgram import DeepgramService
from voicecall.services.stt.exceptions import (
    STTAuthenticationError,
    STTConnectionError,
    STTServiceError,
)
from voicecall.services.stt.protocol import STTService, TranscriptMetadata

__all__ = [
    "DeepgramService",
    "STTService",
    "TranscriptMetadata",
    "STTServiceError",
    "STTConnectionError",
    "STTAuthenticationError",
]
