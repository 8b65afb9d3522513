"""Text-to-Speech playback services (Edge TTS).

Provides TTS capabilities for the voice call:
- EdgeTTSService: Microsoft Edge TTS synthesis played through sounddevice
- strip_markdown: cleanup applied before any reply is spoken
"""

from voicecall.services.tts.edge import EdgeTTSService
from voicecall.services.tts.exceptions import (
    TTSConnectionError,
    TTSPlaybackError,
    TTSServiceError,
    TTSSynthesisError,
)
from voicecall.services.tts.protocol import SpeechOptions, TTSService
from voicecall.services.tts.text import strip_markdown

__all__ = [
    # Services
    "EdgeTTSService",
    # Protocol
    "TTSService",
    "SpeechOptions",
    # Utilities
    "strip_markdown",
    # Exceptions
    "TTSServiceError",
    "TTSSynthesisError",
    "TTSConnectionError",
    "TTSPlaybackError",
]
