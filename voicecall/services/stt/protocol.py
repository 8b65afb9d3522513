"""STT (Speech-to-Text) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from voicecall.audio.capture import AudioUnit


@dataclass
class TranscriptMetadata:
    """Metadata collected for one transcription."""

    model: str = ""
    audio_ms: float = 0.0
    confidence: float = 0.0
    detected_languages: list[str] = field(default_factory=list)
    latency_ms: float | None = None


class STTService(Protocol):
    """Protocol for STT (Speech-to-Text) service implementations."""

    async def transcribe(self, unit: AudioUnit) -> str:
        """Transcribe one finished recording.

        Never called with an empty unit.

        Returns:
            Recognised text (may be empty or whitespace for noise)

        Raises:
            STTServiceError: When transcription fails
        """
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...
