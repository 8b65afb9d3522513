"""TTS (Text-to-Speech) playback protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class SpeechOptions:
    """How a reply should be spoken.

    Multipliers are relative to the voice's defaults (1.0 = unchanged).
    """

    voice: str | None = None
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0


class TTSService(Protocol):
    """Protocol for playback engines.

    ``speak`` returns when the audio has finished playing, or earlier when
    ``stop`` is called; that return is the completion signal.
    """

    async def speak(self, text: str, options: SpeechOptions | None = None) -> None:
        """Synthesize and play text.

        Raises:
            TTSServiceError: When synthesis or playback fails
        """
        ...

    def stop(self) -> None:
        """Halt any ongoing speech. Safe to call when idle."""
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...
