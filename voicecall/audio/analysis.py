"""Audio level analysis for silence detection."""

from __future__ import annotations

import numpy as np


def compute_rms(audio_bytes: bytes) -> float:
    """Compute RMS level of 16-bit PCM audio.

    Returns:
        RMS level (0.0 to 32767.0 for 16-bit audio)
    """
    if len(audio_bytes) < 2:
        return 0.0
    # Drop a trailing odd byte rather than fail on a torn chunk
    usable = len(audio_bytes) - (len(audio_bytes) % 2)
    samples = np.frombuffer(audio_bytes[:usable], dtype=np.int16).astype(np.float32)
    return float(np.sqrt(np.mean(samples**2)))


class LevelAnalyser:
    """Analysis context fed by the capture stream.

    Holds the "current level" the silence detector samples. ``level`` is None
    until the first chunk arrives, and again after ``close()``.
    """

    def __init__(self) -> None:
        self._level: float | None = None
        self._chunks_seen = 0
        self._closed = False

    def feed(self, chunk: bytes) -> None:
        """Consume one capture chunk."""
        if self._closed:
            return
        self._level = compute_rms(chunk)
        self._chunks_seen += 1

    @property
    def level(self) -> float | None:
        return None if self._closed else self._level

    @property
    def chunks_seen(self) -> int:
        return self._chunks_seen

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the analysis context."""
        self._closed = True
        self._level = None
