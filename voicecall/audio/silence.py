"""End-of-utterance detection from a live level analyser.

The detector samples the analyser on a fixed tick. Sustained silence longer
than the configured duration ends the utterance; any sound above the
threshold resets the window, so short pauses between words do not. The
detector has no timeout of its own: a stream that never delivers samples is
bounded by the orchestrator's hard listen timeout.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from voicecall.logging_config import get_logger

if TYPE_CHECKING:
    from voicecall.audio.analysis import LevelAnalyser

logger: Any = get_logger(__name__)

DEFAULT_SILENCE_THRESHOLD = 300.0  # RMS on the 16-bit scale
DEFAULT_SILENCE_DURATION = 1.5  # seconds
DEFAULT_SAMPLE_INTERVAL = 0.05  # seconds


@dataclass
class SilenceWindow:
    """Rolling silence measurement for one listening cycle."""

    threshold: float = DEFAULT_SILENCE_THRESHOLD
    duration: float = DEFAULT_SILENCE_DURATION
    silence_started_at: float | None = None  # None while sound is present

    def reset(self) -> None:
        self.silence_started_at = None


class SilenceDetector:
    """Fires once when the analyser has been quiet for ``duration`` seconds."""

    def __init__(
        self,
        analyser: LevelAnalyser,
        *,
        threshold: float = DEFAULT_SILENCE_THRESHOLD,
        duration: float = DEFAULT_SILENCE_DURATION,
        sample_interval: float = DEFAULT_SAMPLE_INTERVAL,
        on_silence: Callable[[], None] | None = None,
    ) -> None:
        if sample_interval <= 0:
            raise ValueError("sample_interval must be positive")
        self._analyser = analyser
        self._window = SilenceWindow(threshold=threshold, duration=duration)
        self._sample_interval = sample_interval
        self._on_silence = on_silence
        self._fired = False
        self._fired_at: float | None = None
        self._samples = 0

    @property
    def window(self) -> SilenceWindow:
        return self._window

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def fired_at(self) -> float | None:
        return self._fired_at

    @property
    def samples(self) -> int:
        return self._samples

    def observe(self, level: float | None, now: float) -> bool:
        """Apply one sample to the window.

        Args:
            level: Current analyser level, or None when no audio has arrived
            now: Current time in seconds (monotonic)

        Returns:
            True on the sample that ends the utterance and on every call after.
        """
        if self._fired:
            return True
        if level is None:
            return False

        self._samples += 1
        window = self._window
        if level < window.threshold:
            if window.silence_started_at is None:
                window.silence_started_at = now
            if now - window.silence_started_at > window.duration:
                self._fire(now)
                return True
        else:
            window.reset()
        return False

    def _fire(self, now: float) -> None:
        self._fired = True
        self._fired_at = now
        logger.debug(f"Silence detected after {self._samples} samples")
        if self._on_silence is not None:
            self._on_silence()

    async def wait(self) -> None:
        """Sample on every tick until silence ends the utterance."""
        loop = asyncio.get_running_loop()
        while not self._fired:
            if self._analyser.closed:
                # Analysis context released; the cycle is over
                return
            if self.observe(self._analyser.level, loop.time()):
                return
            await asyncio.sleep(self._sample_interval)
