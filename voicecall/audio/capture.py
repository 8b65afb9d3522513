"""Microphone capture for one listening cycle.

AudioCapture owns the device stream from ``begin()`` to ``end()``. Chunks are
fanned out to the capture buffer and to any registered consumers (the level
analyser), so recording and silence analysis read the same stream.
"""

from __future__ import annotations

import asyncio
import io
import time
import wave
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from voicecall.logging_config import get_logger

if TYPE_CHECKING:
    from voicecall.audio.microphone import AudioInput, AudioStream

logger: Any = get_logger(__name__)

ChunkConsumer = Callable[[bytes], None]


@dataclass(frozen=True, slots=True)
class AudioUnit:
    """A finished recording: raw PCM plus its encoding descriptor.

    Produced once per listening cycle and consumed once by transcription.
    """

    audio_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    sample_width: int = 2  # Bytes per sample (2 for 16-bit PCM)
    encoding: str = "linear16"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_empty(self) -> bool:
        return not self.audio_bytes

    @property
    def duration_ms(self) -> float:
        frame_bytes = self.sample_width * self.channels
        if not frame_bytes or not self.sample_rate:
            return 0.0
        return len(self.audio_bytes) / frame_bytes / self.sample_rate * 1000

    def to_wav(self) -> bytes:
        """Wrap the PCM data in a WAV container."""
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav:
            wav.setnchannels(self.channels)
            wav.setsampwidth(self.sample_width)
            wav.setframerate(self.sample_rate)
            wav.writeframes(self.audio_bytes)
        return buffer.getvalue()

    @classmethod
    def empty(cls, sample_rate: int = 16000, channels: int = 1) -> AudioUnit:
        return cls(audio_bytes=b"", sample_rate=sample_rate, channels=channels)


@dataclass
class CaptureConfig:
    """Device parameters requested for each cycle."""

    sample_rate: int = 16000
    channels: int = 1
    block_ms: int = 50
    echo_cancellation: bool = True
    noise_suppression: bool = True


class AudioCapture:
    """Records one listening cycle from an AudioInput.

    Not reusable: a new instance is created for every cycle so no device
    stream or buffered audio can leak into the next one.
    """

    def __init__(
        self,
        audio_input: AudioInput,
        config: CaptureConfig | None = None,
        consumers: list[ChunkConsumer] | None = None,
    ) -> None:
        self._input = audio_input
        self._config = config or CaptureConfig()
        self._consumers = list(consumers or [])
        self._chunks: list[bytes] = []
        self._stream: AudioStream | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._recording = False
        self._finished = False
        self._unit: AudioUnit | None = None
        self._started_at: float | None = None

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    async def begin(self) -> None:
        """Acquire the device stream and start buffering.

        Raises:
            PermissionDeniedError: Microphone access refused
            AudioCaptureError: Device could not be opened
        """
        if self._finished or self._stream is not None:
            raise RuntimeError("AudioCapture instances are single use")

        self._loop = asyncio.get_running_loop()
        stream = await self._input.open(
            self._on_device_chunk,
            sample_rate=self._config.sample_rate,
            channels=self._config.channels,
            block_ms=self._config.block_ms,
            echo_cancellation=self._config.echo_cancellation,
            noise_suppression=self._config.noise_suppression,
        )

        # end() may have run while we were waiting on the device
        if self._finished:
            stream.close()
            return

        self._stream = stream
        self._recording = True
        self._started_at = time.monotonic()
        logger.debug(
            f"Capture started: {self._config.sample_rate}Hz x{self._config.channels}"
        )

    def _on_device_chunk(self, chunk: bytes) -> None:
        """Device callback; may run on an audio thread."""
        if not self._recording or not chunk or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._append, chunk)
        except RuntimeError:
            # Event loop already closed
            pass

    def _append(self, chunk: bytes) -> None:
        if not self._recording:
            return
        self._chunks.append(chunk)
        for consumer in self._consumers:
            consumer(chunk)

    def end(self) -> AudioUnit:
        """Stop buffering, release the device and return the recording.

        Safe on every exit path and idempotent: later calls return the same
        unit without touching the device again.
        """
        if self._unit is not None:
            return self._unit

        self._recording = False
        self._finished = True

        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.close()
            except Exception as e:
                logger.error(f"Failed to close microphone stream: {e}")

        # No chunks gives an explicitly empty unit, not an error
        audio = b"".join(self._chunks)
        self._chunks = []

        self._unit = AudioUnit(
            audio_bytes=audio,
            sample_rate=self._config.sample_rate,
            channels=self._config.channels,
        )
        logger.debug(f"Capture ended: {len(audio)} bytes ({self._unit.duration_ms:.0f}ms)")
        return self._unit
