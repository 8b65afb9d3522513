"""Platform audio input.

The orchestrator only sees the AudioInput protocol; SoundDeviceMicrophone is
the PortAudio implementation used by the terminal host.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from voicecall.core.exceptions import AudioCaptureError, PermissionDeniedError
from voicecall.logging_config import get_logger

if TYPE_CHECKING:
    import sounddevice as sd

logger: Any = get_logger(__name__)


class AudioStream(Protocol):
    """An open device stream. Closing it releases the microphone."""

    def close(self) -> None:
        ...


class AudioInput(Protocol):
    """Protocol for microphone implementations."""

    async def request_permission(self) -> None:
        """Make sure the microphone can be opened.

        Raises:
            PermissionDeniedError: Access refused or no input device
        """
        ...

    async def open(
        self,
        on_chunk: Callable[[bytes], None],
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        block_ms: int = 50,
        echo_cancellation: bool = True,
        noise_suppression: bool = True,
    ) -> AudioStream:
        """Open a 16-bit PCM stream and deliver chunks to ``on_chunk``.

        ``on_chunk`` may be called from a device thread.

        Raises:
            PermissionDeniedError: Access refused
            AudioCaptureError: Device could not be opened
        """
        ...


class _SoundDeviceStream:
    """Wraps a started RawInputStream so close() stops and releases it."""

    def __init__(self, stream: sd.RawInputStream) -> None:
        self._stream = stream
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.stop()
        finally:
            self._stream.close()


class SoundDeviceMicrophone:
    """Microphone input via PortAudio (sounddevice).

    PortAudio exposes no echo cancellation or noise suppression controls, so
    those requests are accepted and logged once.
    """

    def __init__(self, device: int | str | None = None) -> None:
        self._device = device
        self._warned_processing = False

    @property
    def sd(self) -> Any:
        """Lazy import; PortAudio is only needed once a real device is used."""
        import sounddevice

        return sounddevice

    def _resolve_device(self) -> int | str | None:
        if self._device is not None:
            return self._device
        try:
            default = self.sd.query_devices(kind="input")
        except (self.sd.PortAudioError, ValueError) as e:
            raise PermissionDeniedError(f"No usable input device: {e}") from e
        return default["index"] if default else None

    async def request_permission(self) -> None:
        """Open and immediately close a stream, like a browser permission probe."""
        def probe() -> None:
            device = self._resolve_device()
            try:
                stream = self.sd.RawInputStream(device=device, channels=1, dtype="int16")
                stream.close()
            except self.sd.PortAudioError as e:
                raise PermissionDeniedError(f"Microphone access failed: {e}") from e

        await asyncio.to_thread(probe)

    async def open(
        self,
        on_chunk: Callable[[bytes], None],
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        block_ms: int = 50,
        echo_cancellation: bool = True,
        noise_suppression: bool = True,
    ) -> AudioStream:
        if (echo_cancellation or noise_suppression) and not self._warned_processing:
            logger.debug("Echo cancellation / noise suppression not available via PortAudio")
            self._warned_processing = True

        def callback(indata: Any, frames: int, time_info: Any, status: sd.CallbackFlags) -> None:
            if status:
                logger.debug(f"Microphone status: {status}")
            on_chunk(bytes(indata))

        def start() -> _SoundDeviceStream:
            device = self._resolve_device()
            try:
                stream = self.sd.RawInputStream(
                    device=device,
                    samplerate=sample_rate,
                    channels=channels,
                    dtype="int16",
                    blocksize=int(sample_rate * block_ms / 1000),
                    callback=callback,
                )
                stream.start()
            except self.sd.PortAudioError as e:
                raise AudioCaptureError(f"Failed to open microphone: {e}") from e
            return _SoundDeviceStream(stream)

        opening = asyncio.ensure_future(asyncio.to_thread(start))
        try:
            return await asyncio.shield(opening)
        except asyncio.CancelledError:
            # The device thread cannot be interrupted; release whatever it opens
            opening.add_done_callback(_close_if_opened)
            raise


def _close_if_opened(future: asyncio.Future[_SoundDeviceStream]) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()
