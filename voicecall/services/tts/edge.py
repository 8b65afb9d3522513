"""Edge TTS playback service using Microsoft's unofficial API."""

from __future__ import annotations

import asyncio
import io
import time
from typing import Any

import edge_tts
import numpy as np

from voicecall.config import Settings, get_settings
from voicecall.logging_config import get_logger, truncate_for_log
from voicecall.services.tts.exceptions import (
    TTSConnectionError,
    TTSPlaybackError,
    TTSSynthesisError,
)
from voicecall.services.tts.protocol import SpeechOptions
from voicecall.services.tts.text import strip_markdown

logger: Any = get_logger(__name__)

EDGE_DEFAULT_VOICE = "en-US-AriaNeural"
EDGE_SAMPLE_RATE = 24000  # Edge outputs 24kHz MP3
PITCH_HZ_PER_UNIT = 100  # pitch multiplier 1.1 -> +10Hz


def _decode_mp3_to_pcm(mp3_data: bytes) -> tuple[np.ndarray, int]:
    """Decode MP3 data to mono int16 samples.

    Returns:
        Tuple of (int16 samples, sample rate)
    """
    import miniaudio

    try:
        decoded = miniaudio.decode(
            mp3_data,
            output_format=miniaudio.SampleFormat.SIGNED16,
            nchannels=1,
        )
    except miniaudio.DecodeError as e:
        raise TTSSynthesisError(f"MP3 decode failed: {e}") from e

    samples = np.frombuffer(decoded.samples, dtype=np.int16)
    return samples, decoded.sample_rate


def _percent(multiplier: float) -> str:
    """1.25 -> '+25%', 0.8 -> '-20%'."""
    return f"{round((multiplier - 1.0) * 100):+d}%"


def to_edge_prosody(options: SpeechOptions) -> dict[str, str]:
    """Map speech multipliers onto Edge TTS prosody strings."""
    return {
        "rate": _percent(options.rate),
        "volume": _percent(max(0.0, options.volume)),
        "pitch": f"{round((options.pitch - 1.0) * PITCH_HZ_PER_UNIT):+d}Hz",
    }


class EdgeTTSService:
    """Edge TTS synthesis played through the default output device.

    WARNING: This uses an unofficial API that may change without notice.

    Features:
    - Neural voices, requires internet connection
    - Markdown stripped before synthesis
    - stop() aborts synthesis or playback for barge-in and call end
    """

    def __init__(
        self,
        settings: Settings | None = None,
        voice: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._voice = voice or self._settings.edge_tts_voice or EDGE_DEFAULT_VOICE
        self._cancel_event: asyncio.Event | None = None
        self._playing = False

    @property
    def sd(self) -> Any:
        """Lazy import; PortAudio is only needed for real playback."""
        import sounddevice

        return sounddevice

    def default_options(self) -> SpeechOptions:
        return SpeechOptions(
            voice=self._voice,
            rate=self._settings.tts_rate,
            pitch=self._settings.tts_pitch,
            volume=self._settings.tts_volume,
        )

    async def speak(self, text: str, options: SpeechOptions | None = None) -> None:
        """Synthesize text and play it, returning when playback ends."""
        options = options or self.default_options()
        clean_text = strip_markdown(text)
        if not clean_text:
            return

        # Replace any previous utterance, like speechSynthesis.cancel()
        self.stop()
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event

        start_time = time.perf_counter()
        mp3_bytes = await self._synthesize(clean_text, options, cancel_event)
        if cancel_event.is_set():
            return

        samples, sample_rate = await asyncio.to_thread(_decode_mp3_to_pcm, mp3_bytes)
        if cancel_event.is_set() or samples.size == 0:
            return

        logger.debug(
            f"EdgeTTS synthesized {samples.size / sample_rate:.1f}s of audio "
            f"in {(time.perf_counter() - start_time) * 1000:.0f}ms"
        )
        await self._play(samples, sample_rate)

    async def _synthesize(
        self,
        text: str,
        options: SpeechOptions,
        cancel_event: asyncio.Event,
    ) -> bytes:
        """Collect the MP3 stream for text (partial MP3 cannot be decoded)."""
        communicate = edge_tts.Communicate(
            text,
            options.voice or self._voice,
            **to_edge_prosody(options),
        )
        mp3_buffer = io.BytesIO()

        try:
            async for message in communicate.stream():
                if cancel_event.is_set():
                    logger.debug("EdgeTTS synthesis cancelled")
                    return b""
                if message["type"] == "audio":
                    mp3_buffer.write(message["data"])
        except edge_tts.exceptions.NoAudioReceived as e:
            raise TTSSynthesisError(f"No audio received from Edge TTS for: {truncate_for_log(text)}") from e
        except Exception as e:
            logger.error(f"EdgeTTS stream error: {e}")
            raise TTSConnectionError(f"Edge TTS request failed: {e}") from e

        mp3_bytes = mp3_buffer.getvalue()
        if not mp3_bytes and not cancel_event.is_set():
            raise TTSSynthesisError("No audio received from Edge TTS")
        return mp3_bytes

    async def _play(self, samples: np.ndarray, sample_rate: int) -> None:
        """Play int16 samples and wait for the device to finish."""
        sd = self.sd
        audio_float = samples.astype(np.float32) / 32768.0
        try:
            sd.play(audio_float, samplerate=sample_rate)
            self._playing = True
            await asyncio.to_thread(sd.wait)
        except sd.PortAudioError as e:
            raise TTSPlaybackError(f"Playback failed: {e}") from e
        finally:
            self._playing = False

    def stop(self) -> None:
        """Cancel synthesis and halt playback."""
        if self._cancel_event is not None:
            self._cancel_event.set()
        if self._playing:
            self.sd.stop()
            self._playing = False

    async def health_check(self) -> bool:
        """Check that an output device exists."""
        try:
            device = await asyncio.to_thread(self.sd.query_devices, kind="output")
            return bool(device)
        except Exception as e:
            logger.warning(f"EdgeTTS health check failed: {e}")
            return False

    async def close(self) -> None:
        """Stop any playback in progress."""
        self.stop()
