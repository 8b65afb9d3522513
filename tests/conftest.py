"""Shared pytest fixtures for voicecall tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import numpy as np
import pytest

from voicecall.audio.capture import AudioUnit
from voicecall.config import Settings
from voicecall.core.events import CallEvent, CallEventType
from voicecall.core.exceptions import PermissionDeniedError
from voicecall.core.orchestrator import CallConfig
from voicecall.services.llm.protocol import ConversationContext
from voicecall.services.tts.protocol import SpeechOptions


def build_settings(**overrides) -> Settings:
    """Create a Settings object with safe test defaults."""
    base = {
        "groq_api_key": "test-groq-key",
        "deepgram_api_key": "test-deepgram-key",
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Return a factory to build Settings with overrides."""
    return build_settings


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Default Settings fixture."""
    return settings_factory()


# =============================================================================
# Audio helpers
# =============================================================================


def pcm_chunk(amplitude: int, samples: int = 160) -> bytes:
    """Constant-amplitude 16-bit PCM chunk (RMS == abs(amplitude))."""
    return np.full(samples, amplitude, dtype=np.int16).tobytes()


LOUD = pcm_chunk(2000)
QUIET = pcm_chunk(10)


class FakeStream:
    """Stream handle returned by FakeMicrophone."""

    def __init__(self, microphone: FakeMicrophone, task: asyncio.Task | None) -> None:
        self._microphone = microphone
        self._task = task
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._microphone.open_streams -= 1
        if self._task is not None:
            self._task.cancel()


class FakeMicrophone:
    """Scripted AudioInput.

    Each open() plays the next entry of ``cycles`` (a list of chunks), one
    chunk per ``interval``, then keeps feeding ``tail`` until closed. A None
    tail delivers nothing more.
    """

    def __init__(
        self,
        cycles: list[list[bytes]] | None = None,
        *,
        interval: float = 0.005,
        tail: bytes | None = QUIET,
        deny_permission: bool = False,
        permission_delay: float = 0.0,
        open_errors: list[Exception] | None = None,
    ) -> None:
        self.cycles = list(cycles or [])
        self.interval = interval
        self.tail = tail
        self.deny_permission = deny_permission
        self.permission_delay = permission_delay
        self.open_errors = list(open_errors or [])
        self.permission_requests = 0
        self.open_count = 0
        self.open_streams = 0
        self.streams: list[FakeStream] = []

    async def request_permission(self) -> None:
        self.permission_requests += 1
        if self.permission_delay:
            await asyncio.sleep(self.permission_delay)
        if self.deny_permission:
            raise PermissionDeniedError()

    async def open(self, on_chunk, **kwargs) -> FakeStream:
        self.open_count += 1
        if self.open_errors:
            raise self.open_errors.pop(0)

        script = self.cycles.pop(0) if self.cycles else []
        self.open_streams += 1
        task = asyncio.create_task(self._feed(on_chunk, script))
        stream = FakeStream(self, task)
        self.streams.append(stream)
        return stream

    async def _feed(self, on_chunk, script: list[bytes]) -> None:
        for chunk in script:
            await asyncio.sleep(self.interval)
            on_chunk(chunk)
        if self.tail is None:
            return
        while True:
            await asyncio.sleep(self.interval)
            on_chunk(self.tail)


# =============================================================================
# Engine fakes
# =============================================================================


class FakeTranscriber:
    """STT fake returning queued results (str or Exception)."""

    def __init__(self, results: list[str | Exception] | None = None, *, healthy: bool = True) -> None:
        self.results = list(results or [])
        self.healthy = healthy
        self.units: list[AudioUnit] = []
        self.closed = False

    async def transcribe(self, unit: AudioUnit) -> str:
        self.units.append(unit)
        result = self.results.pop(0) if self.results else ""
        if isinstance(result, Exception):
            raise result
        return result

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


class FakeResponder:
    """Reply engine fake; can block until ``release`` is set."""

    def __init__(
        self,
        replies: list[str | Exception] | None = None,
        *,
        healthy: bool = True,
        block: bool = False,
    ) -> None:
        self.replies = list(replies or [])
        self.healthy = healthy
        self.calls: list[tuple[str, ConversationContext]] = []
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        if not block:
            self.release.set()
        self.closed = False

    async def generate_reply(self, utterance: str, context: ConversationContext) -> str:
        self.calls.append((utterance, context))
        self.started.set()
        await self.release.wait()
        result = self.replies.pop(0) if self.replies else "OK."
        if isinstance(result, Exception):
            raise result
        return result

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


class FakePlayer:
    """Playback fake; speak() lasts ``duration`` seconds unless stopped."""

    def __init__(self, *, duration: float = 0.0, healthy: bool = True, error: Exception | None = None) -> None:
        self.duration = duration
        self.healthy = healthy
        self.error = error
        self.spoken: list[str] = []
        self.options: list[SpeechOptions | None] = []
        self.stop_count = 0
        self.started = asyncio.Event()
        self._stopped = asyncio.Event()
        self.closed = False

    async def speak(self, text: str, options: SpeechOptions | None = None) -> None:
        self.spoken.append(text)
        self.options.append(options)
        self._stopped = asyncio.Event()
        self.started.set()
        if self.error is not None:
            raise self.error
        if self.duration > 0:
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.duration)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self.stop_count += 1
        self._stopped.set()

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


class EventRecorder:
    """Collects call events for assertions."""

    def __init__(self) -> None:
        self.events: list[CallEvent] = []

    def __call__(self, event: CallEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: CallEventType) -> list[CallEvent]:
        return [e for e in self.events if e.type == event_type]

    @property
    def states(self) -> list:
        return [e.state for e in self.of_type(CallEventType.STATE_CHANGED)]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.002)


def fast_config(**overrides) -> CallConfig:
    """CallConfig with short timings for loop tests."""
    base = {
        "silence_threshold": 300.0,
        "silence_duration": 0.03,
        "sample_interval": 0.005,
        "max_listen": 1.0,
        "push_to_talk_max_listen": 1.0,
        "empty_restart_delay": 0.01,
        "error_retry_delay": 0.01,
        "post_reply_delay": 0.01,
        "stt_timeout": 1.0,
        "llm_timeout": 1.0,
    }
    base.update(overrides)
    return CallConfig(**base)


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()
