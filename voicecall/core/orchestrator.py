"""Call orchestrator: the hands-free Listen → Transcribe → Respond → Speak loop.

Orchestrates one call at a time:
- Microphone → AudioCapture + SilenceDetector (same stream) → AudioUnit
- AudioUnit → STT → reply engine → playback → back to listening
- end_call() cancels everything at once; late results are discarded
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from voicecall.audio.analysis import LevelAnalyser
from voicecall.audio.capture import AudioCapture, AudioUnit, CaptureConfig
from voicecall.audio.silence import SilenceDetector
from voicecall.config import Settings, get_settings
from voicecall.core.context import ConversationManager
from voicecall.core.events import CallEventListener, EventBus
from voicecall.core.exceptions import (
    AudioCaptureError,
    CallCancelledError,
    CallInProgressError,
    EngineUnavailableError,
    PermissionDeniedError,
    RecoverableCallError,
    ResponseFailedError,
    TranscriptionFailedError,
)
from voicecall.core.session import CallMetrics, CallSession, CallState
from voicecall.logging_config import get_logger, truncate_for_log
from voicecall.observability.metrics import ACTIVE_CALLS, record_call_metrics, record_cycle
from voicecall.services.tts.protocol import SpeechOptions

if TYPE_CHECKING:
    from collections.abc import Callable

    from voicecall.audio.microphone import AudioInput
    from voicecall.services.llm.protocol import ConversationContext, LLMService
    from voicecall.services.stt.protocol import STTService
    from voicecall.services.tts.protocol import TTSService

logger: Any = get_logger(__name__)


class ListenTrigger(str, Enum):
    """What ended a listening cycle."""

    SILENCE = "silence"
    TIMEOUT = "timeout"
    MANUAL = "manual"


class CycleOutcome(Enum):
    """How one cycle finished; decides the restart delay."""

    REPLIED = "replied"
    EMPTY = "empty"
    TRANSCRIPTION_FAILED = "transcription_failed"
    RESPONSE_FAILED = "response_failed"
    CAPTURE_FAILED = "capture_failed"
    INTERRUPTED = "interrupted"
    ENDED = "ended"


@dataclass
class CallConfig:
    """Configuration for the call loop. Durations are in seconds."""

    # Silence detection
    silence_threshold: float = 300.0
    silence_duration: float = 1.5
    sample_interval: float = 0.05

    # Hard listen bounds
    max_listen: float = 30.0
    push_to_talk_max_listen: float = 60.0
    push_to_talk: bool = False

    # Restart delays
    empty_restart_delay: float = 0.5
    error_retry_delay: float = 1.0
    post_reply_delay: float = 0.3

    # Per-step engine budgets
    stt_timeout: float = 30.0
    llm_timeout: float = 60.0

    capture: CaptureConfig = field(default_factory=CaptureConfig)
    speech: SpeechOptions | None = None
    system_prompt: str = "You are a helpful assistant on a voice call."
    max_history: int = 10

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CallConfig:
        """Create config from application settings."""
        s = settings or get_settings()
        return cls(
            silence_threshold=s.silence_threshold,
            silence_duration=s.silence_duration_ms / 1000,
            sample_interval=s.silence_sample_interval_ms / 1000,
            max_listen=s.max_listen_ms / 1000,
            push_to_talk_max_listen=s.push_to_talk_max_listen_ms / 1000,
            push_to_talk=s.push_to_talk,
            empty_restart_delay=s.empty_restart_delay_ms / 1000,
            error_retry_delay=s.error_retry_delay_ms / 1000,
            post_reply_delay=s.post_reply_delay_ms / 1000,
            stt_timeout=s.stt_timeout_s,
            llm_timeout=s.llm_timeout_s,
            capture=CaptureConfig(
                sample_rate=s.input_sample_rate,
                channels=s.input_channels,
                block_ms=s.input_block_ms,
                echo_cancellation=s.echo_cancellation,
                noise_suppression=s.noise_suppression,
            ),
            speech=SpeechOptions(
                voice=s.edge_tts_voice,
                rate=s.tts_rate,
                pitch=s.tts_pitch,
                volume=s.tts_volume,
            ),
            system_prompt=s.assistant_prompt,
            max_history=s.max_history,
        )

    def restart_delay(self, outcome: CycleOutcome) -> float:
        """Pause before the next cycle. Push-to-talk waits for the user instead."""
        if self.push_to_talk:
            return 0.0
        if outcome == CycleOutcome.REPLIED:
            return self.post_reply_delay
        if outcome == CycleOutcome.EMPTY:
            return self.empty_restart_delay
        if outcome in (
            CycleOutcome.TRANSCRIPTION_FAILED,
            CycleOutcome.RESPONSE_FAILED,
            CycleOutcome.CAPTURE_FAILED,
        ):
            return self.error_retry_delay
        return 0.0


@dataclass
class ListenResult:
    """A closed listening cycle."""

    unit: AudioUnit
    trigger: ListenTrigger
    seconds: float


class CallOrchestrator:
    """Drives one hands-free voice call at a time.

    Manages the full lifecycle of a call:
    1. Checks engines and microphone permission (start_call)
    2. Listens until silence, the hard timeout, or done_speaking()
    3. Transcribes the recording, skipping empty audio and empty text
    4. Generates a reply with recent turns as context
    5. Speaks the reply, then listens again

    Recoverable engine failures restart listening after a short delay.
    end_call() is immediate: it releases the microphone, halts playback and
    cancels the loop, and the session's ``active`` flag makes any late result
    a no-op.
    """

    def __init__(
        self,
        transcriber: STTService,
        responder: LLMService,
        player: TTSService,
        microphone: AudioInput,
        config: CallConfig | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._transcriber = transcriber
        self._responder = responder
        self._player = player
        self._microphone = microphone
        self._config = config or CallConfig.from_settings(settings)

        self._events = EventBus()
        self._conversation = ConversationManager(
            system_prompt=self._config.system_prompt,
            max_history=self._config.max_history,
        )

        self._session: CallSession | None = None
        self._starting = False
        self._loop_task: asyncio.Task[None] | None = None

        # Resources of the open listening cycle
        self._capture: AudioCapture | None = None
        self._analyser: LevelAnalyser | None = None
        self._stop_listening: asyncio.Event | None = None

        # Push-to-talk / barge-in
        self._talk_pressed: asyncio.Event | None = None
        self._interrupted = False

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> CallState:
        """Current call state (IDLE before the first call)."""
        return self._session.state if self._session else CallState.IDLE

    @property
    def session(self) -> CallSession | None:
        """The current or most recent call session."""
        return self._session

    @property
    def config(self) -> CallConfig:
        """Loop timings and engine options."""
        return self._config

    @property
    def conversation(self) -> ConversationManager:
        """History used as reply context, cleared at each call start."""
        return self._conversation

    @property
    def is_listening(self) -> bool:
        """True while a microphone stream is open."""
        return self._capture is not None and self._capture.is_recording

    def subscribe(self, listener: CallEventListener) -> Callable[[], None]:
        """Register a host listener for call events; returns the unsubscriber."""
        return self._events.subscribe(listener)

    def get_metrics(self) -> dict[str, Any]:
        """Current call metrics as a dict (empty before the first call)."""
        if self._session is None:
            return CallMetrics().to_dict()
        return {"call_id": self._session.call_id, **self._session.metrics.to_dict()}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_call(self) -> CallSession:
        """Begin the loop.

        Raises:
            CallInProgressError: A call is already active
            EngineUnavailableError: An engine did not report ready
            PermissionDeniedError: Microphone access refused
            CallCancelledError: end_call() ran before the call went live
        """
        if self._starting or (self._session is not None and self._session.active):
            raise CallInProgressError("A call is already active")

        session = CallSession(events=self._events)
        self._session = session
        self._starting = True
        try:
            not_ready = await self._check_engines()
            self._raise_if_cancelled(session)
            if not_ready:
                logger.warning(f"Cannot start call, engines not ready: {not_ready}")
                raise EngineUnavailableError(not_ready)

            await self._microphone.request_permission()
            self._raise_if_cancelled(session)
        finally:
            self._starting = False

        self._conversation.clear()
        session.activate()
        ACTIVE_CALLS.inc()

        self._loop_task = asyncio.create_task(
            self._run(session),
            name=f"call-{session.call_id}",
        )
        return session

    def _raise_if_cancelled(self, session: CallSession) -> None:
        if session.is_ended:
            logger.info(f"Call {session.call_id} ended before it started")
            raise CallCancelledError("Call was ended while starting")

    async def _check_engines(self) -> list[str]:
        """Names of engines whose health check fails or raises."""
        engines = {
            "transcription": self._transcriber,
            "response": self._responder,
            "playback": self._player,
        }
        results = await asyncio.gather(
            *(engine.health_check() for engine in engines.values()),
            return_exceptions=True,
        )
        not_ready = []
        for name, result in zip(engines, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"{name} health check raised: {result}")
                not_ready.append(name)
            elif not result:
                not_ready.append(name)
        return not_ready

    def end_call(self) -> None:
        """End the call now. Idempotent, callable from any state."""
        session = self._session
        if session is None:
            return
        if self._starting:
            # Not live yet: start_call sees the ended session when it resumes
            session.end()
            return
        if not session.active:
            return
        self._finish(session)

    async def wait_ended(self) -> None:
        """Wait until the loop task of the current call has exited."""
        task = self._loop_task
        if task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def close(self) -> None:
        """Host teardown: end any call and close the engines."""
        self.end_call()
        await self.wait_ended()
        for engine in (self._transcriber, self._responder, self._player):
            try:
                await engine.close()
            except Exception as e:
                logger.error(f"Failed to close {type(engine).__name__}: {e}")
        self._events.clear()

    def _finish(self, session: CallSession, error: Exception | None = None) -> None:
        """Single teardown path for user end, fatal error and host teardown."""
        if not session.end(error):
            return

        # Listening resources go first so the microphone is released synchronously
        self._release_listening()

        if self._talk_pressed is not None:
            self._talk_pressed.set()
            self._talk_pressed = None

        try:
            self._player.stop()
        except Exception as e:
            logger.error(f"Failed to stop playback: {e}")

        task = self._loop_task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

        ACTIVE_CALLS.dec()
        summary = session.metrics.to_dict()
        record_call_metrics(
            outcome="fatal_error" if error else "user_ended",
            duration_seconds=summary["duration_seconds"],
            stt_latency_ms=summary["avg_stt_latency_ms"],
            reply_latency_ms=summary["avg_reply_latency_ms"],
            barge_in_count=summary["barge_in_count"],
        )
        logger.info(f"Call {session.call_id} summary: {summary}")

    def _release_listening(self) -> None:
        """Stop recording and release microphone and analysis resources."""
        capture, self._capture = self._capture, None
        analyser, self._analyser = self._analyser, None
        self._stop_listening = None
        if capture is not None:
            capture.end()
        if analyser is not None:
            analyser.close()

    # ------------------------------------------------------------------
    # Host controls
    # ------------------------------------------------------------------

    def done_speaking(self) -> None:
        """Manual end of utterance while listening."""
        if self.state == CallState.LISTENING and self._stop_listening is not None:
            self._stop_listening.set()

    def press_to_talk(self) -> None:
        """Push-to-talk press: open a cycle when waiting, barge in when speaking."""
        if self.state == CallState.WAITING and self._talk_pressed is not None:
            self._talk_pressed.set()
        elif self.state == CallState.SPEAKING:
            self.interrupt()

    def release_to_talk(self) -> None:
        """Push-to-talk release: the utterance is complete."""
        self.done_speaking()

    def interrupt(self) -> None:
        """Cut the reply short and listen again immediately."""
        session = self._session
        if session is None or not session.active or session.state != CallState.SPEAKING:
            return
        logger.info(f"Barge-in on call {session.call_id}")
        self._interrupted = True
        session.metrics.barge_in_count += 1
        self._player.stop()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _run(self, session: CallSession) -> None:
        """Cycle until the session is no longer active."""
        outcome: CycleOutcome | None = None
        try:
            while session.active:
                if self._config.push_to_talk and outcome != CycleOutcome.INTERRUPTED:
                    if not await self._wait_for_talk(session):
                        break

                outcome = await self._run_cycle(session)
                if not session.active:
                    break

                delay = self._config.restart_delay(outcome)
                if delay > 0:
                    await asyncio.sleep(delay)

        except PermissionDeniedError as e:
            self._finish(session, error=e)

        except Exception as e:
            logger.exception(f"Call loop crashed for call {session.call_id}")
            self._finish(session, error=e)

    async def _wait_for_talk(self, session: CallSession) -> bool:
        """Park in WAITING until press_to_talk()."""
        pressed = asyncio.Event()
        self._talk_pressed = pressed
        if not session.transition_to(CallState.WAITING):
            return False
        await pressed.wait()
        self._talk_pressed = None
        return session.active

    async def _run_cycle(self, session: CallSession) -> CycleOutcome:
        """One Listening → Processing → Speaking pass."""
        self._interrupted = False

        try:
            listened = await self._listen(session)
        except AudioCaptureError as e:
            logger.warning(f"Microphone failed, retrying: {e}")
            if session.notify(e):
                record_cycle(CycleOutcome.CAPTURE_FAILED.value)
            return CycleOutcome.CAPTURE_FAILED

        if listened is None or not session.transition_to(
            CallState.PROCESSING, detail=listened.trigger.value
        ):
            return CycleOutcome.ENDED

        session.metrics.total_cycles += 1
        logger.debug(
            f"Listening ended by {listened.trigger.value} after {listened.seconds:.2f}s "
            f"({listened.unit.duration_ms:.0f}ms audio)"
        )

        if listened.unit.is_empty:
            return self._empty(session, listened)

        # Transcribe
        try:
            text = await self._transcribe(session, listened.unit)
        except TranscriptionFailedError as e:
            return self._recoverable(session, e, CycleOutcome.TRANSCRIPTION_FAILED, listened)
        if not session.active:
            return CycleOutcome.ENDED

        utterance = text.strip()
        if not utterance:
            return self._empty(session, listened)
        session.update_transcript(utterance)

        # Respond
        try:
            reply = await self._generate_reply(session, utterance, self._conversation.build_context())
        except ResponseFailedError as e:
            return self._recoverable(session, e, CycleOutcome.RESPONSE_FAILED, listened)
        if not session.active:
            return CycleOutcome.ENDED

        reply = reply.strip()
        if not reply:
            logger.info("Reply engine returned nothing, listening again")
            return self._empty(session, listened)

        session.set_reply(reply)
        self._conversation.record_turn(utterance, reply)
        session.metrics.total_turns += 1
        record_cycle(CycleOutcome.REPLIED.value, listened.trigger.value, listened.seconds)

        # Speak
        if not session.transition_to(CallState.SPEAKING):
            return CycleOutcome.ENDED
        await self._speak(reply)

        if self._interrupted:
            return CycleOutcome.INTERRUPTED
        return CycleOutcome.REPLIED

    async def _listen(self, session: CallSession) -> ListenResult | None:
        """Open a fresh capture + analyser and wait for the utterance to end.

        Returns None when the call ended during the cycle.
        """
        analyser = LevelAnalyser()
        capture = AudioCapture(self._microphone, self._config.capture, consumers=[analyser.feed])
        stop_event = asyncio.Event()
        self._capture, self._analyser, self._stop_listening = capture, analyser, stop_event

        if not session.transition_to(CallState.LISTENING):
            self._release_listening()
            return None

        waiters: set[asyncio.Task[Any]] = set()
        trigger = ListenTrigger.TIMEOUT
        try:
            await capture.begin()
            if not session.active:
                return None

            manual_task = asyncio.create_task(stop_event.wait())
            waiters.add(manual_task)

            silence_task = None
            if self._config.push_to_talk:
                max_listen = self._config.push_to_talk_max_listen
            else:
                max_listen = self._config.max_listen
                detector = SilenceDetector(
                    analyser,
                    threshold=self._config.silence_threshold,
                    duration=self._config.silence_duration,
                    sample_interval=self._config.sample_interval,
                )
                silence_task = asyncio.create_task(detector.wait())
                waiters.add(silence_task)

            done, _ = await asyncio.wait(
                waiters,
                timeout=max_listen,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if silence_task is not None and silence_task in done:
                trigger = ListenTrigger.SILENCE
            elif manual_task in done:
                trigger = ListenTrigger.MANUAL

        finally:
            # Both timers die with the cycle, whatever ended it
            for waiter in waiters:
                waiter.cancel()
            seconds = capture.elapsed_seconds
            unit = capture.end()
            analyser.close()
            if self._capture is capture:
                self._capture, self._analyser, self._stop_listening = None, None, None

        if not session.active:
            return None
        return ListenResult(unit=unit, trigger=trigger, seconds=seconds)

    async def _transcribe(self, session: CallSession, unit: AudioUnit) -> str:
        """Run STT with a time budget, normalising every failure."""
        start_time = time.perf_counter()
        try:
            text = await asyncio.wait_for(
                self._transcriber.transcribe(unit),
                timeout=self._config.stt_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TranscriptionFailedError(
                f"Transcription timed out after {self._config.stt_timeout:.0f}s"
            ) from e
        except Exception as e:
            raise TranscriptionFailedError(f"Transcription failed: {e}") from e

        session.metrics.stt_latencies_ms.append((time.perf_counter() - start_time) * 1000)
        return text or ""

    async def _generate_reply(
        self,
        session: CallSession,
        utterance: str,
        context: ConversationContext,
    ) -> str:
        """Ask the reply engine with a time budget, normalising every failure."""
        start_time = time.perf_counter()
        try:
            reply = await asyncio.wait_for(
                self._responder.generate_reply(utterance, context),
                timeout=self._config.llm_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ResponseFailedError(
                f"Reply timed out after {self._config.llm_timeout:.0f}s"
            ) from e
        except Exception as e:
            raise ResponseFailedError(f"Reply failed: {e}") from e

        session.metrics.reply_latencies_ms.append((time.perf_counter() - start_time) * 1000)
        return reply or ""

    async def _speak(self, reply: str) -> None:
        """Play the reply; a playback error counts as completion."""
        try:
            await self._player.speak(reply, self._config.speech)
        except Exception as e:
            logger.warning(f"Playback failed for '{truncate_for_log(reply)}': {e}")

    def _empty(self, session: CallSession, listened: ListenResult) -> CycleOutcome:
        """Silence or noise: no notice, no reply."""
        session.metrics.empty_utterances += 1
        record_cycle(CycleOutcome.EMPTY.value, listened.trigger.value, listened.seconds)
        return CycleOutcome.EMPTY

    def _recoverable(
        self,
        session: CallSession,
        error: RecoverableCallError,
        outcome: CycleOutcome,
        listened: ListenResult,
    ) -> CycleOutcome:
        """Report a recoverable failure once; the loop retries after a delay."""
        if not session.active:
            return CycleOutcome.ENDED
        logger.warning(f"Recoverable {error.kind} failure on call {session.call_id}: {error}")
        session.notify(error)
        record_cycle(outcome.value, listened.trigger.value, listened.seconds)
        return outcome


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
