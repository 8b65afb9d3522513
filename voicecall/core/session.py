"""Call session state.

A CallSession is the single live record of one call. Every mutation goes
through a method that first checks ``active``; once the session is ended
those methods become no-ops, which is what makes late asynchronous results
harmless.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Any

from voicecall.core.events import CallEvent, CallEventType, EventBus
from voicecall.logging_config import get_logger, truncate_for_log

logger: Any = get_logger(__name__)


class CallState(Enum):
    """State machine for a voice call."""

    IDLE = auto()  # Not started
    LISTENING = auto()  # Microphone open, waiting for the utterance to end
    PROCESSING = auto()  # Transcribing and generating the reply
    SPEAKING = auto()  # Reply is being played back
    WAITING = auto()  # Push-to-talk: parked until the user presses to talk
    ENDED = auto()  # Terminal


@dataclass
class CallMetrics:
    """Metrics collected during one call."""

    total_cycles: int = 0
    total_turns: int = 0
    empty_utterances: int = 0
    recoverable_errors: int = 0
    barge_in_count: int = 0

    # Latency tracking
    stt_latencies_ms: list[float] = field(default_factory=list)
    reply_latencies_ms: list[float] = field(default_factory=list)

    started_at: float = field(default_factory=time.monotonic)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "total_cycles": self.total_cycles,
            "total_turns": self.total_turns,
            "empty_utterances": self.empty_utterances,
            "recoverable_errors": self.recoverable_errors,
            "barge_in_count": self.barge_in_count,
            "duration_seconds": time.monotonic() - self.started_at,
            "avg_stt_latency_ms": self._avg(self.stt_latencies_ms),
            "avg_reply_latency_ms": self._avg(self.reply_latencies_ms),
        }

    def _avg(self, values: list[float]) -> float:
        return sum(values) / len(values) if values else 0.0


@dataclass
class CallSession:
    """Manages state for a single voice call.

    Created by the orchestrator once start preconditions pass, ended by
    ``end()``. A session is never restarted; a new call gets a new session.
    """

    events: EventBus = field(default_factory=EventBus, repr=False)
    call_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: CallState = CallState.IDLE
    active: bool = False
    transcript: str = ""
    last_reply: str = ""
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metrics: CallMetrics = field(default_factory=CallMetrics)

    def activate(self) -> None:
        """Mark the session live. Only valid from IDLE."""
        if self.state != CallState.IDLE:
            raise RuntimeError(f"Cannot activate a session in state {self.state.name}")
        self.active = True
        logger.info(f"Call {self.call_id} started")

    def transition_to(self, new_state: CallState, *, detail: str | None = None) -> bool:
        """Move to a new state and emit STATE_CHANGED.

        Returns:
            False (and changes nothing) when the session is no longer active.
        """
        if not self.active:
            return False
        if new_state == CallState.ENDED:
            raise ValueError("Use end() to end a session")

        old_state = self.state
        self.state = new_state
        logger.debug(f"Call state: {old_state.name} → {new_state.name}")
        self.events.emit(
            CallEvent(
                type=CallEventType.STATE_CHANGED,
                call_id=self.call_id,
                state=new_state,
                previous_state=old_state,
                detail=detail,
            )
        )
        return True

    def update_transcript(self, text: str) -> bool:
        """Store the latest recognised utterance and notify the host."""
        if not self.active:
            return False
        self.transcript = text
        logger.info(f"Transcript: {truncate_for_log(text)}")
        self.events.emit(
            CallEvent(type=CallEventType.TRANSCRIPT_UPDATED, call_id=self.call_id, text=text)
        )
        return True

    def set_reply(self, text: str) -> bool:
        """Store the latest assistant reply and notify the host."""
        if not self.active:
            return False
        self.last_reply = text
        logger.info(f"Reply: {truncate_for_log(text)}")
        self.events.emit(
            CallEvent(type=CallEventType.REPLY_AVAILABLE, call_id=self.call_id, text=text)
        )
        return True

    def notify(self, error: Exception) -> bool:
        """Surface a recoverable error as a transient notice."""
        if not self.active:
            return False
        self.metrics.recoverable_errors += 1
        self.events.emit(
            CallEvent(
                type=CallEventType.NOTICE,
                call_id=self.call_id,
                state=self.state,
                error=error,
                detail=str(error),
            )
        )
        return True

    def end(self, error: Exception | None = None) -> bool:
        """End the session.

        Emits ERROR (when a fatal error caused the end) followed by a single
        STATE_CHANGED to ENDED. Calling it again is a no-op.

        Returns:
            True only for the call that actually ended the session.
        """
        if self.state == CallState.ENDED:
            return False

        was_active = self.active
        self.active = False
        old_state = self.state
        self.state = CallState.ENDED

        if error is not None:
            logger.error(f"Call {self.call_id} ended by fatal error: {error}")
            self.events.emit(
                CallEvent(
                    type=CallEventType.ERROR,
                    call_id=self.call_id,
                    state=old_state,
                    error=error,
                    detail=str(error),
                )
            )
        else:
            logger.info(f"Call {self.call_id} ended")

        if was_active or old_state != CallState.IDLE:
            self.events.emit(
                CallEvent(
                    type=CallEventType.STATE_CHANGED,
                    call_id=self.call_id,
                    state=CallState.ENDED,
                    previous_state=old_state,
                )
            )
        return True

    @property
    def is_ended(self) -> bool:
        return self.state == CallState.ENDED
