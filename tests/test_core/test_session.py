"""Tests for CallSession state handling."""

import pytest

from voicecall.core.events import CallEventType, EventBus
from voicecall.core.exceptions import PermissionDeniedError, TranscriptionFailedError
from voicecall.core.session import CallMetrics, CallSession, CallState


@pytest.fixture
def session(recorder) -> CallSession:
    """An activated session with a recorder subscribed."""
    bus = EventBus()
    bus.subscribe(recorder)
    session = CallSession(events=bus)
    session.activate()
    return session


class TestCallMetrics:
    """Tests for CallMetrics dataclass."""

    def test_default_metrics(self) -> None:
        """Test default metrics values."""
        metrics = CallMetrics()

        assert metrics.total_cycles == 0
        assert metrics.total_turns == 0
        assert metrics.barge_in_count == 0
        assert metrics.stt_latencies_ms == []
        assert metrics.reply_latencies_ms == []

    def test_to_dict(self) -> None:
        """Test metrics to dictionary conversion."""
        metrics = CallMetrics()
        metrics.total_turns = 3
        metrics.stt_latencies_ms = [100.0, 200.0]

        result = metrics.to_dict()

        assert result["total_turns"] == 3
        assert result["avg_stt_latency_ms"] == 150.0
        assert result["avg_reply_latency_ms"] == 0.0
        assert "duration_seconds" in result


class TestCallSession:
    """Tests for CallSession transitions and guards."""

    def test_new_session_is_idle(self) -> None:
        """A new session is idle and inactive."""
        session = CallSession()

        assert session.state == CallState.IDLE
        assert session.active is False
        assert session.call_id

    def test_activate_twice_fails(self, session) -> None:
        """A session leaves IDLE only once."""
        session.transition_to(CallState.LISTENING)

        with pytest.raises(RuntimeError):
            session.activate()

    def test_transition_emits_event(self, session, recorder) -> None:
        """Transitions carry the old and new state plus detail."""
        session.transition_to(CallState.LISTENING)
        session.transition_to(CallState.PROCESSING, detail="silence")

        event = recorder.events[-1]
        assert event.type == CallEventType.STATE_CHANGED
        assert event.state == CallState.PROCESSING
        assert event.previous_state == CallState.LISTENING
        assert event.detail == "silence"
        assert event.call_id == session.call_id

    def test_transition_to_ended_is_rejected(self, session) -> None:
        """ENDED is only reachable through end()."""
        with pytest.raises(ValueError):
            session.transition_to(CallState.ENDED)

    def test_inactive_session_ignores_mutations(self, session, recorder) -> None:
        """After end() every mutation is a no-op."""
        session.end()
        count = len(recorder.events)

        assert session.transition_to(CallState.LISTENING) is False
        assert session.update_transcript("late") is False
        assert session.set_reply("late") is False
        assert session.notify(TranscriptionFailedError("late")) is False

        assert session.state == CallState.ENDED
        assert session.transcript == ""
        assert session.last_reply == ""
        assert len(recorder.events) == count

    def test_transcript_and_reply_events(self, session, recorder) -> None:
        """Transcript and reply updates are stored and emitted."""
        session.update_transcript("turn on the light")
        session.set_reply("Done.")

        assert session.transcript == "turn on the light"
        assert session.last_reply == "Done."
        assert [e.type for e in recorder.events] == [
            CallEventType.TRANSCRIPT_UPDATED,
            CallEventType.REPLY_AVAILABLE,
        ]

    def test_notify_counts_errors(self, session, recorder) -> None:
        """Notices are counted and carry the error."""
        error = TranscriptionFailedError("network down")
        session.notify(error)

        assert session.metrics.recoverable_errors == 1
        assert recorder.events[-1].type == CallEventType.NOTICE
        assert recorder.events[-1].error is error

    def test_end_emits_single_ended(self, session, recorder) -> None:
        """end() emits ENDED once, later calls do nothing."""
        session.transition_to(CallState.LISTENING)

        assert session.end() is True
        assert session.end() is False

        ended = [e for e in recorder.events if e.state == CallState.ENDED]
        assert len(ended) == 1
        assert session.is_ended
        assert session.active is False

    def test_end_with_error_emits_error_first(self, session, recorder) -> None:
        """A fatal error precedes the ENDED transition."""
        session.transition_to(CallState.LISTENING)
        session.end(PermissionDeniedError())

        assert [e.type for e in recorder.events[-2:]] == [
            CallEventType.ERROR,
            CallEventType.STATE_CHANGED,
        ]
        assert isinstance(recorder.events[-2].error, PermissionDeniedError)

    def test_end_unstarted_session_is_silent(self, recorder) -> None:
        """Ending a never-activated session emits no ENDED transition."""
        bus = EventBus()
        bus.subscribe(recorder)
        session = CallSession(events=bus)

        assert session.end() is True
        assert session.state == CallState.ENDED
        assert recorder.events == []
