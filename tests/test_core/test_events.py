"""Tests for the call event bus."""

from voicecall.core.events import CallEvent, CallEventType, EventBus
from voicecall.core.session import CallState


def make_event(event_type: CallEventType = CallEventType.NOTICE) -> CallEvent:
    return CallEvent(type=event_type, call_id="call-1", detail="x")


class TestEventBus:
    """Tests for EventBus."""

    def test_emit_in_subscription_order(self) -> None:
        """Listeners receive events in the order they subscribed."""
        bus = EventBus()
        received: list[str] = []
        bus.subscribe(lambda e: received.append("first"))
        bus.subscribe(lambda e: received.append("second"))

        bus.emit(make_event())

        assert received == ["first", "second"]

    def test_unsubscribe(self) -> None:
        """An unsubscribed listener gets nothing, and unsubscribing twice is safe."""
        bus = EventBus()
        received: list[CallEvent] = []
        unsubscribe = bus.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        bus.emit(make_event())

        assert received == []
        assert bus.listener_count == 0

    def test_failing_listener_does_not_block_others(self) -> None:
        """A raising listener is skipped."""
        bus = EventBus()
        received: list[CallEvent] = []

        def broken(event: CallEvent) -> None:
            raise RuntimeError("render failed")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        bus.emit(make_event())

        assert len(received) == 1

    def test_clear(self) -> None:
        """clear() drops every listener."""
        bus = EventBus()
        bus.subscribe(lambda e: None)
        bus.subscribe(lambda e: None)

        bus.clear()

        assert bus.listener_count == 0


class TestCallEvent:
    """Tests for CallEvent."""

    def test_event_fields(self) -> None:
        """Events carry state, detail and a timestamp."""
        event = CallEvent(
            type=CallEventType.STATE_CHANGED,
            call_id="call-1",
            state=CallState.PROCESSING,
            previous_state=CallState.LISTENING,
            detail="timeout",
        )

        assert event.type.value == "state_changed"
        assert event.state == CallState.PROCESSING
        assert event.timestamp is not None
