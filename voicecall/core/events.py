"""Call status events and the subscription bus the host renders from.

Events are read-only observations. The orchestrator emits them; hosts
subscribe for the lifetime of the call and unsubscribe deterministically.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from voicecall.logging_config import get_logger

if TYPE_CHECKING:
    from voicecall.core.session import CallState

logger: Any = get_logger(__name__)


class CallEventType(str, Enum):
    """Kinds of events a call emits."""

    STATE_CHANGED = "state_changed"
    TRANSCRIPT_UPDATED = "transcript_updated"
    REPLY_AVAILABLE = "reply_available"
    NOTICE = "notice"  # Recoverable error, transient
    ERROR = "error"  # Fatal error, emitted once before the call ends


@dataclass(frozen=True, slots=True)
class CallEvent:
    """A single observation about a call."""

    type: CallEventType
    call_id: str
    state: CallState | None = None
    previous_state: CallState | None = None
    text: str | None = None
    error: Exception | None = None
    detail: str | None = None  # e.g. what ended a listening cycle
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


CallEventListener = Callable[[CallEvent], None]


class EventBus:
    """Synchronous fan-out of call events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[CallEventListener] = []

    def subscribe(self, listener: CallEventListener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            A callable that removes the listener again (safe to call twice).
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: CallEvent) -> None:
        """Deliver an event to every listener in subscription order.

        A failing listener is logged and skipped so the call loop keeps running.
        """
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Call event listener failed on {event.type.value}")

    def clear(self) -> None:
        """Drop all listeners."""
        self._listeners.clear()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
