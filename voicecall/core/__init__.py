"""Call orchestration: session state, events, context and the call loop."""

from voicecall.core.context import ConversationManager
from voicecall.core.events import CallEvent, CallEventListener, CallEventType, EventBus
from voicecall.core.exceptions import (
    AudioCaptureError,
    CallCancelledError,
    CallError,
    CallInProgressError,
    EngineUnavailableError,
    PermissionDeniedError,
    RecoverableCallError,
    ResponseFailedError,
    StartError,
    TranscriptionFailedError,
)
from voicecall.core.orchestrator import (
    CallConfig,
    CallOrchestrator,
    CycleOutcome,
    ListenResult,
    ListenTrigger,
)
from voicecall.core.session import CallMetrics, CallSession, CallState

__all__ = [
    # Orchestration
    "CallOrchestrator",
    "CallConfig",
    "CycleOutcome",
    "ListenResult",
    "ListenTrigger",
    # State
    "CallSession",
    "CallState",
    "CallMetrics",
    "ConversationManager",
    # Events
    "CallEvent",
    "CallEventType",
    "CallEventListener",
    "EventBus",
    # Errors
    "CallError",
    "StartError",
    "PermissionDeniedError",
    "EngineUnavailableError",
    "CallInProgressError",
    "CallCancelledError",
    "AudioCaptureError",
    "RecoverableCallError",
    "TranscriptionFailedError",
    "ResponseFailedError",
]
