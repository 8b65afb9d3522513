"""Errors surfaced by the call orchestrator.

Fatal errors (``StartError`` subclasses) end the call or prevent it from
starting. Recoverable errors (``RecoverableCallError`` subclasses) are absorbed
by the loop, reported to the host as a notice, and listening restarts.
"""


class CallError(Exception):
    """Base exception for voice call errors."""

    pass


class StartError(CallError):
    """Raised when a call cannot start."""

    pass


class PermissionDeniedError(StartError):
    """Raised when microphone access is refused.

    Fatal: a call never starts, or an active call is ended.
    """

    def __init__(self, message: str = "Microphone access was denied") -> None:
        super().__init__(message)


class EngineUnavailableError(StartError):
    """Raised when an engine does not report ready at call start."""

    def __init__(self, engines: list[str]) -> None:
        super().__init__(f"Engine not ready: {', '.join(engines)}")
        self.engines = engines


class CallInProgressError(StartError):
    """Raised when start_call is invoked while a call is still active."""

    pass


class CallCancelledError(StartError):
    """Raised when end_call() runs while start_call() is still in progress."""

    pass


class AudioCaptureError(CallError):
    """Raised when the microphone stream cannot be opened mid-call."""

    pass


class RecoverableCallError(CallError):
    """Base class for errors that restart listening instead of ending the call."""

    kind: str = "engine"


class TranscriptionFailedError(RecoverableCallError):
    """Raised when speech could not be converted to text."""

    kind = "transcription"


class ResponseFailedError(RecoverableCallError):
    """Raised when the assistant reply could not be generated."""

    kind = "response"
