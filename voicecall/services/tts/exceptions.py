"""Custom exceptions for TTS services."""


class TTSServiceError(Exception):
    """Base exception for TTS service errors."""

    pass


class TTSSynthesisError(TTSServiceError):
    """Raised when synthesis fails."""

    pass


class TTSConnectionError(TTSServiceError):
    """Raised when unable to connect to TTS service (Edge TTS)."""

    pass


class TTSPlaybackError(TTSServiceError):
    """Raised when the output device cannot play the audio."""

    pass
