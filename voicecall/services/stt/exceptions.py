"""Custom exceptions for STT services."""


class STTServiceError(Exception):
    """Base exception for STT service errors."""

    pass


class STTConnectionError(STTServiceError):
    """Raised when unable to reach the STT API."""

    pass


class STTAuthenticationError(STTServiceError):
    """Raised when API key is missing or invalid."""

    pass
