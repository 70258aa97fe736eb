"""Errors raised while turning a transcript into an expense candidate."""

from typing import Optional


class ExtractionError(Exception):
    """Base exception for extraction errors. All of them are retryable."""
    pass


class InvalidInputError(ExtractionError):
    """Transcript was empty or whitespace-only; the model is never called."""
    pass


class ExtractionNetworkError(ExtractionError):
    """The extraction request failed, timed out or returned a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ExtractionParseError(ExtractionError):
    """The response could not be read as an expense object, even after fallback."""

    def __init__(self, message: str, raw_response: str):
        self.raw_response = raw_response
        super().__init__(message)
