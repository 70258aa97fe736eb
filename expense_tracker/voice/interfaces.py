"""
Voice I/O Interfaces

The microphone and the speech synthesizer are exclusive, environment-level
singletons. The confirmation session never touches them directly; it is handed
a CaptureSource and a SpeechAnnouncer. Browser, desktop and test
implementations all plug in the same way.
"""

from abc import ABC, abstractmethod
from typing import Protocol


class CaptureError(Exception):
    """Base exception for transcript capture errors."""
    pass


class CaptureUnsupportedError(CaptureError):
    """Capture is not available here at all. Terminal for the session."""
    pass


class CaptureRuntimeError(CaptureError):
    """The device failed mid-listen (permission revoked, hardware fault, no speech)."""
    pass


class CaptureListener(Protocol):
    """Callbacks a CaptureSource reports to. Implemented by the session."""

    def on_transcript(self, text: str, is_final: bool) -> None:
        ...

    def on_capture_error(self, error: CaptureError) -> None:
        ...

    def on_capture_end(self) -> None:
        ...


class CaptureSource(ABC):
    """
    Produces transcript text from live audio.

    Events may arrive synchronously from inside start()/stop() or later from
    the event loop; the listener copes with both.
    """

    @property
    @abstractmethod
    def is_supported(self) -> bool:
        """Whether capture can work in this environment."""
        pass

    @abstractmethod
    def start(self, listener: CaptureListener, language: str) -> None:
        """
        Acquire the device and begin reporting transcripts.

        Raises:
            CaptureUnsupportedError: Capture is unavailable.
            CaptureRuntimeError: The device could not be acquired.
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Finish listening; the final transcript (if any) is still delivered."""
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Release the device immediately and drop pending results."""
        pass


class SpeechAnnouncer(ABC):
    """Speaks text aloud."""

    @abstractmethod
    async def speak(self, text: str, lang: str) -> None:
        """Speak text in the given language; returns when speech is done."""
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Stop any speech in progress."""
        pass
