"""
Recorded-clip capture backed by the SpeechRecognition library.

The Streamlit UI cannot stream microphone audio into Python, so "listening"
means the user records a clip in the browser. stop() transcribes that clip
and reports a single final segment. There are no interim results.
"""

import io
from typing import Any, Callable, Optional

import speech_recognition as sr
import structlog

from expense_tracker.voice.interfaces import (
    CaptureListener,
    CaptureRuntimeError,
    CaptureSource,
    CaptureUnsupportedError,
)

logger = structlog.get_logger()

ClipProvider = Callable[[], Optional[bytes]]


class AudioClipCapture(CaptureSource):
    """
    Transcribes a WAV clip with Google's free web speech recognizer.

    Args:
        clip_provider: Returns the recorded WAV bytes, or None if nothing
            was recorded.
        recognizer: Injectable for tests; defaults to ``sr.Recognizer()``.
        supported: False when the host cannot record audio at all.
    """

    def __init__(
        self,
        clip_provider: ClipProvider,
        recognizer: Optional[Any] = None,
        supported: bool = True,
    ):
        self._clip_provider = clip_provider
        self._recognizer = recognizer or sr.Recognizer()
        self._supported = supported
        self._listener: Optional[CaptureListener] = None
        self._language = "en-US"

    @property
    def is_supported(self) -> bool:
        return self._supported

    def start(self, listener: CaptureListener, language: str) -> None:
        if not self._supported:
            raise CaptureUnsupportedError("Audio recording is not available in this browser.")
        self._listener = listener
        self._language = language

    def _transcribe(self, clip: bytes) -> str:
        try:
            with sr.AudioFile(io.BytesIO(clip)) as source:
                audio = self._recognizer.record(source)
        except ValueError as e:
            raise CaptureRuntimeError(f"Unsupported audio format: {e}") from e

        try:
            return self._recognizer.recognize_google(audio, language=self._language)
        except sr.UnknownValueError as e:
            raise CaptureRuntimeError("Could not understand the audio.") from e
        except sr.RequestError as e:
            raise CaptureRuntimeError(f"Speech recognition service error: {e}") from e

    def stop(self) -> None:
        listener = self._listener
        if listener is None:
            return
        self._listener = None

        clip = self._clip_provider()
        if not clip:
            listener.on_capture_end()
            return

        try:
            text = self._transcribe(clip)
        except CaptureRuntimeError as e:
            logger.warning("clip_transcription_failed", error=str(e), language=self._language)
            listener.on_capture_error(e)
            return

        listener.on_transcript(text, True)
        listener.on_capture_end()

    def cancel(self) -> None:
        self._listener = None
