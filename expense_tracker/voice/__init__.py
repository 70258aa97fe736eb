"""Voice input package: capture interfaces, spoken feedback and the review session."""

from expense_tracker.voice.interfaces import (
    CaptureError,
    CaptureListener,
    CaptureRuntimeError,
    CaptureSource,
    CaptureUnsupportedError,
    SpeechAnnouncer,
)
from expense_tracker.voice.feedback import (
    FEEDBACK_TEMPLATES,
    SUPPORTED_LANGUAGES,
    feedback_text,
    language_name,
)
from expense_tracker.voice.session import (
    SessionPhase,
    VoiceExpenseSession,
)
from expense_tracker.voice.audio_capture import AudioClipCapture

__all__ = [
    "AudioClipCapture",
    "CaptureError",
    "CaptureListener",
    "CaptureRuntimeError",
    "CaptureSource",
    "CaptureUnsupportedError",
    "FEEDBACK_TEMPLATES",
    "SUPPORTED_LANGUAGES",
    "SessionPhase",
    "SpeechAnnouncer",
    "VoiceExpenseSession",
    "feedback_text",
    "language_name",
]
