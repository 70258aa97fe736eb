"""
Voice Expense Session (confirmation state machine)

Drives one voice attempt from capture to hand-off:

    IDLE -> LISTENING -> TRANSCRIBED -> PROCESSING -> REVIEWING -> SUBMITTING -> IDLE
                              ^              |             |
                              +--- failure --+             +-- retry --> LISTENING

Spoken confirmation is NOT a phase. It is fired once on entering REVIEWING
and tracked with ``is_speaking``; the user can edit while it plays.

CRITICAL:
- At most one capture and one announcement are active at any time. This is
  enforced by phase gating, not by a lock.
- Every exit path (cancel, confirm, retry, close) releases the capture device
  and stops speech.
- No error escapes the session. Failures become ``error`` plus a transition.
- The candidate handed to ``on_submit`` is exactly what the user reviewed.
  Real validation happens in the creation path, not here.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

import structlog

from expense_tracker.extraction.errors import ExtractionError
from expense_tracker.extraction.prompt import AUTO_LANGUAGE
from expense_tracker.models.expense import (
    CANDIDATE_FIELDS,
    ExpenseCandidate,
    ExtractionResult,
)
from expense_tracker.voice.feedback import feedback_text
from expense_tracker.voice.interfaces import (
    CaptureError,
    CaptureSource,
    CaptureUnsupportedError,
    SpeechAnnouncer,
)

logger = structlog.get_logger()

UNSUPPORTED_MESSAGE = "Voice input is not supported in this environment."
EMPTY_TRANSCRIPT_MESSAGE = "No speech was detected. Please try again."


class SessionPhase(str, Enum):
    """Where a voice attempt currently is."""
    IDLE = "idle"
    LISTENING = "listening"
    TRANSCRIBED = "transcribed"
    PROCESSING = "processing"
    REVIEWING = "reviewing"
    SUBMITTING = "submitting"


class Extractor(Protocol):
    """Anything that turns a transcript into an ExtractionResult."""

    async def extract(self, transcript: str, language: str) -> ExtractionResult:
        ...


SubmitHandler = Callable[[ExpenseCandidate], Union[Any, Awaitable[Any]]]


class VoiceExpenseSession:
    """
    One user's voice-entry state.

    Capture callbacks (on_transcript, on_capture_error, on_capture_end) are
    plain methods so any CaptureSource can call them, from inside start()/stop()
    or later. Callbacks arriving outside LISTENING are stale and ignored.
    """

    def __init__(
        self,
        capture: CaptureSource,
        announcer: SpeechAnnouncer,
        extractor: Extractor,
        on_submit: SubmitHandler,
        default_language: str = "en-US",
        request_language: str = AUTO_LANGUAGE,
    ):
        self._capture = capture
        self._announcer = announcer
        self._extractor = extractor
        self._on_submit = on_submit
        self._request_language = request_language

        self.phase = SessionPhase.IDLE
        self.transcript = ""
        self.detected_language = default_language
        self.candidate: Optional[ExpenseCandidate] = None
        self.error: Optional[str] = None
        self.is_speaking = False

        self.capture_unsupported = not capture.is_supported
        if self.capture_unsupported:
            self.error = UNSUPPORTED_MESSAGE

        self._capture_active = False
        self._extraction_task: Optional[asyncio.Future] = None
        self._speech_task: Optional[asyncio.Future] = None

    # =========================================================================
    # CONTROL GATES
    # =========================================================================

    @property
    def can_start_listening(self) -> bool:
        return (
            self.phase in (SessionPhase.IDLE, SessionPhase.TRANSCRIBED)
            and not self.is_speaking
            and not self.capture_unsupported
        )

    @property
    def can_stop_listening(self) -> bool:
        return self.phase is SessionPhase.LISTENING

    @property
    def can_extract(self) -> bool:
        return self.phase is SessionPhase.TRANSCRIBED and bool(self.transcript.strip())

    @property
    def can_edit(self) -> bool:
        return self.phase is SessionPhase.REVIEWING and self.candidate is not None

    can_confirm = can_edit
    can_retry = can_edit

    def _reject(self, action: str) -> bool:
        logger.warning("voice_action_not_allowed", action=action, phase=self.phase.value)
        return False

    # =========================================================================
    # CAPTURE
    # =========================================================================

    def start_listening(self) -> bool:
        """Acquire the capture device. Returns False if not allowed right now."""
        if not self.can_start_listening:
            return self._reject("start_listening")
        return self._begin_listening()

    def _begin_listening(self) -> bool:
        self.transcript = ""
        self.candidate = None
        self.error = None
        self.phase = SessionPhase.LISTENING
        self._capture_active = True

        try:
            self._capture.start(self, self.detected_language)
        except CaptureError as e:
            self._capture_active = False
            self._handle_capture_error(e)
            return False

        logger.info("voice_capture_started", language=self.detected_language)
        return True

    def stop_listening(self) -> bool:
        """
        Finish capture explicitly.

        The source gets a chance to deliver its final segment first. Whatever
        transcript exists afterwards is kept; an empty one goes back to IDLE.
        """
        if not self.can_stop_listening:
            return self._reject("stop_listening")

        try:
            self._capture.stop()
        except CaptureError as e:
            self._capture_active = False
            self._handle_capture_error(e)
            return False

        if self.phase is SessionPhase.LISTENING:
            self._capture_active = False
            self._finish_listening()
        return True

    def on_transcript(self, text: str, is_final: bool) -> None:
        if self.phase is not SessionPhase.LISTENING:
            logger.debug("stale_transcript_ignored", phase=self.phase.value)
            return

        # Interim results overwrite; they do not accumulate
        self.transcript = text or ""
        if is_final:
            self._release_capture()
            self._finish_listening()

    def on_capture_error(self, error: CaptureError) -> None:
        if self.phase is not SessionPhase.LISTENING:
            logger.debug("stale_capture_error_ignored", error=str(error))
            return
        self._capture_active = False
        self._handle_capture_error(error)

    def on_capture_end(self) -> None:
        if self.phase is not SessionPhase.LISTENING:
            return
        self._capture_active = False
        self._finish_listening()

    def _finish_listening(self) -> None:
        if self.transcript.strip():
            self.phase = SessionPhase.TRANSCRIBED
            logger.info("voice_transcribed", length=len(self.transcript))
        else:
            self.transcript = ""
            self.phase = SessionPhase.IDLE
            self.error = EMPTY_TRANSCRIPT_MESSAGE

    def _handle_capture_error(self, error: CaptureError) -> None:
        self.transcript = ""
        self.phase = SessionPhase.IDLE
        if isinstance(error, CaptureUnsupportedError):
            self.capture_unsupported = True
            self.error = str(error) or UNSUPPORTED_MESSAGE
        else:
            self.error = str(error) or "Voice capture failed. Please try again."
        logger.warning(
            "voice_capture_failed",
            error=str(error),
            error_type=type(error).__name__,
        )

    def _release_capture(self) -> None:
        if self._capture_active:
            self._capture_active = False
            self._capture.cancel()

    # =========================================================================
    # EXTRACTION
    # =========================================================================

    async def extract(self) -> bool:
        """
        Send the transcript for extraction.

        Success moves to REVIEWING and starts the spoken confirmation.
        Any failure moves back to TRANSCRIBED with the transcript intact.
        """
        if not self.can_extract:
            return self._reject("extract")

        self.phase = SessionPhase.PROCESSING
        self.error = None
        task = asyncio.ensure_future(
            self._extractor.extract(self.transcript, self._request_language)
        )
        self._extraction_task = task

        try:
            result = await task
        except asyncio.CancelledError:
            if self._extraction_task is not task:
                # cancel() already reset the session
                return False
            self._extraction_task = None
            self.phase = SessionPhase.TRANSCRIBED
            raise
        except ExtractionError as e:
            return self._extraction_failed(task, str(e), type(e).__name__)
        except Exception as e:
            logger.exception("voice_extraction_crashed")
            return self._extraction_failed(task, f"Unexpected error: {e}", type(e).__name__)

        if self._extraction_task is not task:
            return False
        self._extraction_task = None

        self.candidate = result.candidate
        if result.detected_language:
            self.detected_language = result.detected_language
        self.phase = SessionPhase.REVIEWING
        logger.info(
            "voice_extraction_succeeded",
            detected_language=self.detected_language,
        )

        self._announce(feedback_text(self.candidate, self.detected_language))
        return True

    def _extraction_failed(self, task: asyncio.Future, message: str, error_type: str) -> bool:
        if self._extraction_task is not task:
            return False
        self._extraction_task = None
        self.phase = SessionPhase.TRANSCRIBED
        self.error = message
        logger.warning("voice_extraction_failed", error=message, error_type=error_type)
        return False

    # =========================================================================
    # SPOKEN CONFIRMATION
    # =========================================================================

    def _announce(self, text: str) -> None:
        self._stop_speaking()
        self.is_speaking = True
        self._speech_task = asyncio.ensure_future(self._speak(text, self.detected_language))

    async def _speak(self, text: str, lang: str) -> None:
        try:
            await self._announcer.speak(text, lang)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Speech is a courtesy; the review screen works without it
            logger.warning("voice_announcement_failed", error=str(e))
        finally:
            if self._speech_task is asyncio.current_task():
                self._speech_task = None
                self.is_speaking = False

    def _stop_speaking(self) -> None:
        task = self._speech_task
        self._speech_task = None
        if task is not None and not task.done():
            self._announcer.cancel()
            task.cancel()
        self.is_speaking = False

    async def wait_until_quiet(self) -> None:
        """Wait for a pending announcement to finish or be cancelled."""
        task = self._speech_task
        if task is not None:
            await asyncio.wait({task})

    # =========================================================================
    # REVIEW
    # =========================================================================

    def edit_field(self, field: str, value: str) -> bool:
        """Overwrite one candidate field. No validation happens here."""
        if field not in CANDIDATE_FIELDS:
            raise ValueError(f"Unknown candidate field: {field}")
        if not self.can_edit:
            return self._reject("edit_field")
        self.candidate = self.candidate.model_copy(update={field: value or ""})
        return True

    def retry(self) -> bool:
        """Discard the candidate and listen again."""
        if not self.can_retry:
            return self._reject("retry")
        self._stop_speaking()
        self.candidate = None
        logger.info("voice_retry")
        return self._begin_listening()

    async def confirm(self) -> Any:
        """
        Hand the reviewed candidate to the creation collaborator.

        Returns whatever the collaborator returns, or None if it failed or the
        action was not allowed. The session is IDLE afterwards either way.
        """
        if not self.can_confirm:
            self._reject("confirm")
            return None

        candidate = self.candidate
        self.phase = SessionPhase.SUBMITTING
        self._stop_speaking()

        outcome = None
        try:
            outcome = self._on_submit(candidate)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except Exception as e:
            # Reporting creation failures belongs to the collaborator
            logger.warning("voice_submit_failed", error=str(e), error_type=type(e).__name__)
            outcome = None
        finally:
            self._reset()

        return outcome

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    def cancel(self) -> None:
        """Return to IDLE, releasing anything in flight. Safe to call repeatedly."""
        if self.phase is not SessionPhase.IDLE:
            logger.info("voice_session_cancelled", phase=self.phase.value)

        self._release_capture()
        self._stop_speaking()

        task = self._extraction_task
        self._extraction_task = None
        if task is not None and not task.done():
            task.cancel()

        self._reset()

    def _reset(self) -> None:
        self.phase = SessionPhase.IDLE
        self.transcript = ""
        self.candidate = None
        self.error = None

    def close(self) -> None:
        self.cancel()

    async def __aenter__(self) -> "VoiceExpenseSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
