"""
HTTP client for the extraction endpoint (POST /api/process-voice).

Used by the UI when it talks to a separately deployed API instead of running
the extraction flow in-process. requests is blocking, so each call is pushed
onto a worker thread to keep the session's event loop responsive.

Every request is bounded by a timeout. A hung server surfaces as
ExtractionNetworkError like any other transport failure, and the user retries
from the Transcribed state.
"""

import asyncio
from typing import Optional

import requests
import structlog

from expense_tracker.config import get_settings
from expense_tracker.extraction.errors import (
    ExtractionNetworkError,
    ExtractionParseError,
    InvalidInputError,
)
from expense_tracker.extraction.parser import candidate_from_mapping
from expense_tracker.extraction.prompt import AUTO_LANGUAGE
from expense_tracker.models.expense import ExtractionResult

logger = structlog.get_logger()

PROCESS_VOICE_PATH = "/api/process-voice"


class ExtractionClient:
    """
    Sends transcripts to the extraction endpoint.

    Satisfies the same ``extract(transcript, language)`` contract as
    ExpenseFlow, so the voice session does not care which one it gets.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        app_settings = get_settings().app
        self._base_url = (base_url or app_settings.extraction_endpoint_url or "").rstrip("/")
        self._timeout = timeout_seconds or app_settings.extraction_timeout_seconds
        self._session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self._base_url}{PROCESS_VOICE_PATH}"

    def _post(self, payload: dict) -> requests.Response:
        return self._session.post(self.url, json=payload, timeout=self._timeout)

    async def extract(self, transcript: str, language: str = AUTO_LANGUAGE) -> ExtractionResult:
        """
        Ask the server to turn a transcript into an expense candidate.

        Raises:
            InvalidInputError: Blank transcript. No request is made.
            ExtractionNetworkError: Timeout, connection failure or non-2xx status.
            ExtractionParseError: The body is not a JSON object.
        """
        if transcript is None or not transcript.strip():
            raise InvalidInputError("Transcript is required")

        payload = {"transcript": transcript, "language": language or AUTO_LANGUAGE}

        try:
            response = await asyncio.to_thread(self._post, payload)
        except requests.Timeout as e:
            logger.warning("extraction_request_timeout", url=self.url, timeout=self._timeout)
            raise ExtractionNetworkError(
                f"Extraction timed out after {self._timeout:g} seconds"
            ) from e
        except requests.RequestException as e:
            logger.warning("extraction_request_failed", url=self.url, error=str(e))
            raise ExtractionNetworkError(f"Could not reach the extraction service: {e}") from e

        if not response.ok:
            raise ExtractionNetworkError(
                self._error_message(response),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ExtractionParseError("Extraction service returned invalid JSON", response.text) from e

        if not isinstance(data, dict):
            raise ExtractionParseError("Extraction service returned an unexpected payload", response.text)

        return ExtractionResult(
            candidate=candidate_from_mapping(data),
            detected_language=data.get("detectedLanguage") or None,
        )

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Prefer the server's own error text over a bare status code."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"Extraction service returned HTTP {response.status_code}"

    def close(self) -> None:
        self._session.close()
