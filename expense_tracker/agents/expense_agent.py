"""
Expense Extraction Agent (server side of POST /api/process-voice)

CRITICAL BOUNDARIES:
- CAN: Propose amount, category, description and date from a transcript
- CANNOT: Persist anything. Its output is a candidate the user reviews
- CANNOT: Guess when the transcript is empty. The model is never called

The LLM is a TRANSLATOR, not an ORACLE. It turns speech into fields;
the creation path decides whether those fields are acceptable.

DESIGN DECISION: There is no automatic retry on the model call. A failed
extraction goes back to the user, who can press the button again or type the
expense by hand. The call is bounded by a timeout so the UI never hangs.
"""

import asyncio
from datetime import date
from typing import Any, Callable, Optional

import google.generativeai as genai
import structlog

from expense_tracker.config import get_settings
from expense_tracker.config.settings import GeminiSettings
from expense_tracker.extraction.errors import (
    ExtractionNetworkError,
    ExtractionParseError,
)
from expense_tracker.extraction.language import detect_language
from expense_tracker.extraction.parser import parse_extraction_response
from expense_tracker.extraction.prompt import AUTO_LANGUAGE, build_extraction_prompt
from expense_tracker.models.expense import CATEGORIES, ExtractionResult

logger = structlog.get_logger()


class ExpenseExtractionAgent:
    """
    Turns a transcript into an ExpenseCandidate with Gemini.

    The model can be injected (anything with ``generate_content_async``),
    which is how tests avoid real API calls.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._today = today or date.today
        if model is not None:
            self._model = model
        else:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def _generate(self, prompt: str) -> str:
        timeout = self._settings.request_timeout_seconds
        try:
            response = await asyncio.wait_for(
                self._model.generate_content_async(prompt),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise ExtractionNetworkError(
                f"Model did not respond within {timeout:g} seconds"
            ) from e
        except Exception as e:
            logger.warning("gemini_call_failed", error=str(e), error_type=type(e).__name__)
            raise ExtractionNetworkError(f"Model call failed: {e}") from e

        try:
            return response.text or ""
        except ValueError as e:
            # Blocked or empty candidates raise on .text
            raise ExtractionParseError(f"Model returned no text: {e}", "") from e

    async def extract(
        self,
        transcript: str,
        language: str = AUTO_LANGUAGE,
    ) -> ExtractionResult:
        """
        Extract an expense candidate from a transcript.

        Raises:
            InvalidInputError: Blank transcript.
            ExtractionNetworkError: The model call failed or timed out.
            ExtractionParseError: No JSON object could be recovered.
        """
        prompt = build_extraction_prompt(
            transcript,
            language=language,
            categories=CATEGORIES,
            today=self._today(),
        )

        text = await self._generate(prompt)
        candidate = parse_extraction_response(text)

        detected = detect_language(transcript, language)
        logger.info(
            "expense_extracted",
            language=language,
            detected_language=detected,
            category=candidate.category,
        )
        return ExtractionResult(candidate=candidate, detected_language=detected)
