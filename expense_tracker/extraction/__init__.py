"""
Extraction package: transcript in, ExpenseCandidate out.

The prompt builder and response parser are pure functions. The client talks
to a remote extraction endpoint; the Gemini-backed counterpart lives in
expense_tracker.agents.
"""

from expense_tracker.extraction.errors import (
    ExtractionError,
    ExtractionNetworkError,
    ExtractionParseError,
    InvalidInputError,
)
from expense_tracker.extraction.language import detect_language
from expense_tracker.extraction.parser import (
    candidate_from_mapping,
    extract_json_object,
    parse_extraction_response,
)
from expense_tracker.extraction.prompt import AUTO_LANGUAGE, build_extraction_prompt
from expense_tracker.extraction.client import ExtractionClient

__all__ = [
    "AUTO_LANGUAGE",
    "ExtractionClient",
    "ExtractionError",
    "ExtractionNetworkError",
    "ExtractionParseError",
    "InvalidInputError",
    "build_extraction_prompt",
    "candidate_from_mapping",
    "detect_language",
    "extract_json_object",
    "parse_extraction_response",
]
