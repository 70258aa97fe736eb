"""
Extraction Response Parser

Models are asked for bare JSON but routinely wrap it in prose or markdown
fences. Recovery is an ordered fallback:

1. Parse the whole response as JSON.
2. Parse the span from the first "{" to the last "}" (inclusive).
3. Give up with ExtractionParseError, keeping the raw text for diagnostics.

Step 2 is greedy: braces in the surrounding prose break it. Callers only see
parse_extraction_response, so a stricter strategy can replace it here.

Nothing is validated beyond shape. Amount and category are checked on the
creation path, the same one manual entries take.
"""

import json
from typing import Any, Mapping

from expense_tracker.extraction.errors import ExtractionParseError
from expense_tracker.models.expense import CANDIDATE_FIELDS, ExpenseCandidate


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


def candidate_from_mapping(data: Mapping[str, Any]) -> ExpenseCandidate:
    """Build a candidate from a decoded object; absent keys become ""."""
    return ExpenseCandidate(
        **{field: _as_text(data.get(field)) for field in CANDIDATE_FIELDS}
    )


def _try_loads(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except ValueError:
        return False, None


def extract_json_object(response_text: str) -> dict:
    """
    Recover the JSON object embedded in a model response.

    Raises:
        ExtractionParseError: If no non-empty object can be recovered.
    """
    if not response_text or not response_text.strip():
        raise ExtractionParseError("Model returned an empty response", response_text or "")

    parsed, data = _try_loads(response_text)

    if not parsed:
        start = response_text.find("{")
        end = response_text.rfind("}")
        if start != -1 and end > start:
            parsed, data = _try_loads(response_text[start:end + 1])

    if not parsed or not isinstance(data, dict):
        raise ExtractionParseError(
            "Could not extract valid JSON from the response", response_text
        )
    if not data:
        raise ExtractionParseError("Model returned an empty JSON object", response_text)

    return data


def parse_extraction_response(response_text: str) -> ExpenseCandidate:
    """Turn raw model output into an ExpenseCandidate."""
    return candidate_from_mapping(extract_json_object(response_text))
