"""
Extraction Request Builder

Builds the instruction sent to the generative model. Pure string assembly:
no I/O, so tests assert on required substrings rather than exact wording.
"""

from datetime import date
from typing import Optional, Sequence

from expense_tracker.extraction.errors import InvalidInputError
from expense_tracker.models.expense import CATEGORIES

AUTO_LANGUAGE = "auto"


def build_extraction_prompt(
    transcript: str,
    language: str = AUTO_LANGUAGE,
    categories: Optional[Sequence[str]] = None,
    today: Optional[date] = None,
) -> str:
    """
    Build the prompt asking the model for a four-key JSON expense object.

    Args:
        transcript: What the user said. Embedded verbatim.
        language: A language tag such as ``hi-IN``, or ``"auto"``.
        categories: Allowed category labels. Defaults to CATEGORIES.
        today: Reference day for relative dates. Left out of the prompt if None.

    Raises:
        InvalidInputError: If the transcript is empty or whitespace-only.
    """
    if transcript is None or not transcript.strip():
        raise InvalidInputError("Transcript is required")

    labels = list(categories) if categories is not None else CATEGORIES

    if not language or language == AUTO_LANGUAGE:
        context = (
            "The transcript may be in any language. "
            "Detect the language from its content."
        )
    else:
        context = f"The transcript is in {language}."
    if today is not None:
        context += f"\nToday's date is {today.isoformat()}."

    return f"""Extract expense information from the following voice transcript.
{context}

Transcript:
\"\"\"{transcript}\"\"\"

Extract the following information:
1. Amount (numeric value, digits only, written as a string)
2. Category (must be one of: {", ".join(labels)})
3. Description (brief description of the expense)
4. Date (only if mentioned; resolve relative days like "yesterday")

If the category doesn't match any of the listed categories exactly, choose the closest match.

Return the data as a JSON object with exactly these four keys:
{{
  "amount": "string representation of the amount",
  "category": "matched category",
  "description": "extracted description",
  "date": "YYYY-MM-DD format if mentioned, otherwise empty string"
}}

Only respond with valid JSON, no additional text."""
