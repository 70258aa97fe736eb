"""
Server-side language detection for transcripts.

A concrete hint from the client is trusted and echoed back. For "auto" we only
look at the writing system: Devanagari, kana and Han are unambiguous enough to
map to one tag each. Latin script could be any of several languages, so we
report nothing and the client keeps whatever language it already has.
"""

from typing import Optional

from expense_tracker.extraction.prompt import AUTO_LANGUAGE

# (first, last) code point ranges per tag, checked in order.
# Kana is checked before Han because Japanese text mixes both.
_SCRIPT_RANGES: list[tuple[str, tuple[tuple[int, int], ...]]] = [
    ("hi-IN", ((0x0900, 0x097F), (0xA8E0, 0xA8FF))),
    ("ja-JP", ((0x3040, 0x309F), (0x30A0, 0x30FF), (0x31F0, 0x31FF))),
    ("zh-CN", ((0x4E00, 0x9FFF), (0x3400, 0x4DBF))),
]


def _contains_script(text: str, ranges: tuple[tuple[int, int], ...]) -> bool:
    for char in text:
        code = ord(char)
        for first, last in ranges:
            if first <= code <= last:
                return True
    return False


def detect_language(transcript: str, hint: Optional[str] = AUTO_LANGUAGE) -> Optional[str]:
    """
    Decide which language tag to report alongside an extraction.

    Returns:
        The hint itself when it is concrete, a tag inferred from the script
        when the hint is "auto", or None when nothing can be said.
    """
    if hint and hint != AUTO_LANGUAGE:
        return hint

    for tag, ranges in _SCRIPT_RANGES:
        if _contains_script(transcript or "", ranges):
            return tag
    return None
