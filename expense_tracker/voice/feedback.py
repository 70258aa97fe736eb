"""
Spoken confirmation templates.

A template is picked by the two-letter prefix of the detected language.
Unknown prefixes fall back to English. Adding a language means adding an entry.
"""

from expense_tracker.models.expense import ExpenseCandidate

DEFAULT_TEMPLATE = "I understood an expense of {amount} for {category}. Is this correct?"

FEEDBACK_TEMPLATES: dict[str, str] = {
    "en": DEFAULT_TEMPLATE,
    "hi": "मैंने {amount} रुपये का {category} खर्च समझा है। क्या यह सही है?",
    "es": "He entendido un gasto de {amount} en {category}. ¿Es correcto?",
    "fr": "J'ai compris une dépense de {amount} pour {category}. Est-ce correct?",
    "de": "Ich habe eine Ausgabe von {amount} für {category} verstanden. Ist das richtig?",
    "ja": "{category}に{amount}の支出を理解しました。これは正しいですか？",
    "zh": "我理解了{category}的{amount}支出。这正确吗？",
}

SUPPORTED_LANGUAGES: dict[str, str] = {
    "en-US": "English (US)",
    "hi-IN": "Hindi",
    "es-ES": "Spanish",
    "fr-FR": "French",
    "de-DE": "German",
    "ja-JP": "Japanese",
    "zh-CN": "Chinese (Simplified)",
}


def language_prefix(language: str) -> str:
    return (language or "").split("-")[0].lower()


def feedback_text(candidate: ExpenseCandidate, language: str) -> str:
    """Confirmation sentence for a candidate in the given language."""
    template = FEEDBACK_TEMPLATES.get(language_prefix(language), DEFAULT_TEMPLATE)
    # str.replace, not str.format: braces in user text must not break templating
    return (
        template
        .replace("{amount}", candidate.amount)
        .replace("{category}", candidate.category)
    )


def language_name(code: str) -> str:
    return SUPPORTED_LANGUAGES.get(code, code)
