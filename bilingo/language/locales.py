"""Canonical language table.

Every conversion between language codes, English display names and
recognizer locales goes through this module.
"""

from collections import namedtuple
from typing import Optional

UNKNOWN_LANGUAGE = "unknown"
DEFAULT_LOCALE = "en-US"

Language = namedtuple("Language", ["code", "name", "locale"])

LANGUAGES = {
    "en": Language("en", "English", "en-US"),
    "zh": Language("zh", "Chinese", "zh-CN"),
    "es": Language("es", "Spanish", "es-ES"),
    "fr": Language("fr", "French", "fr-FR"),
    "de": Language("de", "German", "de-DE"),
    "ja": Language("ja", "Japanese", "ja-JP"),
    "ru": Language("ru", "Russian", "ru-RU"),
    "ko": Language("ko", "Korean", "ko-KR"),
    "ar": Language("ar", "Arabic", "ar-SA"),
    "hi": Language("hi", "Hindi", "hi-IN"),
    "pt": Language("pt", "Portuguese", "pt-BR"),
    "it": Language("it", "Italian", "it-IT"),
    "nl": Language("nl", "Dutch", "nl-NL"),
    "el": Language("el", "Greek", "el-GR"),
    "th": Language("th", "Thai", "th-TH"),
}

_BY_NAME = {language.name.lower(): code for code, language in LANGUAGES.items()}
_ALIASES = {
    "mandarin": "zh",
    "cantonese": "zh",
    "simplified chinese": "zh",
    "traditional chinese": "zh",
    "castilian": "es",
    "brazilian portuguese": "pt",
    "farsi": "fa",
}


def normalize_language(value: Optional[str]) -> str:
    """Map a name ("Chinese"), locale ("zh-CN") or code ("ZH") to a bare code.

    Returns UNKNOWN_LANGUAGE for empty values and for anything that does not
    look like a language.
    """
    if not value:
        return UNKNOWN_LANGUAGE
    cleaned = value.strip().strip(".\"'").lower()
    if not cleaned or cleaned == UNKNOWN_LANGUAGE:
        return UNKNOWN_LANGUAGE
    if cleaned in _BY_NAME:
        return _BY_NAME[cleaned]
    if cleaned in _ALIASES:
        return _ALIASES[cleaned]

    code = cleaned.replace("_", "-").split("-")[0]
    if 2 <= len(code) <= 3 and code.isalpha():
        return code
    return UNKNOWN_LANGUAGE


def to_locale(code: str) -> str:
    """Recognizer locale for a language code; codes that already carry a region pass through."""
    if code and "-" in code:
        return code
    language = LANGUAGES.get(code)
    return language.locale if language else DEFAULT_LOCALE


def display_name(code: str) -> str:
    language = LANGUAGES.get(code)
    return language.name if language else code
