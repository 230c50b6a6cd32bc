"""Language identification for short utterances."""

import asyncio
import logging
import unicodedata
from typing import Optional

from .locales import UNKNOWN_LANGUAGE, normalize_language

logger = logging.getLogger(__name__)

# Marks that single out one Latin-script language, checked in order.
# Accented Latin text matching none of them falls back to DIACRITIC_DEFAULT.
LATIN_MARKS = [
    ("es", set("ñ¿¡")),
    ("de", set("äöß")),
    ("fr", set("çèêëàâîïôœùû")),
    ("pt", set("ãõ")),
]
DIACRITIC_DEFAULT = "es"

# (language, ranges) in tie-break order; kana before han so mixed Japanese text wins
_SCRIPT_RANGES = [
    ("ja", [(0x3040, 0x30FF)]),
    ("zh", [(0x4E00, 0x9FA5)]),
    ("ko", [(0x1100, 0x11FF), (0xAC00, 0xD7AF)]),
    ("ru", [(0x0400, 0x04FF)]),
    ("ar", [(0x0600, 0x06FF)]),
    ("hi", [(0x0900, 0x097F)]),
    ("th", [(0x0E00, 0x0E7F)]),
    ("el", [(0x0370, 0x03FF)]),
]


def _script_of(char: str) -> Optional[str]:
    point = ord(char)
    for language, ranges in _SCRIPT_RANGES:
        for low, high in ranges:
            if low <= point <= high:
                return language
    if char.isalpha() and unicodedata.name(char, "").startswith("LATIN"):
        return "latin"
    return None


def detect_script_language(text: str) -> str:
    """Guess a language from the writing system alone.

    Japanese kana wins whenever present. Otherwise the script with the most
    characters decides. Plain ASCII Latin is English; accented Latin is mapped
    through LATIN_MARKS, and any other diacritic counts as Spanish.

    Args:
        text: Text to inspect

    Returns:
        Language code, or UNKNOWN_LANGUAGE when no letters are recognized
    """
    counts = {}
    for char in text:
        script = _script_of(char)
        if script:
            counts[script] = counts.get(script, 0) + 1

    if not counts:
        return UNKNOWN_LANGUAGE
    if "ja" in counts:
        return "ja"

    order = [language for language, _ in _SCRIPT_RANGES] + ["latin"]
    dominant = max(counts, key=lambda script: (counts[script], -order.index(script)))
    if dominant == "latin":
        return _latin_language(text)
    return dominant


def _latin_language(text: str) -> str:
    lowered = text.lower()
    for language, marks in LATIN_MARKS:
        if any(mark in lowered for mark in marks):
            return language
    if any(ord(char) > 0x7F and _script_of(char) == "latin" for char in lowered):
        return DIACRITIC_DEFAULT
    return "en"


class LanguageClassifier:
    """Identify the language of an utterance, remotely when worth it."""

    def __init__(self,
                 detection_client=None,
                 min_remote_length: int = 5,
                 timeout_seconds: float = 5.0):
        """Initialize classifier.

        Args:
            detection_client: Object with an async detect_language(text) method, or None
                              to always use the local heuristic
            min_remote_length: Texts shorter than this skip the remote call
            timeout_seconds: Upper bound for the remote call
        """
        self.detection_client = detection_client
        self.min_remote_length = min_remote_length
        self.timeout_seconds = timeout_seconds

    async def classify(self, text: str) -> str:
        """Return a language code for text. Never raises."""
        stripped = (text or "").strip()
        if not stripped:
            return UNKNOWN_LANGUAGE

        if self.detection_client is None or len(stripped) < self.min_remote_length:
            return detect_script_language(stripped)

        try:
            answer = await asyncio.wait_for(
                self.detection_client.detect_language(stripped),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Language detection timed out after {self.timeout_seconds}s, using script heuristic")
            return detect_script_language(stripped)
        except Exception as e:
            logger.warning(f"Language detection failed ({e}), using script heuristic")
            return detect_script_language(stripped)

        language = normalize_language(answer)
        if language == UNKNOWN_LANGUAGE:
            logger.debug(f"Inconclusive detection answer {answer!r}, using script heuristic")
            return detect_script_language(stripped)

        logger.debug(f"Detected language '{language}' for: {stripped[:40]}")
        return language
