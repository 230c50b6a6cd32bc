"""Language identification and main/target pair tracking."""

from .classifier import LanguageClassifier, detect_script_language
from .locales import UNKNOWN_LANGUAGE, LANGUAGES, display_name, normalize_language, to_locale
from .pair_state import (
    FirstLanguageRole,
    LanguagePair,
    LanguagePairState,
    LanguagePairTracker,
    LanguagePolicy,
    LanguageTransition,
    NewLanguageRule,
)

__all__ = [
    "LanguageClassifier",
    "detect_script_language",
    "UNKNOWN_LANGUAGE",
    "LANGUAGES",
    "display_name",
    "normalize_language",
    "to_locale",
    "FirstLanguageRole",
    "LanguagePair",
    "LanguagePairState",
    "LanguagePairTracker",
    "LanguagePolicy",
    "LanguageTransition",
    "NewLanguageRule",
]
