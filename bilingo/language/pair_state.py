"""Main/target language inference.

LanguagePairState is the pure state machine; LanguagePairTracker feeds it
classification results in the order the utterances were spoken, whatever
order the classifications finish in.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .locales import UNKNOWN_LANGUAGE

logger = logging.getLogger(__name__)


class LanguageTransition(Enum):
    IGNORED = "ignored"
    INITIALIZED = "initialized"
    SWAPPED = "swapped"
    OVERRIDDEN = "overridden"
    UNCHANGED = "unchanged"

    @property
    def changed(self) -> bool:
        return self in (LanguageTransition.INITIALIZED, LanguageTransition.SWAPPED,
                        LanguageTransition.OVERRIDDEN)


class FirstLanguageRole(Enum):
    """Which slot the first detected language takes."""
    MAIN = "main"
    TARGET = "target"


class NewLanguageRule(Enum):
    """What a language that is neither main nor target does to the pair."""
    REPLACE_TARGET = "replace_target"
    BECOME_MAIN = "become_main"


@dataclass(frozen=True)
class LanguagePair:
    main_language: str
    target_language: str


@dataclass(frozen=True)
class LanguagePolicy:
    default_main: str = "zh"
    default_target: str = "en"
    first_language_role: FirstLanguageRole = FirstLanguageRole.MAIN
    new_language_rule: NewLanguageRule = NewLanguageRule.REPLACE_TARGET

    @classmethod
    def from_config(cls, config) -> "LanguagePolicy":
        return cls(
            default_main=config.get("languages.default_main", "zh"),
            default_target=config.get("languages.default_target", "en"),
            first_language_role=FirstLanguageRole(config.get("languages.first_language_role", "main")),
            new_language_rule=NewLanguageRule(config.get("languages.new_language_rule", "replace_target")),
        )


class LanguagePairState:
    """Which of the two conversation languages is main and which is target."""

    def __init__(self, policy: Optional[LanguagePolicy] = None):
        self.policy = policy or LanguagePolicy()
        if self.policy.default_main == self.policy.default_target:
            raise ValueError("Default main and target languages must differ")
        self.main_language = self.policy.default_main
        self.target_language = self.policy.default_target
        self.is_first_utterance = True

    @property
    def pair(self) -> LanguagePair:
        return LanguagePair(self.main_language, self.target_language)

    def apply(self, detected: str) -> LanguageTransition:
        """Apply one classification result.

        Args:
            detected: Language code of a finalized utterance

        Returns:
            The transition that was taken
        """
        if not detected or detected == UNKNOWN_LANGUAGE:
            return LanguageTransition.IGNORED

        if self.is_first_utterance:
            self.is_first_utterance = False
            self._initialize(detected)
            return LanguageTransition.INITIALIZED

        if detected == self.target_language:
            self.main_language, self.target_language = self.target_language, self.main_language
            return LanguageTransition.SWAPPED

        if detected == self.main_language:
            return LanguageTransition.UNCHANGED

        if self.policy.new_language_rule == NewLanguageRule.BECOME_MAIN:
            self.main_language, self.target_language = detected, self.main_language
        else:
            self.target_language = detected
        return LanguageTransition.OVERRIDDEN

    def _initialize(self, detected: str) -> None:
        defaults = self.policy
        if detected == defaults.default_target:
            partner = defaults.default_main
        else:
            partner = defaults.default_target

        if defaults.first_language_role == FirstLanguageRole.TARGET:
            self.target_language, self.main_language = detected, partner
        else:
            self.main_language, self.target_language = detected, partner


class LanguagePairTracker:
    """Apply asynchronous classifications in utterance order."""

    def __init__(self,
                 classifier,
                 state: Optional[LanguagePairState] = None,
                 on_change: Optional[Callable[[LanguagePair, LanguageTransition], None]] = None):
        self.classifier = classifier
        self.state = state or LanguagePairState()
        self.on_change = on_change
        self._tokens = itertools.count()
        self._next_to_apply = 0
        self._completed: Dict[int, str] = {}

    @property
    def pair(self) -> LanguagePair:
        return self.state.pair

    def next_token(self) -> int:
        """Reserve the sequence slot for an utterance that was just finalized."""
        return next(self._tokens)

    async def classify_and_apply(self, token: int, text: str) -> None:
        """Classify text and apply it once every earlier token has been applied."""
        language = UNKNOWN_LANGUAGE
        try:
            language = await self.classifier.classify(text)
        except asyncio.CancelledError:
            logger.debug(f"Classification for utterance #{token} cancelled")
            raise
        finally:
            self._completed[token] = language
            self._drain()

    def skip(self, token: int) -> None:
        """Release a reserved slot that will never get text to classify."""
        if token < self._next_to_apply or token in self._completed:
            return
        self._completed[token] = UNKNOWN_LANGUAGE
        self._drain()

    def _drain(self) -> None:
        while self._next_to_apply in self._completed:
            token = self._next_to_apply
            language = self._completed.pop(token)
            self._next_to_apply += 1

            transition = self.state.apply(language)
            logger.info(f"Utterance #{token} detected as '{language}': {transition.value} "
                        f"(main={self.state.main_language}, target={self.state.target_language})")
            if transition.changed and self.on_change:
                self.on_change(self.state.pair, transition)
