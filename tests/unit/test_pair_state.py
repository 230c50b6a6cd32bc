"""Unit tests for the language pair state machine and ordered tracker."""

import asyncio

import pytest

from bilingo.language.locales import UNKNOWN_LANGUAGE
from bilingo.language.pair_state import (
    FirstLanguageRole,
    LanguagePair,
    LanguagePairState,
    LanguagePairTracker,
    LanguagePolicy,
    LanguageTransition,
    NewLanguageRule,
)


@pytest.mark.unit
class TestLanguagePairState:
    """Test cases for LanguagePairState.apply."""

    def test_defaults(self):
        state = LanguagePairState()

        assert state.main_language == "zh"
        assert state.target_language == "en"
        assert state.is_first_utterance is True

    def test_identical_defaults_rejected(self):
        with pytest.raises(ValueError):
            LanguagePairState(LanguagePolicy(default_main="en", default_target="en"))

    def test_unknown_is_ignored_and_keeps_first_utterance(self):
        state = LanguagePairState()

        assert state.apply(UNKNOWN_LANGUAGE) is LanguageTransition.IGNORED
        assert state.apply("") is LanguageTransition.IGNORED
        assert state.is_first_utterance is True
        assert state.pair == LanguagePair("zh", "en")

    def test_first_utterance_in_default_main(self):
        state = LanguagePairState()

        assert state.apply("zh") is LanguageTransition.INITIALIZED
        assert state.pair == LanguagePair("zh", "en")
        assert state.is_first_utterance is False

    def test_first_utterance_in_default_target_flips_defaults(self):
        state = LanguagePairState()

        state.apply("en")

        assert state.pair == LanguagePair("en", "zh")

    def test_first_utterance_in_third_language(self):
        state = LanguagePairState()

        state.apply("fr")

        assert state.pair == LanguagePair("fr", "en")

    def test_first_utterance_initializes_exactly_once(self):
        state = LanguagePairState()
        state.apply("zh")

        assert state.apply("zh") is LanguageTransition.UNCHANGED

    def test_swap_is_an_involution(self):
        """Detecting the target swaps; detecting the new target swaps back."""
        state = LanguagePairState()
        state.apply("zh")

        assert state.apply("en") is LanguageTransition.SWAPPED
        assert state.pair == LanguagePair("en", "zh")
        assert state.apply("zh") is LanguageTransition.SWAPPED
        assert state.pair == LanguagePair("zh", "en")

    def test_main_language_is_idempotent(self):
        state = LanguagePairState()
        state.apply("zh")

        for _ in range(3):
            assert state.apply("zh") is LanguageTransition.UNCHANGED
        assert state.pair == LanguagePair("zh", "en")

    def test_third_language_replaces_target(self):
        state = LanguagePairState()
        state.apply("zh")

        assert state.apply("fr") is LanguageTransition.OVERRIDDEN
        assert state.pair == LanguagePair("zh", "fr")

    def test_main_and_target_never_equal(self):
        state = LanguagePairState()
        for language in ["en", "zh", "fr", "fr", "de", "zh", "de", "ja", UNKNOWN_LANGUAGE, "ja"]:
            state.apply(language)
            assert state.main_language != state.target_language

    def test_scenario_first_conversation(self):
        """你好 -> hello -> bonjour -> 谢谢"""
        state = LanguagePairState()

        state.apply("zh")
        assert state.pair == LanguagePair("zh", "en")
        state.apply("en")
        assert state.pair == LanguagePair("en", "zh")
        state.apply("fr")
        assert state.pair == LanguagePair("en", "fr")
        assert state.apply("zh") is LanguageTransition.OVERRIDDEN
        assert state.pair == LanguagePair("en", "zh")

    def test_first_language_as_target_policy(self):
        state = LanguagePairState(LanguagePolicy(first_language_role=FirstLanguageRole.TARGET))

        state.apply("fr")

        assert state.pair == LanguagePair("en", "fr")

    def test_become_main_policy(self):
        state = LanguagePairState(LanguagePolicy(new_language_rule=NewLanguageRule.BECOME_MAIN))
        state.apply("zh")

        state.apply("fr")

        assert state.pair == LanguagePair("fr", "zh")

    def test_policy_from_config(self):
        config = {"languages.default_main": "es", "languages.default_target": "de",
                  "languages.first_language_role": "target",
                  "languages.new_language_rule": "become_main"}

        class StubConfig:
            def get(self, key, default=None):
                return config.get(key, default)

        policy = LanguagePolicy.from_config(StubConfig())

        assert policy.default_main == "es"
        assert policy.default_target == "de"
        assert policy.first_language_role is FirstLanguageRole.TARGET
        assert policy.new_language_rule is NewLanguageRule.BECOME_MAIN


class ScriptedClassifier:
    """Classifier whose results are released by the test in any order."""

    def __init__(self):
        self.pending = {}

    async def classify(self, text):
        future = asyncio.get_event_loop().create_future()
        self.pending[text] = future
        return await future

    def release(self, text, language):
        self.pending.pop(text).set_result(language)


@pytest.mark.unit
class TestLanguagePairTracker:
    """Test cases for ordered application of classification results."""

    def test_out_of_order_completion_is_applied_in_order(self):
        async def scenario():
            classifier = ScriptedClassifier()
            changes = []
            tracker = LanguagePairTracker(classifier, on_change=lambda pair, t: changes.append((pair, t)))

            first = asyncio.ensure_future(tracker.classify_and_apply(tracker.next_token(), "hello"))
            second = asyncio.ensure_future(tracker.classify_and_apply(tracker.next_token(), "你好吗"))
            await asyncio.sleep(0)

            classifier.release("你好吗", "zh")
            await asyncio.sleep(0)
            # Second result is buffered until the first one lands
            assert tracker.state.is_first_utterance is True
            assert changes == []

            classifier.release("hello", "en")
            await asyncio.gather(first, second)
            return tracker, changes

        tracker, changes = asyncio.run(scenario())

        assert [t for _, t in changes] == [LanguageTransition.INITIALIZED, LanguageTransition.SWAPPED]
        assert tracker.pair == LanguagePair("zh", "en")

    def test_unchanged_results_do_not_notify(self):
        class Fixed:
            async def classify(self, text):
                return "zh"

        async def scenario():
            changes = []
            tracker = LanguagePairTracker(Fixed(), on_change=lambda pair, t: changes.append(t))
            await tracker.classify_and_apply(tracker.next_token(), "一")
            await tracker.classify_and_apply(tracker.next_token(), "二")
            return changes

        assert asyncio.run(scenario()) == [LanguageTransition.INITIALIZED]

    def test_cancelled_classification_does_not_block_later_tokens(self):
        async def scenario():
            classifier = ScriptedClassifier()
            tracker = LanguagePairTracker(classifier)

            stuck = asyncio.ensure_future(tracker.classify_and_apply(tracker.next_token(), "stuck"))
            later = asyncio.ensure_future(tracker.classify_and_apply(tracker.next_token(), "bonjour"))
            await asyncio.sleep(0)

            stuck.cancel()
            await asyncio.gather(stuck, return_exceptions=True)
            classifier.release("bonjour", "fr")
            await later
            return tracker

        tracker = asyncio.run(scenario())

        assert tracker.pair == LanguagePair("fr", "en")

    def test_reserved_slot_holds_later_results_until_used_or_skipped(self):
        class Fixed:
            async def classify(self, text):
                return {"bonjour": "fr", "guten tag": "de"}[text]

        async def scenario():
            tracker = LanguagePairTracker(Fixed())
            reserved = tracker.next_token()
            await tracker.classify_and_apply(tracker.next_token(), "guten tag")
            assert tracker.state.is_first_utterance is True

            await tracker.classify_and_apply(reserved, "bonjour")
            return tracker

        assert asyncio.run(scenario()).pair == LanguagePair("fr", "de")

    def test_skip_releases_reserved_slot(self):
        class Fixed:
            async def classify(self, text):
                return "de"

        async def scenario():
            tracker = LanguagePairTracker(Fixed())
            reserved = tracker.next_token()
            await tracker.classify_and_apply(tracker.next_token(), "guten tag")
            tracker.skip(reserved)
            tracker.skip(reserved)
            return tracker

        assert asyncio.run(scenario()).pair == LanguagePair("de", "en")
