"""Abstract base class for local speech recognizers."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from ..models.events import RecognizerResult

logger = logging.getLogger(__name__)


class AbstractSpeechRecognizer(ABC):
    """Push-to-talk recognizer producing interim and final hypotheses."""

    def __init__(self, result_callback: Optional[Callable[[RecognizerResult], None]] = None):
        self.result_callback = result_callback
        self.locale: Optional[str] = None
        self.alternative_locales: List[str] = []
        self.is_listening = False

    def set_result_callback(self, callback: Callable[[RecognizerResult], None]) -> None:
        self.result_callback = callback

    @abstractmethod
    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.

        Returns:
            True if initialization successful
        """
        pass

    @abstractmethod
    def start(self, locale: str, reset_accumulated_state: bool = True) -> None:
        """Begin recognizing an utterance.

        Args:
            locale: Recognizer locale for the expected language (e.g. 'zh-CN')
            reset_accumulated_state: Drop audio and text left over from the previous utterance
        """
        pass

    @abstractmethod
    def feed_audio(self, pcm: bytes) -> None:
        """Add captured 16-bit PCM to the current utterance."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """End the utterance. The final result is emitted before this returns."""
        pass

    def _emit(self, result: RecognizerResult) -> None:
        if self.result_callback:
            self.result_callback(result)
