"""Local speech recognition."""

from .base import AbstractSpeechRecognizer

__all__ = ["AbstractSpeechRecognizer"]
