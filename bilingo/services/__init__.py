"""HTTP clients for auxiliary services."""

from .openai_client import EphemeralKeyClient, LanguageDetectionClient

__all__ = ["EphemeralKeyClient", "LanguageDetectionClient"]
