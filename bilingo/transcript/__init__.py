"""Conversation transcript."""

from .ledger import TranscriptLedger
from .publisher import TranscriptPublisher

__all__ = ["TranscriptLedger", "TranscriptPublisher"]
