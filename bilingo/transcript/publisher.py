"""Transcript publisher module for pub/sub event publishing."""

import copy
import logging
from typing import Callable

from pubsub import pub

from ..models.transcript import TranscriptEntry

logger = logging.getLogger(__name__)


class TranscriptPublisher:
    """Publishes transcript entry changes using pubsub.pub."""

    def __init__(self, topic: str = "transcript_entries"):
        """Initialize transcript publisher.

        Args:
            topic: Pub/sub topic name for transcript changes
        """
        self.topic = topic
        logger.info(f"TranscriptPublisher initialized with topic: {topic}")

    def publish_entry(self, entry: TranscriptEntry, change: str) -> None:
        """Publish a snapshot of an entry after it changed.

        Args:
            entry: The entry that changed
            change: Name of the ledger operation ("create", "append", ...)
        """
        pub.sendMessage(self.topic, entry=copy.copy(entry), change=change)
        logger.debug(f"Published transcript change: {entry.entry_id} ({change})")

    def get_callback(self) -> Callable[[TranscriptEntry, str], None]:
        """Get callback function for TranscriptLedger to use."""
        return self.publish_entry
