"""Data models for Bilingo."""

from .agent import AgentConfig, DEFAULT_INSTRUCTIONS
from .connection import ConnectionState, ConnectionStatus
from .events import (
    AudioEvent,
    LocalTextSubmitted,
    LocalTurnEnded,
    LocalTurnStarted,
    PeerEvent,
    PeerEventType,
    RecognizerResult,
    parse_peer_event,
)
from .transcript import EntryRole, EntryStatus, EntryStream, TranscriptEntry, is_valid_entry_id, new_entry_id

__all__ = [
    "AgentConfig",
    "DEFAULT_INSTRUCTIONS",
    "ConnectionState",
    "ConnectionStatus",
    "AudioEvent",
    "LocalTextSubmitted",
    "LocalTurnEnded",
    "LocalTurnStarted",
    "PeerEvent",
    "PeerEventType",
    "RecognizerResult",
    "parse_peer_event",
    "EntryRole",
    "EntryStatus",
    "EntryStream",
    "TranscriptEntry",
    "is_valid_entry_id",
    "new_entry_id",
]
