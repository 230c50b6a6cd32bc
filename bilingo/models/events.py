"""Event models flowing into the session layer.

Local events come from the push-to-talk controls and the local speech
recognizer; peer events are parsed from the realtime model's JSON messages.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


@dataclass
class AudioEvent:
    """Audio chunk event with metadata."""
    chunk_id: str
    audio_data: bytes
    timestamp: float  # Unix timestamp when chunk was captured
    sequence_number: int
    sample_rate: int = 24000
    channels: int = 1
    chunk_duration_ms: Optional[int] = None
    final: bool = False  # True for the last chunk before the track stops

    def __post_init__(self):
        if self.chunk_duration_ms is None and self.audio_data:
            # 16-bit PCM
            bytes_per_second = self.sample_rate * self.channels * 2
            self.chunk_duration_ms = int(len(self.audio_data) / bytes_per_second * 1000)


@dataclass
class RecognizerResult:
    """Interim or final hypothesis from the local speech recognizer."""
    text: str
    language: Optional[str] = None
    is_final: bool = False


@dataclass
class LocalTurnStarted:
    """The user pressed the talk control."""


@dataclass
class LocalTurnEnded:
    """The user released the talk control and the recognizer has flushed."""


@dataclass
class LocalTextSubmitted:
    """The user typed a message instead of speaking."""
    text: str


class PeerEventType(Enum):
    SESSION_CREATED = "session.created"
    SESSION_UPDATED = "session.updated"
    ITEM_CREATED = "conversation.item.created"
    ITEM_UPDATED = "conversation.item.updated"
    ITEM_COMPLETED = "response.output_item.done"
    TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
    TRANSCRIPT_DELTA = "response.audio_transcript.delta"
    TEXT_DELTA = "response.text.delta"
    AUDIO_DELTA = "response.audio.delta"
    RESPONSE_DONE = "response.done"
    ERROR = "error"
    ITEM_TRUNCATED = "conversation.item.truncated"
    ITEM_ENDED = "conversation.item.ended"
    OTHER = "other"


_WIRE_TYPES = {member.value: member for member in PeerEventType if member is not PeerEventType.OTHER}


@dataclass
class PeerEvent:
    """A normalized message received from the realtime peer."""
    type: PeerEventType
    wire_type: str
    item_id: Optional[str] = None
    role: Optional[str] = None
    text: str = ""
    delta: str = ""
    status: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    session_id: Optional[str] = None
    output_item_ids: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)


SessionEvent = Union[LocalTurnStarted, RecognizerResult, LocalTurnEnded, LocalTextSubmitted, PeerEvent]


def _item_text(item: Dict[str, Any]) -> str:
    """Join the text carried by a conversation item's content parts."""
    parts = []
    for part in item.get("content") or []:
        if not isinstance(part, dict):
            continue
        value = part.get("text") or part.get("transcript")
        if value:
            parts.append(value)
    return "".join(parts)


def parse_peer_event(message: Dict[str, Any]) -> PeerEvent:
    """Turn a decoded realtime message into a PeerEvent.

    Unknown message types come back as PeerEventType.OTHER rather than raising.
    """
    wire_type = message.get("type", "")
    event_type = _WIRE_TYPES.get(wire_type, PeerEventType.OTHER)
    event = PeerEvent(type=event_type, wire_type=wire_type, raw=message)

    item = message.get("item")
    if isinstance(item, dict):
        event.item_id = item.get("id")
        event.role = item.get("role")
        event.status = item.get("status")
        event.text = _item_text(item)
    if "item_id" in message:
        event.item_id = message.get("item_id")

    if event_type in (PeerEventType.TRANSCRIPT_DELTA, PeerEventType.TEXT_DELTA, PeerEventType.AUDIO_DELTA):
        event.delta = message.get("delta") or ""
    elif event_type == PeerEventType.TRANSCRIPTION_COMPLETED:
        event.text = message.get("transcript") or ""
        event.role = "user"
    elif event_type == PeerEventType.ERROR:
        error = message.get("error") or {}
        event.error_message = error.get("message") or "unknown error"
        event.error_code = error.get("code")
    elif event_type in (PeerEventType.SESSION_CREATED, PeerEventType.SESSION_UPDATED):
        event.session_id = (message.get("session") or {}).get("id")
    elif event_type == PeerEventType.RESPONSE_DONE:
        response = message.get("response") or {}
        event.status = response.get("status")
        event.output_item_ids = [
            output["id"] for output in response.get("output") or []
            if isinstance(output, dict) and output.get("id")
        ]

    return event
