"""Transcript entry models."""

import re
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

_ENTRY_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{10,64}$")


class EntryRole(Enum):
    """Who produced a transcript entry."""
    USER = "user"
    ASSISTANT = "assistant"
    BREADCRUMB = "breadcrumb"


class EntryStatus(Enum):
    """Lifecycle of a transcript entry."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_open(self) -> bool:
        return self in (EntryStatus.PENDING, EntryStatus.IN_PROGRESS)


_STATUS_RANK = {
    EntryStatus.PENDING: 0,
    EntryStatus.IN_PROGRESS: 1,
    EntryStatus.DONE: 2,
    EntryStatus.ERROR: 3,
}


class EntryStream(Enum):
    """Logical stream that owns an entry. At most one open entry per stream."""
    USER_SPEECH = "user_speech"
    ASSISTANT_OUTPUT = "assistant_output"


@dataclass
class TranscriptEntry:
    """One line of the conversation transcript."""
    entry_id: str
    role: EntryRole
    content: str = ""
    status: EntryStatus = EntryStatus.IN_PROGRESS
    visible: bool = True
    created_at: float = field(default_factory=time.time)
    stream: Optional[EntryStream] = None
    corrected: bool = False
    data: Optional[Dict[str, Any]] = None

    @property
    def is_placeholder(self) -> bool:
        return not self.content and self.status.is_open

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "role": self.role.value,
            "content": self.content,
            "status": self.status.value,
            "visible": self.visible,
            "created_at": self.created_at,
            "stream": self.stream.value if self.stream else None,
            "data": self.data,
        }


def new_entry_id() -> str:
    """Generate a fresh entry id that the remote peer will also accept."""
    return uuid.uuid4().hex


def is_valid_entry_id(entry_id: Any) -> bool:
    """Structural check for ids that may be referenced in control messages."""
    return isinstance(entry_id, str) and bool(_ENTRY_ID_PATTERN.match(entry_id))
