"""In-memory conversation transcript.

The ledger is the single source of truth for what the UI shows. Every
operation tolerates bad references: unknown ids, duplicate creates and
status regressions are logged and ignored instead of raised, because remote
events routinely arrive late, twice or for items we never saw.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from ..models.transcript import (
    EntryRole,
    EntryStatus,
    EntryStream,
    TranscriptEntry,
    new_entry_id,
)

logger = logging.getLogger(__name__)


class TranscriptLedger:
    """Ordered, id-addressed list of transcript entries."""

    def __init__(self,
                 on_change: Optional[Callable[[TranscriptEntry, str], None]] = None,
                 clock: Callable[[], float] = time.time):
        """Initialize ledger.

        Args:
            on_change: Called with (entry, change) after every mutation
            clock: Source of entry creation timestamps, in seconds
        """
        self.on_change = on_change
        self.clock = clock
        self._entries: "OrderedDict[str, TranscriptEntry]" = OrderedDict()
        self._stream_heads: Dict[EntryStream, str] = {}

    def create(self,
               entry_id: str,
               role: EntryRole,
               content: str = "",
               status: EntryStatus = EntryStatus.IN_PROGRESS,
               stream: Optional[EntryStream] = None,
               data: Optional[Dict[str, Any]] = None) -> bool:
        """Add a new entry. Creating an existing id is a no-op.

        If the stream already has an open entry, it is finalized first.

        Returns:
            True if an entry was created
        """
        if entry_id in self._entries:
            logger.debug(f"Entry {entry_id} already exists, ignoring create")
            return False

        if stream is not None:
            self._finalize_stream_head(stream)

        entry = TranscriptEntry(
            entry_id=entry_id,
            role=role,
            content=content,
            status=status,
            created_at=self.clock(),
            stream=stream,
            data=data,
        )
        self._entries[entry_id] = entry
        if stream is not None and status.is_open:
            self._stream_heads[stream] = entry_id
        self._publish(entry, "create")
        return True

    def append_delta(self, entry_id: str, delta: str) -> bool:
        entry = self._entries.get(entry_id)
        if entry is None:
            logger.debug(f"Late delta for unknown entry {entry_id}, discarding")
            return False
        if not entry.status.is_open:
            logger.debug(f"Delta for {entry.status.value} entry {entry_id} ignored")
            return False
        if not delta:
            return True

        entry.content += delta
        self._publish(entry, "append")
        return True

    def replace(self, entry_id: str, content: str) -> bool:
        """Overwrite an entry's content.

        Finished entries accept exactly one correction.
        """
        entry = self._entries.get(entry_id)
        if entry is None:
            logger.warning(f"Cannot replace content of unknown entry {entry_id}")
            return False
        if entry.content == content:
            return True
        if entry.status == EntryStatus.ERROR:
            logger.warning(f"Entry {entry_id} has failed, ignoring replace")
            return False
        if entry.status == EntryStatus.DONE:
            if entry.corrected:
                logger.warning(f"Entry {entry_id} was already corrected once, ignoring replace")
                return False
            entry.corrected = True

        entry.content = content
        self._publish(entry, "replace")
        return True

    def set_status(self, entry_id: str, status: EntryStatus) -> bool:
        entry = self._entries.get(entry_id)
        if entry is None:
            logger.warning(f"Cannot set status of unknown entry {entry_id}")
            return False
        if entry.status == status:
            return True
        if status.rank < entry.status.rank or entry.status == EntryStatus.ERROR:
            logger.warning(f"Ignoring status regression for {entry_id}: "
                           f"{entry.status.value} -> {status.value}")
            return False

        entry.status = status
        if not status.is_open and entry.stream is not None:
            if self._stream_heads.get(entry.stream) == entry_id:
                del self._stream_heads[entry.stream]
        self._publish(entry, "status")
        return True

    def hide(self, entry_id: str) -> bool:
        entry = self._entries.get(entry_id)
        if entry is None:
            logger.warning(f"Cannot hide unknown entry {entry_id}")
            return False
        if not entry.visible:
            return True

        entry.visible = False
        self._publish(entry, "hide")
        return True

    def find_active(self, role: EntryRole) -> Optional[str]:
        """Id of the newest IN_PROGRESS entry with this role, if any."""
        for entry in reversed(self._entries.values()):
            if entry.role == role and entry.status == EntryStatus.IN_PROGRESS:
                return entry.entry_id
        return None

    def active_for_stream(self, stream: EntryStream) -> Optional[str]:
        return self._stream_heads.get(stream)

    def add_breadcrumb(self, text: str, data: Optional[Dict[str, Any]] = None) -> str:
        """Record a system notice and return its id."""
        entry_id = new_entry_id()
        self.create(entry_id, EntryRole.BREADCRUMB, content=text, status=EntryStatus.DONE, data=data)
        logger.info(f"Breadcrumb: {text}")
        return entry_id

    def get(self, entry_id: str) -> Optional[TranscriptEntry]:
        return self._entries.get(entry_id)

    def has(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def entries(self, include_hidden: bool = False) -> List[TranscriptEntry]:
        return [entry for entry in self._entries.values() if include_hidden or entry.visible]

    def __len__(self) -> int:
        return len(self._entries)

    def _finalize_stream_head(self, stream: EntryStream) -> None:
        head_id = self._stream_heads.pop(stream, None)
        if head_id is None:
            return
        head = self._entries[head_id]
        if head.status.is_open:
            logger.debug(f"Finalizing {head_id} before opening a new {stream.value} entry")
            self.set_status(head_id, EntryStatus.DONE)

    def _publish(self, entry: TranscriptEntry, change: str) -> None:
        if self.on_change:
            self.on_change(entry, change)
