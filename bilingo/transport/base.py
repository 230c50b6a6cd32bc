"""Abstract interfaces for the peer transport and local audio endpoints."""

import logging
import queue
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class PlaybackStream:
    """Thread-safe FIFO of PCM chunks received from the peer."""

    def __init__(self, max_chunks: int = 500):
        self._queue: "queue.Queue[Optional[bytes]]" = queue.Queue(maxsize=max_chunks)
        self.closed = False
        self.dropped_chunks = 0

    def push(self, pcm: bytes) -> None:
        if self.closed:
            return
        try:
            self._queue.put_nowait(pcm)
        except queue.Full:
            self.dropped_chunks += 1
            logger.warning(f"Playback buffer full, dropped chunk ({self.dropped_chunks} total)")

    def read(self, timeout: float = 0.1) -> Optional[bytes]:
        """Next chunk, or None on timeout or after close."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def flush(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def close(self) -> None:
        self.closed = True
        self.flush()


class AbstractPeerTransport(ABC):
    """Bidirectional connection to the realtime model."""

    def __init__(self):
        self.on_open: Optional[Callable[[], None]] = None
        self.on_message: Optional[Callable[[Dict[str, Any]], None]] = None
        self.on_close: Optional[Callable[[str], None]] = None
        self.media_stream = PlaybackStream()

    def bind(self,
             on_open: Callable[[], None],
             on_message: Callable[[Dict[str, Any]], None],
             on_close: Callable[[str], None]) -> None:
        self.on_open = on_open
        self.on_message = on_message
        self.on_close = on_close

    @abstractmethod
    async def connect(self, ephemeral_key: str) -> None:
        """Open the connection and call on_open once control messages can flow.

        Raises:
            TransportError: If the connection cannot be established
        """
        pass

    @abstractmethod
    def send(self, message: Dict[str, Any]) -> None:
        """Queue a control message, preserving order.

        Raises:
            ChannelClosedError: If the transport is not open
        """
        pass

    @abstractmethod
    def send_audio(self, pcm: bytes) -> None:
        """Stream outbound microphone audio."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass


class AudioSink(ABC):
    """Local playback device for the peer's audio."""

    @abstractmethod
    def attach(self, stream: PlaybackStream) -> None:
        pass

    @abstractmethod
    def detach(self) -> None:
        """Stop playing the current stream. Safe to call when nothing is attached."""
        pass

    @property
    @abstractmethod
    def is_attached(self) -> bool:
        pass


class MediaTrack(ABC):
    """Outbound audio source."""

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass
