"""Control channel wrapper around the current peer transport."""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..errors import TransportError

logger = logging.getLogger(__name__)


class ControlChannel:
    """Sends control messages over whichever transport is currently bound.

    Sending never raises: a failed send is logged, reported to the failure
    listeners and returns False.
    """

    def __init__(self):
        self.transport = None
        self._failure_listeners: List[Callable[[str], None]] = []

    def bind(self, transport) -> None:
        self.transport = transport

    def unbind(self) -> None:
        self.transport = None

    def add_failure_listener(self, listener: Callable[[str], None]) -> None:
        self._failure_listeners.append(listener)

    @property
    def is_open(self) -> bool:
        return self.transport is not None and self.transport.is_open

    def send(self, message: Dict[str, Any]) -> bool:
        message_type = message.get("type", "?")
        if not self.is_open:
            logger.error(f"Cannot send {message_type}: control channel is not open")
            self._report_failure(f"Connection lost while sending {message_type}")
            return False

        try:
            self.transport.send(message)
        except TransportError as e:
            logger.error(f"Failed to send {message_type}: {e}")
            self._report_failure(f"Failed to send {message_type}")
            return False

        logger.debug(f"Sent {message_type}")
        return True

    def send_audio(self, pcm: bytes) -> bool:
        if not self.is_open:
            return False
        try:
            self.transport.send_audio(pcm)
        except TransportError as e:
            logger.error(f"Failed to stream audio: {e}")
            self._report_failure("Failed to stream audio")
            return False
        return True

    def _report_failure(self, reason: str) -> None:
        for listener in self._failure_listeners:
            listener(reason)
