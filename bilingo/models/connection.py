"""Connection state models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ConnectionStatus(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED, or CONNECTING -> DISCONNECTED on failure
ALLOWED_TRANSITIONS = {
    ConnectionStatus.DISCONNECTED: {ConnectionStatus.CONNECTING},
    ConnectionStatus.CONNECTING: {ConnectionStatus.CONNECTED, ConnectionStatus.DISCONNECTED},
    ConnectionStatus.CONNECTED: {ConnectionStatus.DISCONNECTED},
}


@dataclass
class ConnectionState:
    """Connection bookkeeping owned by the supervisor."""
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    attempt_count: int = 0
    last_attempt_at: Optional[float] = None

    def can_transition_to(self, status: ConnectionStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]
