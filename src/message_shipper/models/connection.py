"""
Connection State
================

Point-in-time view of the sink connection.

Owned and mutated only by the ConnectionSupervisor; everything else reads
snapshots.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ConnectionStatus(str, Enum):
    CONNECTED = "CONNECTED"
    CONNECTING = "CONNECTING"
    DISCONNECTED = "DISCONNECTED"


@dataclass(frozen=True, slots=True)
class ConnectionState:
    """
    Sink connection snapshot.

    Attributes:
        status: Current status
        reason: Why the connection is down (DISCONNECTED only)
    """

    status: ConnectionStatus
    reason: Optional[str] = None

    @classmethod
    def connected(cls) -> "ConnectionState":
        return cls(ConnectionStatus.CONNECTED)

    @classmethod
    def connecting(cls) -> "ConnectionState":
        return cls(ConnectionStatus.CONNECTING)

    @classmethod
    def disconnected(cls, reason: str) -> "ConnectionState":
        return cls(ConnectionStatus.DISCONNECTED, reason)

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    def to_dict(self) -> dict:
        return {"status": self.status.value, "reason": self.reason}
