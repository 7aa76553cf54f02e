"""
Shared types, enums, and data structures for the live ingestion module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from leaderstream.types.types import Range


class ManagerState(str, Enum):
    """State machine for LeaderboardService."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


class ConnectionState(str, Enum):
    """State machine for the websocket connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSING = "closing"
    CLOSED = "closed"


class FrameType(str, Enum):
    """Shapes a transport frame can take."""

    SNAPSHOT = "snapshot"  # {topic, type: "snapshot", range?, data: [entry, ...]}
    UPDATE = "update"  # {topic, data: entry}


@dataclass(frozen=True, slots=True)
class RoutedFrame:
    """Decoded and classified transport frame."""

    frame_type: FrameType
    topic: str
    data: Any  # list of raw entries for snapshots, one raw entry for updates
    recv_ts: int  # Local receive timestamp (Unix ms)
    range: Range = Range.ONE_DAY


@dataclass(frozen=True, slots=True)
class GatewayError:
    """Non-fatal error signal for input that was dropped."""

    kind: str  # "parse" | "validation"
    message: str
    topic: Optional[str] = None
    ts: int = 0


@dataclass
class ConnectionHealth:
    """Health snapshot for the websocket connection."""

    state: ConnectionState
    url: str
    connected_since: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    reconnect_count: int = 0
    message_count: int = 0
    error_count: int = 0
    last_error: Optional[str] = None

    @property
    def is_healthy(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def seconds_since_message(self) -> Optional[float]:
        """Seconds since last message, or None if no messages yet."""
        if self.last_message_at is None:
            return None
        return (datetime.now(timezone.utc) - self.last_message_at).total_seconds()


@dataclass
class ConnectionMetrics:
    """Counters for the websocket connection."""

    messages_received: int = 0
    bytes_received: int = 0
    reconnections: int = 0
    errors: int = 0
    connected_at: Optional[datetime] = None  # UTC, last successful dial
    last_message_at: Optional[datetime] = None  # UTC


@dataclass
class ServiceStats:
    """Counters for the leaderboard service."""

    frames_received: int = 0
    flushes: int = 0
    entries_flushed: int = 0
    rank_refreshes: int = 0
    pending_high_water: int = 0
    by_topic: dict[str, int] = field(default_factory=dict)
