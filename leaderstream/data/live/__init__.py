"""
Live Leaderboard Feed Module.

Streams per-participant performance and asset events from a websocket feed
into the reconciliation engine and keeps a periodically refreshed leaderboard.

Components:
- LeaderboardService (manager.py): Top-level orchestration and lifecycle management
- ConnectionManager (connection.py): WebSocket lifecycle and reconnection
- FrameRouter (router.py): Frame decoding and classification (snapshot vs update)
- IngestionGateway (gateway.py): Entry validation, routing to the store and the engine

The package namespace only carries config, errors and types, so the core can
import them without pulling in the service.

Usage:
    from leaderstream.data.live import FeedConfig
    from leaderstream.data.live.manager import LeaderboardService

    service = LeaderboardService(FeedConfig())
    await service.start()
"""

from leaderstream.data.live.config import (
    ConnectionConfig,
    EngineConfig,
    FeedConfig,
    ScheduleConfig,
    SeedParticipant,
)
from leaderstream.data.live.errors import (
    ConfigurationError,
    ConnectionError,
    EntryValidationError,
    LiveFeedError,
    MessageParseError,
)
from leaderstream.data.live.types import (
    ConnectionHealth,
    ConnectionState,
    FrameType,
    GatewayError,
    ManagerState,
    RoutedFrame,
)

__all__ = [
    # Config
    "FeedConfig",
    "ConnectionConfig",
    "EngineConfig",
    "ScheduleConfig",
    "SeedParticipant",
    # Types
    "ConnectionHealth",
    "ConnectionState",
    "FrameType",
    "GatewayError",
    "ManagerState",
    "RoutedFrame",
    # Errors
    "LiveFeedError",
    "ConnectionError",
    "MessageParseError",
    "EntryValidationError",
    "ConfigurationError",
]
