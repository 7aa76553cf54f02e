"""
Configuration types for the live leaderboard service.

Immutable, validated configuration dataclasses for every runtime component.
File-based configuration (TOML) is parsed in ``leaderstream.config`` and
converted into these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from leaderstream.data.live.errors import ConfigurationError
from leaderstream.types.topics import T_ASSETS, T_PERFORMANCE

DEFAULT_WS_URL = "ws://localhost:8080"


@dataclass(frozen=True)
class ConnectionConfig:
    """Configuration for the websocket transport."""

    url: str = DEFAULT_WS_URL

    # Connection behavior
    connect_timeout_s: float = 30.0
    heartbeat_s: float = 30.0
    max_reconnect_attempts: int = 10
    base_reconnect_delay_s: float = 1.0
    max_reconnect_delay_s: float = 60.0
    reconnect_jitter: float = 0.3  # ±30% jitter

    def __post_init__(self) -> None:
        if not self.url.startswith(("ws://", "wss://")):
            raise ConfigurationError(
                "url must be a ws:// or wss:// address",
                field="url",
                value=self.url,
            )
        if self.connect_timeout_s <= 0:
            raise ConfigurationError(
                "connect_timeout_s must be positive",
                field="connect_timeout_s",
                value=self.connect_timeout_s,
            )
        if self.max_reconnect_attempts < 0:
            raise ConfigurationError(
                "max_reconnect_attempts must be non-negative",
                field="max_reconnect_attempts",
                value=self.max_reconnect_attempts,
            )
        if not (0 <= self.reconnect_jitter <= 1):
            raise ConfigurationError(
                "reconnect_jitter must be between 0 and 1",
                field="reconnect_jitter",
                value=self.reconnect_jitter,
            )


@dataclass(frozen=True)
class SeedParticipant:
    """Participant known before the first frame arrives."""

    id: str
    name: str
    series: tuple[float, ...] = field(default_factory=tuple)
    sharpe: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ConfigurationError("seed id must be non-empty", field="id")


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for the reconciliation engine."""

    live_window: int = 48  # max live values kept per participant
    seeds: tuple[SeedParticipant, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.live_window <= 0:
            raise ConfigurationError(
                "live_window must be positive",
                field="live_window",
                value=self.live_window,
            )
        ids = [s.id for s in self.seeds]
        if len(ids) != len(set(ids)):
            raise ConfigurationError("seed ids must be unique", field="seeds", value=ids)


@dataclass(frozen=True)
class ScheduleConfig:
    """Cadence of the flush and rank ticks."""

    flush_interval_s: float = 0.05  # drain buffered performance updates
    rank_interval_s: float = 30.0  # recompute the leaderboard
    top_k: int = 3

    def __post_init__(self) -> None:
        if self.flush_interval_s <= 0:
            raise ConfigurationError(
                "flush_interval_s must be positive",
                field="flush_interval_s",
                value=self.flush_interval_s,
            )
        if self.rank_interval_s <= 0:
            raise ConfigurationError(
                "rank_interval_s must be positive",
                field="rank_interval_s",
                value=self.rank_interval_s,
            )
        if self.top_k <= 0:
            raise ConfigurationError("top_k must be positive", field="top_k", value=self.top_k)


@dataclass(frozen=True)
class FeedConfig:
    """
    Immutable top-level configuration for the leaderboard service.

    Example:
        config = FeedConfig(
            connection=ConnectionConfig(url="ws://localhost:8080"),
            schedule=ScheduleConfig(rank_interval_s=10.0),
        )
    """

    performance_topic: str = T_PERFORMANCE
    asset_topic: str = T_ASSETS

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)

    def __post_init__(self) -> None:
        if not self.performance_topic or not self.asset_topic:
            raise ConfigurationError("topics must be non-empty", field="performance_topic")
        if self.performance_topic == self.asset_topic:
            raise ConfigurationError(
                "performance_topic and asset_topic must differ",
                field="asset_topic",
                value=self.asset_topic,
            )
