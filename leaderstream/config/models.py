from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leaderstream.data.live.config import (
    ConnectionConfig,
    EngineConfig,
    FeedConfig,
    ScheduleConfig,
    SeedParticipant,
)
from leaderstream.types.topics import T_ASSETS, T_PERFORMANCE


class ConnectionSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    url: str = Field(default="ws://localhost:8080", description="websocket feed address")
    connect_timeout_s: float = Field(default=30.0, gt=0)
    heartbeat_s: float = Field(default=30.0, gt=0)
    max_reconnect_attempts: int = Field(default=10, ge=0)
    base_reconnect_delay_s: float = Field(default=1.0, gt=0)
    max_reconnect_delay_s: float = Field(default=60.0, gt=0)
    reconnect_jitter: float = Field(default=0.3, ge=0, le=1)


class TopicsSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    performance: str = Field(default=T_PERFORMANCE, description="score/PnL entries")
    assets: str = Field(default=T_ASSETS, description="per-asset fills")


class EngineSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    live_window: int = Field(default=48, gt=0, description="live values kept per participant")


class ScheduleSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    flush_interval_s: float = Field(default=0.05, gt=0, description="buffered update drain")
    rank_interval_s: float = Field(default=30.0, gt=0, description="leaderboard refresh")
    top_k: int = Field(default=3, gt=0)


class LoggingSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    level: str = Field(default="INFO", description="root log level")


class SeedSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    id: str = Field(min_length=1)
    name: str
    series: list[float] = Field(default_factory=list)
    sharpe: Optional[float] = None


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    connection: ConnectionSection = Field(default_factory=ConnectionSection)
    topics: TopicsSection = Field(default_factory=TopicsSection)
    engine: EngineSection = Field(default_factory=EngineSection)
    schedule: ScheduleSection = Field(default_factory=ScheduleSection)
    logging: LoggingSection = Field(default_factory=LoggingSection)
    seeds: list[SeedSection] = Field(default_factory=list, description="pre-registered teams")

    def to_feed_config(self) -> FeedConfig:
        """Convert into the runtime dataclasses (which run their own checks)."""
        return FeedConfig(
            performance_topic=self.topics.performance,
            asset_topic=self.topics.assets,
            connection=ConnectionConfig(**self.connection.model_dump()),
            engine=EngineConfig(
                live_window=self.engine.live_window,
                seeds=tuple(
                    SeedParticipant(id=s.id, name=s.name, series=tuple(s.series), sharpe=s.sharpe)
                    for s in self.seeds
                ),
            ),
            schedule=ScheduleConfig(**self.schedule.model_dump()),
        )
