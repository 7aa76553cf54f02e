"""
Unit tests for live leaderboard configuration.
"""

import pytest

from leaderstream.data.live.config import (
    ConnectionConfig,
    EngineConfig,
    FeedConfig,
    ScheduleConfig,
    SeedParticipant,
)
from leaderstream.data.live.errors import ConfigurationError


class TestConnectionConfig:
    """Tests for ConnectionConfig."""

    def test_valid_config(self) -> None:
        config = ConnectionConfig(url="wss://example.com", max_reconnect_attempts=5)
        assert config.url == "wss://example.com"
        assert config.max_reconnect_attempts == 5

    def test_url_must_be_websocket(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ConnectionConfig(url="http://example.com")
        assert exc_info.value.field == "url"

    def test_invalid_timeout(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ConnectionConfig(connect_timeout_s=-1.0)
        assert "connect_timeout_s must be positive" in str(exc_info.value)

    def test_invalid_jitter(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ConnectionConfig(reconnect_jitter=1.5)
        assert "reconnect_jitter must be between 0 and 1" in str(exc_info.value)


class TestEngineConfig:
    def test_defaults(self) -> None:
        config = EngineConfig()
        assert config.live_window == 48
        assert config.seeds == ()

    def test_live_window_positive(self) -> None:
        with pytest.raises(ConfigurationError):
            EngineConfig(live_window=0)

    def test_seed_ids_unique(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            EngineConfig(seeds=(SeedParticipant("a", "A"), SeedParticipant("a", "Again")))
        assert exc_info.value.field == "seeds"

    def test_seed_id_required(self) -> None:
        with pytest.raises(ConfigurationError):
            SeedParticipant(id="", name="nobody")


class TestScheduleConfig:
    def test_defaults(self) -> None:
        config = ScheduleConfig()
        assert config.flush_interval_s == 0.05
        assert config.rank_interval_s == 30.0
        assert config.top_k == 3

    @pytest.mark.parametrize(
        "kwargs",
        [{"flush_interval_s": 0}, {"rank_interval_s": -1}, {"top_k": 0}],
    )
    def test_invalid(self, kwargs) -> None:
        with pytest.raises(ConfigurationError):
            ScheduleConfig(**kwargs)


class TestFeedConfig:
    def test_default_topics(self) -> None:
        config = FeedConfig()
        assert config.performance_topic == "team_pnl"
        assert config.asset_topic == "asset_pnl"

    def test_topics_must_differ(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            FeedConfig(performance_topic="scores", asset_topic="scores")
        assert "must differ" in str(exc_info.value)

    def test_frozen(self) -> None:
        config = FeedConfig()
        with pytest.raises(AttributeError):
            config.asset_topic = "other"  # type: ignore[misc]
