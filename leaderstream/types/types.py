from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# -------- Enums --------


class Range(str, Enum):
    """Historical granularities with independently cached series."""

    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"


# The finest range anchors the live window.
FINEST_RANGE = Range.ONE_DAY


# --- Inbound entries ---


class PerformanceEntry(BaseModel):
    """
    Score/PnL update for one participant.

    The metric value arrives as ``pnl`` (or ``score`` on older feeds).
    """

    model_config = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True, allow_inf_nan=False
    )
    kind: ClassVar[str] = "performance"

    user: str
    team_id: Optional[str] = Field(default=None, alias="teamId")
    value: float = Field(validation_alias=AliasChoices("pnl", "score", "value"))
    sharpe: Optional[float] = None
    win_rate: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("winrate", "win_rate")
    )
    max_drawdown: Optional[float] = None
    risk_per_trade: Optional[float] = None
    ts: Optional[float] = None


class AssetEntry(BaseModel):
    """Per-asset trade fill attributed to one participant."""

    model_config = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True, allow_inf_nan=False
    )
    kind: ClassVar[str] = "asset"

    user: str
    team_id: Optional[str] = Field(default=None, alias="teamId")
    asset: str = Field(min_length=1)
    asset_pnl: float = Field(default=0.0, alias="assetPnl")
    asset_volume: float = Field(default=0.0, alias="assetVolume")
    product_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("product_type", "productType")
    )
    ts: Optional[float] = None


Entry = Union[PerformanceEntry, AssetEntry]


# --- Participant state ---


@dataclass(slots=True)
class AssetStats:
    count: int = 0
    pnl: float = 0.0
    volume: float = 0.0

    def add(self, pnl: float, volume: float) -> None:
        self.count += 1
        self.pnl += pnl
        self.volume += volume

    def copy(self) -> AssetStats:
        return AssetStats(count=self.count, pnl=self.pnl, volume=self.volume)


@dataclass(frozen=True, slots=True)
class DerivedMetrics:
    """Scalars derived for one series (or reported by the feed)."""

    sharpe: Optional[float] = None
    win_rate: Optional[float] = None
    max_drawdown: Optional[float] = None
    risk_per_trade: Optional[float] = None


@dataclass(slots=True)
class Participant:
    """
    Aggregate state of one competing entity.

    ``series`` is always ``history_series + live_series``. ``authoritative``
    names the scalars whose current value came from the feed rather than the
    calculator.
    """

    id: str
    display_name: str
    index: int
    history_series: list[float] = field(default_factory=list)
    history_by_range: dict[Range, list[float]] = field(default_factory=dict)
    live_series: list[float] = field(default_factory=list)
    series: list[float] = field(default_factory=list)

    sharpe: Optional[float] = None
    win_rate: Optional[float] = None
    max_drawdown: Optional[float] = None
    risk_per_trade: Optional[float] = None
    authoritative: set[str] = field(default_factory=set)

    assets: dict[str, AssetStats] = field(default_factory=dict)
    assets_by_range: dict[Range, dict[str, AssetStats]] = field(default_factory=dict)
    metrics_by_range: dict[Range, DerivedMetrics] = field(default_factory=dict)

    @property
    def net_change(self) -> float:
        """Last minus first value of ``series`` (0 when empty)."""
        if not self.series:
            return 0.0
        return self.series[-1] - self.series[0]

    @property
    def pnl_pct(self) -> float:
        """Net change relative to the first value, in percent."""
        if not self.series:
            return 0.0
        first = self.series[0]
        return self.net_change * 100 if first == 0 else self.net_change / abs(first) * 100

    @property
    def last_value(self) -> Optional[float]:
        return self.series[-1] if self.series else None

    def top_assets(self, n: int = 12) -> list[tuple[str, AssetStats]]:
        """Assets ordered by traded volume, largest first."""
        ranked = sorted(self.assets.items(), key=lambda kv: kv[1].volume, reverse=True)
        return ranked[:n]

    def rebuild_series(self) -> None:
        self.series = [*self.history_series, *self.live_series]


# --- Resolution outcomes ---


@dataclass(frozen=True, slots=True)
class ResolvedById:
    participant: Participant


@dataclass(frozen=True, slots=True)
class ResolvedByFallbackHash:
    """Degraded routing for unkeyed entries: label hash modulo participant count."""

    participant: Participant
    bucket: int


@dataclass(frozen=True, slots=True)
class CreatedNew:
    participant: Participant


Resolution = Union[ResolvedById, ResolvedByFallbackHash, CreatedNew]
