"""
Reconciliation engine: owns the per-participant aggregate state.

Merges range-scoped bulk snapshots with a stream of incremental live entries
into one bounded series per participant, and keeps the derived scalars in
step with it.

Participant resolution (every entry, snapshot or live):
    1. explicit key known       -> ResolvedById
    2. explicit key unknown     -> CreatedNew (appended, index stable for the session)
    3. no key                   -> ResolvedByFallbackHash, label hash modulo participant count.
                                   Degraded mode: only routes to existing participants and
                                   can misattribute when the participant count changes.
                                   Nothing to route to -> entry dropped.

All apply operations are synchronous; a batch is applied in one call so no
partial state is visible between ticks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from leaderstream.core import metrics
from leaderstream.data.live.config import EngineConfig, SeedParticipant
from leaderstream.errors.errors import EngineError
from leaderstream.types.types import (
    FINEST_RANGE,
    AssetEntry,
    AssetStats,
    CreatedNew,
    DerivedMetrics,
    Entry,
    Participant,
    PerformanceEntry,
    Range,
    ResolvedByFallbackHash,
    ResolvedById,
    Resolution,
)

logger = logging.getLogger(__name__)

# Scalars that keep a feed-reported value until the feed reports a new one.
_STICKY_SCALARS = ("sharpe", "win_rate", "risk_per_trade")


@dataclass
class EngineStats:
    """Counters for the reconciliation engine."""

    snapshots_applied: int = 0
    live_applied: int = 0
    assets_applied: int = 0
    participants_created: int = 0
    fallback_routed: int = 0
    unresolved_dropped: int = 0


def fallback_bucket(label: str, count: int) -> int:
    """Deterministic bucket for an unkeyed label: sum of code points modulo ``count``."""
    return sum(ord(c) for c in label) % count


class ReconciliationEngine:
    """
    Per-participant state: history by range, a sliding live window, derived
    scalars and per-asset breakdowns.

    Usage:
        engine = ReconciliationEngine(EngineConfig())
        engine.apply_snapshot(Range.ONE_DAY, entries)
        engine.apply_live(entry)
        engine.participants()
    """

    def __init__(self, config: Optional[EngineConfig] = None, name: str = "engine") -> None:
        self._config = config or EngineConfig()
        self._name = name
        self._participants: list[Participant] = []
        self._by_id: dict[str, Participant] = {}
        self._stats = EngineStats()

        for seed in self._config.seeds:
            self._add_seed(seed)

    @property
    def stats(self) -> EngineStats:
        return self._stats

    @property
    def live_window(self) -> int:
        return self._config.live_window

    def __len__(self) -> int:
        return len(self._participants)

    def participants(self) -> list[Participant]:
        """Working set in insertion order."""
        return list(self._participants)

    def get(self, participant_id: str) -> Optional[Participant]:
        return self._by_id.get(participant_id)

    # --- Resolution ---

    def resolve(self, entry: Entry, seed_value: Optional[float] = None) -> Optional[Resolution]:
        """
        Resolve the participant an entry belongs to, creating it when keyed and unknown.

        ``seed_value`` becomes the initial series point of a newly created participant.
        Returns None when an unkeyed entry arrives before any participant exists.
        """
        key = entry.team_id
        if key:
            existing = self._by_id.get(key)
            if existing is not None:
                return ResolvedById(existing)
            return CreatedNew(self._create(key, entry.user or key, seed_value))

        if not self._participants:
            self._stats.unresolved_dropped += 1
            logger.debug(f"[{self._name}] Dropping unkeyed entry from {entry.user!r}: no participants")
            return None

        bucket = fallback_bucket(entry.user, len(self._participants))
        self._stats.fallback_routed += 1
        return ResolvedByFallbackHash(self._participants[bucket], bucket)

    def _create(self, participant_id: str, name: str, seed_value: Optional[float]) -> Participant:
        p = Participant(id=participant_id, display_name=name, index=len(self._participants))
        if seed_value is not None:
            p.history_series = [seed_value]
            p.rebuild_series()
        self._participants.append(p)
        self._by_id[participant_id] = p
        self._stats.participants_created += 1
        logger.debug(f"[{self._name}] Created participant {participant_id} at index {p.index}")
        return p

    def _add_seed(self, seed: SeedParticipant) -> None:
        p = self._create(seed.id, seed.name, None)
        series = list(seed.series)
        p.history_series = series
        p.history_by_range = {r: list(series) for r in Range}
        p.rebuild_series()
        p.max_drawdown = metrics.max_drawdown(series)
        if seed.sharpe is not None:
            p.sharpe = seed.sharpe
            p.authoritative.add("sharpe")

    # --- Snapshots ---

    def apply_snapshot(self, range_: Range, entries: Iterable[Entry]) -> list[str]:
        """
        Replace the ``range_`` history (or asset accumulation) of every participant
        referenced in ``entries``. Returns the ids touched, in first-seen order.
        """
        if not isinstance(range_, Range):
            raise EngineError(f"Unknown snapshot range: {range_!r}")
        buckets: dict[str, list[Entry]] = {}
        created: set[str] = set()
        for entry in entries:
            resolution = self.resolve(entry)
            if resolution is None:
                continue
            if isinstance(resolution, CreatedNew):
                created.add(resolution.participant.id)
            buckets.setdefault(resolution.participant.id, []).append(entry)

        for participant_id, batch in buckets.items():
            p = self._by_id[participant_id]
            # Stable sort: output order only depends on ts, ties keep arrival order.
            ordered = sorted(batch, key=lambda e: e.ts if e.ts is not None else 0)
            perf = [e for e in ordered if isinstance(e, PerformanceEntry)]
            fills = [e for e in ordered if isinstance(e, AssetEntry)]
            if perf and participant_id in created and range_ is not FINEST_RANGE:
                # New participant: seed from the earliest value of this range.
                p.history_series = [perf[0].value]
                p.rebuild_series()
            if perf:
                self._apply_performance_snapshot(p, range_, perf)
            if fills:
                self._apply_asset_snapshot(p, range_, fills)

        self._stats.snapshots_applied += 1
        logger.info(
            f"[{self._name}] Applied {range_.value} snapshot to {len(buckets)} participant(s)"
        )
        return list(buckets)

    def _apply_performance_snapshot(
        self, p: Participant, range_: Range, ordered: Sequence[PerformanceEntry]
    ) -> None:
        history = [e.value for e in ordered]
        p.history_by_range[range_] = history

        if range_ is FINEST_RANGE:
            # The live window re-anchors on the new baseline.
            p.history_series = list(history)
            p.live_series = []
            p.rebuild_series()
            applicable = p.series
        else:
            applicable = history

        latest = ordered[-1]
        computed = metrics.derive(applicable)
        derived = DerivedMetrics(
            sharpe=latest.sharpe if latest.sharpe is not None else computed.sharpe,
            win_rate=latest.win_rate if latest.win_rate is not None else computed.win_rate,
            max_drawdown=(
                latest.max_drawdown if latest.max_drawdown is not None else computed.max_drawdown
            ),
            risk_per_trade=(
                latest.risk_per_trade if latest.risk_per_trade is not None else p.risk_per_trade
            ),
        )
        p.metrics_by_range[range_] = derived

        if range_ is FINEST_RANGE:
            p.sharpe = derived.sharpe
            p.win_rate = derived.win_rate
            p.max_drawdown = derived.max_drawdown
            p.risk_per_trade = derived.risk_per_trade
            p.authoritative = {
                name
                for name in ("sharpe", "win_rate", "max_drawdown", "risk_per_trade")
                if getattr(latest, name) is not None
            }

    def _apply_asset_snapshot(
        self, p: Participant, range_: Range, ordered: Sequence[AssetEntry]
    ) -> None:
        # From zero: a snapshot replaces the range accumulation, never adds to it.
        fresh: dict[str, AssetStats] = {}
        for e in ordered:
            fresh.setdefault(e.asset, AssetStats()).add(e.asset_pnl, e.asset_volume)
        p.assets_by_range[range_] = fresh
        if range_ is FINEST_RANGE:
            p.assets = {symbol: stats.copy() for symbol, stats in fresh.items()}

    # --- Live updates ---

    def apply_live(self, entry: Entry) -> Optional[Participant]:
        """Apply one live entry. Returns the participant touched, or None if dropped."""
        resolution = self.resolve(entry)
        if resolution is None:
            return None
        p = resolution.participant

        if isinstance(entry, AssetEntry):
            self._accumulate_asset(p, entry)
            self._stats.assets_applied += 1
            return p

        p.live_series.append(entry.value)
        overflow = len(p.live_series) - self._config.live_window
        if overflow > 0:
            del p.live_series[:overflow]
        p.rebuild_series()
        self._apply_live_scalars(p, entry)
        self._stats.live_applied += 1
        return p

    def apply_live_batch(self, entries: Iterable[Entry]) -> list[str]:
        """Apply a drained batch in one pass. Returns the ids touched, in first-seen order."""
        touched: dict[str, None] = {}
        for entry in entries:
            p = self.apply_live(entry)
            if p is not None:
                touched[p.id] = None
        return list(touched)

    def _apply_live_scalars(self, p: Participant, entry: PerformanceEntry) -> None:
        for name in _STICKY_SCALARS:
            supplied = getattr(entry, name)
            if supplied is not None:
                setattr(p, name, supplied)
                p.authoritative.add(name)

        # Calculator fallback for scalars the feed never reported.
        if "sharpe" not in p.authoritative:
            p.sharpe = metrics.risk_ratio(p.series)
        if "win_rate" not in p.authoritative:
            p.win_rate = metrics.win_rate(p.series)

        if entry.max_drawdown is not None:
            p.max_drawdown = entry.max_drawdown
            p.authoritative.add("max_drawdown")
        else:
            p.max_drawdown = metrics.max_drawdown(p.series)
            p.authoritative.discard("max_drawdown")

    @staticmethod
    def _accumulate_asset(p: Participant, entry: AssetEntry) -> None:
        # The finest range mirrors the canonical view; separate objects, same totals.
        p.assets.setdefault(entry.asset, AssetStats()).add(entry.asset_pnl, entry.asset_volume)
        finest = p.assets_by_range.setdefault(FINEST_RANGE, {})
        finest.setdefault(entry.asset, AssetStats()).add(entry.asset_pnl, entry.asset_volume)
