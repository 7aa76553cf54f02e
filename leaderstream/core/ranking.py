"""
Leaderboard projection over the participant working set.

Read-only: ranking never mutates participant state. The service refreshes it
on a fixed interval rather than per event so the order does not churn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from leaderstream.types.types import Participant

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RankEntry:
    rank: int  # 1-based
    participant_id: str
    display_name: str
    net_change: float
    pnl_pct: float
    last_value: Optional[float]
    sharpe: Optional[float]
    win_rate: Optional[float]
    max_drawdown: Optional[float]


@dataclass(frozen=True, slots=True)
class RankingSnapshot:
    entries: tuple[RankEntry, ...]
    top_k: int
    leader_id: Optional[str]
    leader_changed: bool

    @property
    def top(self) -> tuple[RankEntry, ...]:
        return self.entries[: self.top_k]


def rank(participants: Iterable[Participant]) -> list[Participant]:
    """Order by net change of ``series``, descending; ties keep insertion order."""
    ordered = sorted(participants, key=lambda p: p.index)
    # sorted() is stable, so equal net changes keep the index order above.
    return sorted(ordered, key=lambda p: p.net_change, reverse=True)


def _to_entry(position: int, p: Participant) -> RankEntry:
    return RankEntry(
        rank=position,
        participant_id=p.id,
        display_name=p.display_name,
        net_change=p.net_change,
        pnl_pct=p.pnl_pct,
        last_value=p.last_value,
        sharpe=p.sharpe,
        win_rate=p.win_rate,
        max_drawdown=p.max_drawdown,
    )


class RankingView:
    """
    Keeps the latest ranking and detects leader changes between refreshes.

    Usage:
        view = RankingView(top_k=3)
        snap = view.refresh(engine.participants())
        if snap.leader_changed:
            highlight(snap.top[0])
    """

    def __init__(self, top_k: int = 3, name: str = "ranking") -> None:
        self._top_k = top_k
        self._name = name
        self._latest: Optional[RankingSnapshot] = None
        self._leader_id: Optional[str] = None

    @property
    def latest(self) -> Optional[RankingSnapshot]:
        return self._latest

    def refresh(self, participants: Sequence[Participant]) -> RankingSnapshot:
        ordered = rank(participants)
        entries = tuple(_to_entry(i + 1, p) for i, p in enumerate(ordered))
        leader_id = entries[0].participant_id if entries else None
        changed = leader_id is not None and leader_id != self._leader_id
        if changed:
            logger.info(f"[{self._name}] New leader: {leader_id} (was {self._leader_id})")
            self._leader_id = leader_id

        self._latest = RankingSnapshot(
            entries=entries,
            top_k=self._top_k,
            leader_id=leader_id,
            leader_changed=changed,
        )
        return self._latest
