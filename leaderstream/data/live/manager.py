"""
Leaderboard Service - top-level orchestration.

Wires the live components together and owns their lifecycle:
- ConnectionManager for the websocket transport
- FrameRouter for frame classification
- IngestionGateway for validation and routing into the core
- EventStore for topic logs and listeners
- ReconciliationEngine for participant state
- RankingView for the periodic leaderboard

Performance updates are buffered and drained on the flush tick; asset updates
apply as soon as the store delivers them. Ranking is recomputed on its own,
slower tick.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Optional, Union

from leaderstream.core.engine import ReconciliationEngine
from leaderstream.core.ranking import RankingSnapshot, RankingView
from leaderstream.core.store import Envelope, EventStore, Listener
from leaderstream.data.live.config import FeedConfig
from leaderstream.data.live.connection import ConnectionManager
from leaderstream.data.live.errors import LiveFeedError
from leaderstream.data.live.gateway import IngestionGateway
from leaderstream.data.live.router import FrameRouter
from leaderstream.data.live.types import (
    ConnectionHealth,
    ConnectionState,
    FrameType,
    ManagerState,
    RoutedFrame,
    ServiceStats,
)
from leaderstream.types.topics import T_RANKING
from leaderstream.types.types import AssetEntry, Participant, PerformanceEntry

logger = logging.getLogger(__name__)


class LeaderboardService:
    """
    Live leaderboard: ingest frames, reconcile state, rank on a cadence.

    State Machine:
        [STOPPED] --start()--> [STARTING] --success--> [RUNNING]
                                    |                       |
                                [FAILED]              [STOPPING] --> [STOPPED]

    Usage:
        service = LeaderboardService(FeedConfig())
        await service.start()
        # ... system running ...
        await service.stop()

    Offline (no transport):
        await service.start(connect=False)
        await service.on_frame(text, recv_ts)
        service.flush()
        service.refresh_ranking()
    """

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        *,
        on_ranking: Optional[Callable[[RankingSnapshot], Awaitable[None]]] = None,
        name: str = "leaderboard",
    ) -> None:
        self._config = config or FeedConfig()
        self._on_ranking = on_ranking
        self._name = name

        self._state = ManagerState.STOPPED

        # Core, one set per session
        self._store = EventStore(name=f"{name}.store")
        self._engine = ReconciliationEngine(self._config.engine, name=f"{name}.engine")
        self._ranking = RankingView(top_k=self._config.schedule.top_k, name=f"{name}.ranking")
        self._gateway = IngestionGateway(
            self._store,
            self._engine,
            performance_topic=self._config.performance_topic,
            asset_topic=self._config.asset_topic,
            name=f"{name}.gateway",
        )
        self._router = FrameRouter(on_error=self._gateway.report_parse_error)
        self._router.register_handler(FrameType.SNAPSHOT, self._on_snapshot_frame)
        self._router.register_handler(FrameType.UPDATE, self._gateway.handle_frame)

        self._connection: Optional[ConnectionManager] = None
        self._pending: deque[PerformanceEntry] = deque()
        # topic -> subscription id held by this service
        self._subscriptions: dict[str, str] = {}

        self._flush_task: Optional[asyncio.Task[None]] = None
        self._rank_task: Optional[asyncio.Task[None]] = None

        self._stats = ServiceStats()

    # --- Properties ---

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ManagerState.RUNNING

    @property
    def config(self) -> FeedConfig:
        return self._config

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def engine(self) -> ReconciliationEngine:
        return self._engine

    @property
    def gateway(self) -> IngestionGateway:
        return self._gateway

    @property
    def router(self) -> FrameRouter:
        return self._router

    @property
    def ranking(self) -> Optional[RankingSnapshot]:
        """Latest leaderboard, None before the first refresh."""
        return self._ranking.latest

    @property
    def pending(self) -> int:
        return len(self._pending)

    # --- Lifecycle ---

    async def start(self, connect: bool = True) -> None:
        """
        Start the service.

        Args:
            connect: Open the websocket transport. False for offline replay.

        Raises:
            LiveFeedError: If the transport cannot be established
        """
        # One session per service: a stopped service has released its store.
        if self._state != ManagerState.STOPPED or self._store.closed:
            logger.warning(f"[{self._name}] Cannot start from state: {self._state.value}")
            return

        logger.info(f"[{self._name}] Starting leaderboard service...")
        self._state = ManagerState.STARTING

        try:
            # One id on both topics: the store keeps one callback per id and broadcasts.
            sub_id = f"{self._name}.feed"
            for topic in (self._config.performance_topic, self._config.asset_topic):
                backlog = self._store.subscribe(topic, sub_id, self._on_envelope)
                self._subscriptions[topic] = sub_id
                for env in backlog:
                    self._on_envelope(env)

            self.refresh_ranking()

            self._flush_task = asyncio.create_task(self._flush_loop(), name=f"{self._name}_flush")
            self._rank_task = asyncio.create_task(self._rank_loop(), name=f"{self._name}_rank")

            if connect:
                self._connection = ConnectionManager(
                    self._config.connection,
                    on_frame=self.on_frame,
                    on_state_change=self._on_connection_state_change,
                    name=f"{self._name}.connection",
                )
                await self._connection.connect()

            self._state = ManagerState.RUNNING
            logger.info(f"[{self._name}] Leaderboard service started")

        except Exception as e:
            self._state = ManagerState.FAILED
            logger.error(f"[{self._name}] Failed to start: {e}")
            await self._cleanup()
            if isinstance(e, LiveFeedError):
                raise
            raise LiveFeedError(
                f"Failed to start leaderboard service: {e}", component="LeaderboardService"
            ) from e

    async def stop(self) -> None:
        """
        Stop the service: cancel ticks, close the transport, release every listener.

        Buffered performance updates are flushed first. Cleanup errors are logged.
        """
        if self._state in (ManagerState.STOPPED, ManagerState.STOPPING):
            return

        logger.info(f"[{self._name}] Stopping leaderboard service...")
        self._state = ManagerState.STOPPING
        await self._cleanup()
        self._state = ManagerState.STOPPED
        logger.info(f"[{self._name}] Leaderboard service stopped")

    async def _cleanup(self) -> None:
        for task in (self._flush_task, self._rank_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    logger.warning(f"[{self._name}] Error stopping tick: {e}")
        self._flush_task = None
        self._rank_task = None

        if self._connection is not None:
            try:
                await self._connection.close()
            except Exception as e:
                logger.warning(f"[{self._name}] Error closing connection: {e}")
            self._connection = None

        try:
            self.flush()
        except Exception as e:
            logger.warning(f"[{self._name}] Error in final flush: {e}")

        for topic, sub_id in self._subscriptions.items():
            try:
                self._store.unsubscribe(topic, sub_id)
            except Exception as e:
                logger.warning(f"[{self._name}] Error releasing {sub_id}: {e}")
        self._subscriptions.clear()
        self._store.close()

    # --- Ingestion ---

    async def on_frame(self, raw: Union[str, bytes, dict[str, Any]], recv_ts: int) -> None:
        """Transport entry point: one text frame in, routed through the gateway."""
        self._stats.frames_received += 1
        await self._router.route(raw, recv_ts)

    async def _on_snapshot_frame(self, frame: RoutedFrame) -> None:
        """Drain buffered updates first so they land before the new baseline, not after it."""
        self.flush()
        await self._gateway.handle_frame(frame)

    def _on_envelope(self, env: Envelope) -> None:
        """Store listener. Delivery is broadcast, so filter on topic here."""
        if env.topic not in self._subscriptions:
            return
        self._stats.by_topic[env.topic] = self._stats.by_topic.get(env.topic, 0) + 1

        payload = env.payload
        if env.topic == self._config.performance_topic and isinstance(payload, PerformanceEntry):
            self._pending.append(payload)
            if len(self._pending) > self._stats.pending_high_water:
                self._stats.pending_high_water = len(self._pending)
        elif env.topic == self._config.asset_topic and isinstance(payload, AssetEntry):
            # Asset detail has no derived metric to recompute; apply right away.
            self._engine.apply_live(payload)

    def flush(self) -> int:
        """
        Drain buffered performance updates into the engine in one synchronous pass.

        Returns the number of entries applied.
        """
        if not self._pending:
            return 0
        batch = list(self._pending)
        self._pending.clear()
        self._engine.apply_live_batch(batch)
        self._stats.flushes += 1
        self._stats.entries_flushed += len(batch)
        return len(batch)

    def refresh_ranking(self) -> RankingSnapshot:
        """Recompute the leaderboard and publish it on the ranking topic."""
        snapshot = self._ranking.refresh(self._engine.participants())
        self._stats.rank_refreshes += 1
        if not self._store.closed:
            self._store.publish(T_RANKING, snapshot)
        return snapshot

    # --- Ticks ---

    async def _flush_loop(self) -> None:
        interval = self._config.schedule.flush_interval_s
        try:
            while True:
                await asyncio.sleep(interval)
                self.flush()
        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Flush loop cancelled")
            raise

    async def _rank_loop(self) -> None:
        interval = self._config.schedule.rank_interval_s
        try:
            while True:
                await asyncio.sleep(interval)
                snapshot = self.refresh_ranking()
                if self._on_ranking:
                    try:
                        await self._on_ranking(snapshot)
                    except Exception as e:
                        logger.warning(f"[{self._name}] Ranking callback error: {e}")
        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Rank loop cancelled")
            raise

    async def _on_connection_state_change(self, state: ConnectionState) -> None:
        logger.info(f"[{self._name}] Connection state: {state.value}")

    # --- Display boundary ---

    def participants(self) -> list[Participant]:
        return self._engine.participants()

    def subscribe(self, topic: str, sub_id: str, listener: Listener) -> tuple[Envelope, ...]:
        """Raw event replay for generic consumers, independent of the engine."""
        return self._store.subscribe(topic, sub_id, listener)

    def unsubscribe(self, topic: str, sub_id: str) -> None:
        self._store.unsubscribe(topic, sub_id)

    def get_health(self) -> Optional[ConnectionHealth]:
        return self._connection.get_health() if self._connection is not None else None

    def get_stats(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "participants": len(self._engine),
            "pending": len(self._pending),
            "service": self._stats,
            "router": self._router.stats,
            "gateway": self._gateway.stats,
            "engine": self._engine.stats,
            "topics": {t: self._store.topic_stats(t) for t in self._store.topics()},
        }
