"""
Ingestion Gateway for the live feed.

Validates inbound entries once, at the boundary, into closed entry models
(PerformanceEntry, AssetEntry) and forwards them:
- live entries are published on the event store
- snapshot batches go straight to the reconciliation engine

Bad input never raises across the gateway. It is dropped, counted, logged and
signalled as a GatewayError (callback + the gateway error topic).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from pydantic import BaseModel, ValidationError

from leaderstream.core.engine import ReconciliationEngine
from leaderstream.core.store import Envelope, EventStore
from leaderstream.data.live.errors import EntryValidationError, MessageParseError
from leaderstream.data.live.types import FrameType, GatewayError, RoutedFrame
from leaderstream.types.topics import T_ASSETS, T_GATEWAY_ERROR, T_PERFORMANCE
from leaderstream.types.types import AssetEntry, Entry, PerformanceEntry, Range

logger = logging.getLogger(__name__)


@dataclass
class GatewayStats:
    """Statistics for the ingestion gateway."""

    events_accepted: int = 0
    events_rejected: int = 0
    snapshots_applied: int = 0
    snapshot_entries_accepted: int = 0
    snapshot_entries_skipped: int = 0
    parse_errors: int = 0


def _validation_fields(e: ValidationError) -> list[str]:
    return [".".join(str(part) for part in err["loc"]) or "<root>" for err in e.errors()]


class IngestionGateway:
    """
    Boundary between the transport and the core.

    Usage:
        gateway = IngestionGateway(store, engine)
        gateway.ingest_snapshot("team_pnl", Range.ONE_DAY, raw_entries)
        gateway.ingest_event("team_pnl", raw_entry)
    """

    def __init__(
        self,
        store: EventStore,
        engine: ReconciliationEngine,
        *,
        performance_topic: str = T_PERFORMANCE,
        asset_topic: str = T_ASSETS,
        on_error: Optional[Callable[[GatewayError], None]] = None,
        name: str = "gateway",
    ) -> None:
        self._store = store
        self._engine = engine
        self._on_error = on_error
        self._name = name
        self._schemas: dict[str, type[BaseModel]] = {
            performance_topic: PerformanceEntry,
            asset_topic: AssetEntry,
        }
        self._stats = GatewayStats()

    @property
    def stats(self) -> GatewayStats:
        return self._stats

    def schema_for(self, topic: str) -> Optional[type[BaseModel]]:
        return self._schemas.get(topic)

    def parse_entry(self, topic: str, raw: Any) -> Entry:
        """
        Validate one raw entry against the schema of ``topic``.

        Raises:
            EntryValidationError: topic has no schema or the entry does not match it
        """
        schema = self._schemas.get(topic)
        if schema is None:
            raise EntryValidationError(
                f"No entry schema for topic {topic}", topic=topic, component=self._name
            )
        if not isinstance(raw, dict):
            raise EntryValidationError(
                f"Entry on {topic} must be an object, got {type(raw).__name__}",
                topic=topic,
                component=self._name,
            )
        try:
            return schema.model_validate(raw)  # type: ignore[return-value]
        except ValidationError as e:
            fields = _validation_fields(e)
            raise EntryValidationError(
                f"Invalid {schema.__name__} on {topic}",
                topic=topic,
                fields=fields,
                component=self._name,
            ) from e

    # --- Operations ---

    def ingest_event(self, topic: str, raw: Any) -> Optional[Envelope]:
        """
        Validate a live entry and publish it on the store.

        Topics without a schema are generic and published as-is.
        Returns the published envelope, or None if the entry was dropped.
        """
        payload: Any = raw
        if topic in self._schemas:
            try:
                payload = self.parse_entry(topic, raw)
            except EntryValidationError as e:
                self._stats.events_rejected += 1
                self._signal("validation", str(e), topic)
                return None

        self._stats.events_accepted += 1
        return self._store.publish(topic, payload)

    def ingest_snapshot(self, topic: str, range_: Range, raw_entries: Sequence[Any]) -> list[str]:
        """
        Validate a snapshot batch and apply it on the engine.

        Malformed entries are skipped one by one; the rest of the batch still applies.
        Returns the ids of the participants touched.
        """
        if topic not in self._schemas:
            self._stats.snapshot_entries_skipped += len(raw_entries)
            self._signal("validation", f"No entry schema for snapshot topic {topic}", topic)
            return []

        entries: list[Entry] = []
        for i, raw in enumerate(raw_entries):
            try:
                entries.append(self.parse_entry(topic, raw))
            except EntryValidationError as e:
                self._stats.snapshot_entries_skipped += 1
                self._signal("validation", f"Skipped snapshot entry {i}: {e}", topic)

        self._stats.snapshot_entries_accepted += len(entries)
        if not entries:
            logger.warning(f"[{self._name}] {range_.value} snapshot on {topic} had no valid entries")
            return []

        touched = self._engine.apply_snapshot(range_, entries)
        self._stats.snapshots_applied += 1
        return touched

    async def handle_frame(self, frame: RoutedFrame) -> None:
        """Router handler: dispatch a classified frame to the matching operation."""
        if frame.frame_type == FrameType.SNAPSHOT:
            self.ingest_snapshot(frame.topic, frame.range, frame.data)
        else:
            self.ingest_event(frame.topic, frame.data)

    def report_parse_error(self, error: MessageParseError) -> None:
        """Router error hook: frames that never made it to a topic."""
        self._stats.parse_errors += 1
        self._signal("parse", str(error), None)

    # --- Error signal ---

    def _signal(self, kind: str, message: str, topic: Optional[str]) -> None:
        logger.warning(f"[{self._name}] Dropped {kind} error: {message}")
        err = GatewayError(kind=kind, message=message, topic=topic, ts=int(time.time() * 1000))

        if self._on_error:
            try:
                self._on_error(err)
            except Exception as e:
                logger.warning(f"[{self._name}] Error callback failed: {e}")

        if not self._store.closed:
            self._store.publish(T_GATEWAY_ERROR, err)
