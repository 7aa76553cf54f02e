"""
Topic-addressed event store with publish/subscribe semantics.

Each topic owns an append-only log and a set of subscription ids. Publishing
appends to the topic log and then broadcasts the envelope to every registered
listener across all topics; listeners filter on ``Envelope.topic`` themselves.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from leaderstream.errors.errors import StoreError

logger = logging.getLogger(__name__)

Listener = Callable[["Envelope"], None]


# --- Data structures ---


@dataclass(frozen=True, slots=True)
class Envelope:
    """Immutable message envelope delivered to listeners."""

    topic: str
    seq: int  # per topic, strictly increasing from 1
    ts: int  # publish time, unix millis
    payload: Any


@dataclass
class _TopicState:
    """Internal per-topic state & stats."""

    name: str
    log: list[Envelope] = field(default_factory=list)
    subscribers: set[str] = field(default_factory=set)
    created_at_utc: float = field(default_factory=lambda: time.time())
    high_seq: int = 0
    _last_publish_utc: Optional[float] = None


@dataclass
class TopicStats:
    """Snapshot of a topic's activity."""

    name: str
    high_seq: int  # latest sequence number published on this topic
    subscribers: int  # number of subscription ids registered on this topic
    publish_count: int  # total number of events in the topic log
    last_publish_utc: Optional[float]


class EventStore:
    """
    Single source of truth for what has been ingested.

    Constructed once per session and passed by handle to its producers and
    consumers. All operations are synchronous.

    Usage:
        store = EventStore()
        backlog = store.subscribe("team_pnl", "display", on_envelope)
        store.publish("team_pnl", entry)
        store.unsubscribe("team_pnl", "display")
    """

    def __init__(self, name: str = "store") -> None:
        self._name = name
        self._topics: dict[str, _TopicState] = {}
        # sub_id -> callback. An id keeps one listener even when subscribed to several topics.
        self._listeners: dict[str, Listener] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_topic(self, topic: str) -> _TopicState:
        ts = self._topics.get(topic)
        if ts is None:
            ts = _TopicState(name=topic)
            self._topics[topic] = ts
            logger.debug(f"[{self._name}] Created topic {topic}")
        return ts

    # --- Public API ---

    def subscribe(self, topic: str, sub_id: str, listener: Listener) -> tuple[Envelope, ...]:
        """
        Register ``sub_id`` on ``topic`` and return the topic log as it is now.

        Creates the topic lazily. Re-subscribing an id replaces its callback.
        """
        if self._closed:
            raise StoreError(f"Store {self._name} is closed")

        ts = self._ensure_topic(topic)
        ts.subscribers.add(sub_id)
        self._listeners[sub_id] = listener
        logger.debug(f"[{self._name}] {sub_id} subscribed to {topic} (backlog={len(ts.log)})")
        return tuple(ts.log)

    def unsubscribe(self, topic: str, sub_id: str) -> None:
        """Remove ``sub_id`` from ``topic``. No-op if it was not registered."""
        ts = self._topics.get(topic)
        if ts is None or sub_id not in ts.subscribers:
            return
        ts.subscribers.discard(sub_id)
        # Drop the callback once the id is not registered anywhere.
        if not any(sub_id in t.subscribers for t in self._topics.values()):
            self._listeners.pop(sub_id, None)
        logger.debug(f"[{self._name}] {sub_id} unsubscribed from {topic}")

    def publish(self, topic: str, payload: Any) -> Envelope:
        """
        Append ``payload`` to the topic log and broadcast it to every listener.

        Listener failures are logged and do not stop delivery to the others.
        """
        if self._closed:
            raise StoreError(f"Store {self._name} is closed")

        ts = self._ensure_topic(topic)
        now = time.time()
        ts.high_seq += 1
        env = Envelope(topic=topic, seq=ts.high_seq, ts=int(now * 1000), payload=payload)
        ts.log.append(env)
        ts._last_publish_utc = now

        # Snapshot listeners: a callback may (un)subscribe while we iterate.
        for sub_id, listener in list(self._listeners.items()):
            try:
                listener(env)
            except Exception as e:
                logger.error(
                    f"[{self._name}] Listener {sub_id} failed on {topic}#{env.seq}: {e}",
                    exc_info=True,
                )
        return env

    def log(self, topic: str) -> tuple[Envelope, ...]:
        """Return the topic log without subscribing."""
        ts = self._topics.get(topic)
        return tuple(ts.log) if ts is not None else ()

    def close(self) -> None:
        """Release every listener registration. Logs are kept; further publishes raise."""
        if self._closed:
            return
        released = len(self._listeners)
        for ts in self._topics.values():
            ts.subscribers.clear()
        self._listeners.clear()
        self._closed = True
        logger.debug(f"[{self._name}] Closed, released {released} listener(s)")

    # --- Stats ---

    def topics(self) -> list[str]:
        return sorted(self._topics)

    def subscriber_count(self) -> int:
        return len(self._listeners)

    def topic_stats(self, topic: str) -> TopicStats:
        ts = self._topics.get(topic)
        if ts is None:
            raise KeyError(topic)
        return TopicStats(
            name=ts.name,
            high_seq=ts.high_seq,
            subscribers=len(ts.subscribers),
            publish_count=len(ts.log),
            last_publish_utc=ts._last_publish_utc,
        )
