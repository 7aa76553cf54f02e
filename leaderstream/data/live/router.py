"""
Frame Router for the live feed.

Decodes raw text frames from the transport, classifies them as snapshot or
update frames and dispatches them to the handlers registered for that shape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

import orjson

from leaderstream.data.live.errors import MessageParseError
from leaderstream.data.live.types import FrameType, RoutedFrame
from leaderstream.types.types import Range

logger = logging.getLogger(__name__)

FrameHandler = Callable[[RoutedFrame], Awaitable[None]]


@dataclass
class RouterStats:
    """Statistics for frame routing."""

    total_frames: int = 0
    routed_frames: int = 0
    dropped_frames: int = 0
    parse_errors: int = 0
    by_type: dict[str, int] = field(default_factory=dict)


class FrameRouter:
    """
    Routes incoming transport frames to the handlers for their shape.

    Snapshot frame:
    {
        "topic": "team_pnl",
        "type": "snapshot",
        "range": "1W",        // optional, defaults to 1D
        "data": [ {...}, {...} ]
    }

    Update frame (implicit live update):
    {
        "topic": "team_pnl",
        "data": { ... }
    }

    Frames that cannot be decoded or classified are counted, reported through
    ``on_error`` and dropped; they never raise out of ``route``.
    """

    def __init__(
        self,
        on_error: Optional[Callable[[MessageParseError], None]] = None,
    ) -> None:
        self._handlers: dict[FrameType, list[FrameHandler]] = {}
        self._on_error = on_error
        self._stats = RouterStats()

    @property
    def stats(self) -> RouterStats:
        return self._stats

    def register_handler(self, frame_type: FrameType, handler: FrameHandler) -> None:
        """
        Register a handler for a frame shape.

        Multiple handlers can be registered for the same shape.
        They will be called in registration order.
        """
        self._handlers.setdefault(frame_type, []).append(handler)
        logger.debug(f"Registered handler for {frame_type.value}")

    async def route(self, raw: Union[str, bytes, dict[str, Any]], recv_ts: int) -> None:
        """
        Route one frame to the handlers for its shape.

        Args:
            raw: Text frame as received, or an already decoded mapping
            recv_ts: Receive timestamp in milliseconds
        """
        self._stats.total_frames += 1

        try:
            frame = self.classify(raw, recv_ts)
        except MessageParseError as e:
            self._stats.parse_errors += 1
            logger.warning(f"Dropping frame: {e}")
            if self._on_error:
                self._on_error(e)
            return

        type_key = frame.frame_type.value
        self._stats.by_type[type_key] = self._stats.by_type.get(type_key, 0) + 1

        handlers = self._handlers.get(frame.frame_type, [])
        if not handlers:
            logger.debug(f"No handler for frame type: {type_key}")
            self._stats.dropped_frames += 1
            return

        self._stats.routed_frames += 1
        for handler in handlers:
            try:
                await handler(frame)
            except Exception as e:
                logger.error(f"Handler error for {type_key} on {frame.topic}: {e}", exc_info=True)

    def classify(self, raw: Union[str, bytes, dict[str, Any]], recv_ts: int) -> RoutedFrame:
        """Decode and classify a frame. Raises MessageParseError for anything malformed."""
        if isinstance(raw, dict):
            data = raw
        else:
            try:
                data = orjson.loads(raw)
            except orjson.JSONDecodeError as e:
                raise MessageParseError(
                    f"Invalid JSON frame: {e}", raw_data=str(raw)[:200], component="FrameRouter"
                ) from e

        if not isinstance(data, dict):
            raise MessageParseError(
                "Frame must be a JSON object",
                expected_type="object",
                component="FrameRouter",
            )

        topic = data.get("topic")
        if not isinstance(topic, str) or not topic:
            raise MessageParseError(
                "Frame is missing 'topic'", expected_type="str", component="FrameRouter"
            )
        if "data" not in data:
            raise MessageParseError(
                f"Frame on {topic} is missing 'data'", component="FrameRouter"
            )

        if data.get("type") == "snapshot":
            if not isinstance(data["data"], list):
                raise MessageParseError(
                    f"Snapshot on {topic} must carry a list",
                    expected_type="list",
                    component="FrameRouter",
                )
            return RoutedFrame(
                frame_type=FrameType.SNAPSHOT,
                topic=topic,
                data=data["data"],
                recv_ts=recv_ts,
                range=self._parse_range(data.get("range"), topic),
            )

        return RoutedFrame(
            frame_type=FrameType.UPDATE,
            topic=topic,
            data=data["data"],
            recv_ts=recv_ts,
        )

    @staticmethod
    def _parse_range(value: Any, topic: str) -> Range:
        if value is None:
            return Range.ONE_DAY
        try:
            return Range(value)
        except ValueError as e:
            raise MessageParseError(
                f"Unknown range {value!r} on {topic}",
                expected_type="1D|1W|1M",
                component="FrameRouter",
            ) from e

    def get_handler_count(self, frame_type: FrameType) -> int:
        return len(self._handlers.get(frame_type, []))

    def clear_handlers(self) -> None:
        self._handlers.clear()

    def reset_stats(self) -> None:
        self._stats = RouterStats()
