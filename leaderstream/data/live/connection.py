"""
Websocket transport for the leaderboard feed.

One socket, text frames only. Each frame is handed to ``on_frame`` together with
its local receive time; decoding belongs to the FrameRouter. A dropped socket is
re-dialled in the background until ``close()`` or until the retry budget runs out.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import aiohttp

from leaderstream.data.live.config import ConnectionConfig
from leaderstream.data.live.errors import ConnectionError
from leaderstream.data.live.types import ConnectionHealth, ConnectionMetrics, ConnectionState

logger = logging.getLogger(__name__)

FrameCallback = Callable[[str, int], Awaitable[None]]
StateCallback = Callable[[ConnectionState], Awaitable[None]]

# transient failures worth another dial
_RETRYABLE = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


class ConnectionManager:
    """
    Feed socket with retry and re-dial.

    Usage:
        conn = ConnectionManager(config.connection, on_frame=service.on_frame)
        await conn.connect()
        ...
        await conn.close()
    """

    def __init__(
        self,
        config: ConnectionConfig,
        on_frame: FrameCallback,
        on_state_change: Optional[StateCallback] = None,
        name: str = "connection",
    ) -> None:
        self._config = config
        self._on_frame = on_frame
        self._on_state_change = on_state_change
        self._name = name

        self._state = ConnectionState.DISCONNECTED
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task[None]] = None
        self._redial: Optional[asyncio.Task[None]] = None

        self._reconnect_attempt = 0
        self._closing = False

        self._metrics = ConnectionMetrics()
        self._last_error: Optional[str] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def metrics(self) -> ConnectionMetrics:
        return self._metrics

    async def _transition(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logger.debug(f"[{self._name}] {self._state.value} -> {state.value}")
        self._state = state
        if self._on_state_change is None:
            return
        try:
            await self._on_state_change(state)
        except Exception as e:
            logger.warning(f"[{self._name}] State callback failed: {e}")

    # --- Dialling ---

    async def connect(self) -> None:
        """
        Open the socket, retrying with backoff.

        Raises:
            ConnectionError: retry budget exhausted
        """
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            logger.warning(f"[{self._name}] connect() while {self._state.value}, ignored")
            return
        self._closing = False
        await self._dial()

    async def _dial(self) -> None:
        await self._transition(ConnectionState.CONNECTING)
        while not self._closing:
            try:
                await self._establish_connection()
            except _RETRYABLE as e:
                self._record_failure(e)
                if self._reconnect_attempt > self._config.max_reconnect_attempts:
                    await self._transition(ConnectionState.DISCONNECTED)
                    raise ConnectionError(
                        f"Gave up on feed after {self._reconnect_attempt} attempt(s)",
                        url=self._config.url,
                        reconnect_attempt=self._reconnect_attempt,
                        component="ConnectionManager",
                    ) from e
                delay = self._backoff_delay()
                logger.warning(
                    f"[{self._name}] Dial {self._reconnect_attempt} failed ({e}); next in {delay:.2f}s"
                )
                await self._transition(ConnectionState.RECONNECTING)
                await asyncio.sleep(delay)
                continue

            self._reconnect_attempt = 0
            await self._transition(ConnectionState.CONNECTED)
            self._reader = asyncio.create_task(self._read_frames(), name=f"{self._name}_reader")
            return

    async def _establish_connection(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.connect_timeout_s)
            )
        logger.info(f"[{self._name}] Dialling {self._config.url}")
        # aiohttp answers pings and sends its own on the heartbeat interval
        self._ws = await self._session.ws_connect(self._config.url, heartbeat=self._config.heartbeat_s)
        self._metrics.connected_at = datetime.now(timezone.utc)
        logger.info(f"[{self._name}] Feed connected")

    def _record_failure(self, e: BaseException) -> None:
        self._reconnect_attempt += 1
        self._metrics.errors += 1
        self._last_error = str(e)

    def _backoff_delay(self) -> float:
        """base * 2^(attempt-1), capped at max, then spread by the jitter fraction."""
        delay = min(
            self._config.base_reconnect_delay_s * 2 ** (self._reconnect_attempt - 1),
            self._config.max_reconnect_delay_s,
        )
        spread = delay * self._config.reconnect_jitter
        return max(0.1, delay + random.uniform(-spread, spread))

    # --- Reading ---

    async def _read_frames(self) -> None:
        ws = self._ws
        if ws is None:
            return

        try:
            async for msg in ws:
                self._metrics.messages_received += 1
                self._metrics.last_message_at = datetime.now(timezone.utc)
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._metrics.bytes_received += len(msg.data)
                    await self._deliver(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._record_error(f"socket error: {ws.exception()}")
                    break
                # binary and control frames carry no feed data
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._record_error(f"read failed: {e}")

        if not self._closing:
            logger.info(f"[{self._name}] Feed dropped, re-dialling")
            self._metrics.reconnections += 1
            self._redial = asyncio.create_task(self._redial_loop(), name=f"{self._name}_redial")

    async def _deliver(self, text: str) -> None:
        try:
            await self._on_frame(text, int(time.time() * 1000))
        except Exception as e:
            # a bad frame must not take the socket down
            self._record_error(f"frame callback failed: {e}")

    def _record_error(self, message: str) -> None:
        logger.error(f"[{self._name}] {message}")
        self._metrics.errors += 1
        self._last_error = message

    async def _redial_loop(self) -> None:
        await self._drop_socket()
        await self._transition(ConnectionState.RECONNECTING)
        try:
            await self._dial()
        except ConnectionError as e:
            logger.error(f"[{self._name}] Feed lost for good: {e}")

    # --- Shutdown ---

    async def _drop_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()

    async def close(self) -> None:
        """Stop reading and re-dialling, then release the socket. Never raises."""
        self._closing = True
        await self._transition(ConnectionState.CLOSING)

        current = asyncio.current_task()
        for task in (self._reader, self._redial):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"[{self._name}] Task ended with error on close: {e}")
        self._reader = None
        self._redial = None

        try:
            await self._drop_socket()
            if self._session is not None and not self._session.closed:
                await self._session.close()
        except Exception as e:
            logger.warning(f"[{self._name}] Socket release failed: {e}")
        self._session = None

        await self._transition(ConnectionState.CLOSED)

    def get_health(self) -> ConnectionHealth:
        return ConnectionHealth(
            state=self._state,
            url=self._config.url,
            connected_since=self._metrics.connected_at,
            last_message_at=self._metrics.last_message_at,
            reconnect_count=self._metrics.reconnections,
            message_count=self._metrics.messages_received,
            error_count=self._metrics.errors,
            last_error=self._last_error,
        )
