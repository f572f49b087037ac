"""BroadcastHub — fans each decoded record out to every connected subscriber."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from datetime import datetime, timezone
from typing import Protocol

from forza_relay.config import DEFAULT_BUFFER_SIZE
from forza_relay.relay.state import ServerState
from forza_relay.telemetry.models import TelemetryRecord

_logger = logging.getLogger(__name__)

_subscriber_ids = itertools.count(1)


class SubscriberConnection(Protocol):
    """What the hub needs from a connection (Starlette's ``WebSocket`` fits)."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class Subscriber:
    """A registered connection plus its bounded outbound queue.

    The queue preserves publish order; the hub's delivery task is its only
    consumer.
    """

    def __init__(self, connection: SubscriberConnection, remote: str, buffer_size: int) -> None:
        self.id = next(_subscriber_ids)
        self.connection = connection
        self.remote = remote
        self.connected_at = datetime.now(timezone.utc)
        self.task: asyncio.Task | None = None
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=buffer_size)
        self._closed = False

    def __repr__(self) -> str:
        return f"Subscriber(id={self.id}, remote={self.remote!r}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of payloads waiting to be written."""
        return self._queue.qsize()

    def offer(self, payload: str) -> bool:
        """Queue *payload* without waiting. False if closed or the buffer is full."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            return False
        return True

    async def next_payload(self) -> str | None:
        """Wait for the next payload; ``None`` once the subscriber is closed."""
        if self._closed:
            return None
        payload = await self._queue.get()
        return None if self._closed else payload

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # wake a consumer blocked on an empty queue
        with contextlib.suppress(asyncio.QueueFull):
            self._queue.put_nowait(None)


class BroadcastHub:
    """Holds the subscriber registry and pushes every published record to it.

    Parameters
    ----------
    state:
        Shared :class:`ServerState`; the hub keeps ``last_record`` current.
    buffer_size:
        Per-subscriber queue length. A subscriber that falls this far behind
        is disconnected instead of slowing anyone else down.
    """

    def __init__(self, state: ServerState, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")
        self._state = state
        self._buffer_size = buffer_size
        self._subscribers: dict[int, Subscriber] = {}
        self._last_payload: str | None = None
        self._closing: set[asyncio.Task] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribers(self) -> list[Subscriber]:
        """Snapshot of the current registry."""
        return list(self._subscribers.values())

    def publish(self, record: TelemetryRecord) -> None:
        """Make *record* the latest and queue it for every subscriber.

        Serialises once; every subscriber receives the identical string.
        Never waits on a connection.
        """
        payload = record.to_json()
        self._state.last_record = record
        self._last_payload = payload

        for sub in list(self._subscribers.values()):
            if not sub.offer(payload):
                _logger.info(
                    "Dropping WebSocket client %s: %d messages undelivered",
                    sub.remote,
                    sub.pending,
                )
                self._drop(sub)

    def subscribe(self, connection: SubscriberConnection, remote: str = "") -> Subscriber:
        """Register *connection* and start delivering to it.

        The last published record, if any, is queued first so a late joiner
        is not left blank until the next packet. Must be called from the
        event loop.
        """
        sub = Subscriber(connection, remote, self._buffer_size)
        if self._closed:
            sub.close()
            return sub

        self._subscribers[sub.id] = sub
        if self._last_payload is not None and self._state.last_record is not None:
            sub.offer(self._last_payload)
        sub.task = asyncio.get_running_loop().create_task(
            self._deliver(sub), name=f"subscriber-{sub.id}"
        )
        _logger.info(
            "WebSocket client connected from %s (%d connected)", remote, self.subscriber_count
        )
        return sub

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove *subscriber*. Unknown or already-removed subscribers are ignored."""
        if self._subscribers.pop(subscriber.id, None) is None:
            return
        subscriber.close()
        _logger.info(
            "WebSocket client disconnected (%s, %d connected)",
            subscriber.remote,
            self.subscriber_count,
        )

    async def close(self, timeout: float = 1.0) -> None:
        """Disconnect every subscriber and stop accepting new ones."""
        self._closed = True
        subs = self.subscribers()
        for sub in subs:
            self.unsubscribe(sub)

        tasks = [sub.task for sub in subs if sub.task is not None]
        tasks.extend(self._closing)
        if not tasks:
            return
        _done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _drop(self, sub: Subscriber) -> None:
        """Unsubscribe a lagging *sub* and close its connection in the background."""
        self.unsubscribe(sub)
        if sub.task is not None:
            sub.task.cancel()
        closer = asyncio.get_running_loop().create_task(self._close_connection(sub))
        self._closing.add(closer)
        closer.add_done_callback(self._closing.discard)

    async def _close_connection(self, sub: Subscriber) -> None:
        if sub.task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await sub.task
        with contextlib.suppress(Exception):
            await sub.connection.close(code=1008)

    async def _deliver(self, sub: Subscriber) -> None:
        failed = False
        try:
            while True:
                payload = await sub.next_payload()
                if payload is None:
                    break
                await sub.connection.send_text(payload)
        except Exception as exc:
            failed = True
            _logger.info("Delivery to %s failed: %s", sub.remote, exc)
        finally:
            self.unsubscribe(sub)

        if failed:
            with contextlib.suppress(Exception):
                await sub.connection.close(code=1011)
        elif self._closed:
            with contextlib.suppress(Exception):
                await sub.connection.close()
