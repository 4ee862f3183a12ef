"""Navigation feed subscriber: receives delta messages from a ZMQ PUB socket.

Runs in a background thread. Each message is handed to a handler, either
called directly or, for a coroutine handler, scheduled on the service
event loop.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

import zmq

logger = logging.getLogger(__name__)

FeedHandler = Callable[[str, str], Any]


class FeedSubscriber:
    """Subscribes to the navigation feed in a background thread.

    Frames are either ``[topic, payload]`` or a bare ``[payload]`` (the
    topic is then reported as ""). After a socket error the subscriber
    reconnects, backing off exponentially on consecutive failures.
    """

    def __init__(
        self,
        endpoint: str,
        topic: str = "",
        name: str = "feed-sub",
        reconnect_min_s: float = 1.0,
        reconnect_max_s: float = 30.0,
        poll_timeout_ms: int = 1000,
    ) -> None:
        """Initialize the subscriber.

        Args:
            endpoint: ZMQ endpoint to connect to (e.g., "tcp://localhost:5010").
            topic: Topic prefix filter ("" receives everything).
            name: Thread name, also used as the log prefix.
            reconnect_min_s: Delay before the first reconnect attempt.
            reconnect_max_s: Upper bound on the reconnect delay.
            poll_timeout_ms: How often the receive loop checks for stop().
        """
        self.endpoint = endpoint
        self.topic = topic
        self.name = name
        self._reconnect_min_s = reconnect_min_s
        self._reconnect_max_s = reconnect_max_s
        self._poll_timeout_ms = poll_timeout_ms

        self._handler: Optional[FeedHandler] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._connected = False
        self._failures = 0

        # Counters
        self.messages_received = 0
        self.errors = 0

    @property
    def connected(self) -> bool:
        return self._connected

    def start(
        self,
        handler: FeedHandler,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """Start receiving.

        Args:
            handler: Called with (topic, payload) for every message. A
                coroutine function requires ``loop``.
            loop: Event loop the coroutine handler runs on.
        """
        if asyncio.iscoroutinefunction(handler) and loop is None:
            raise ValueError("a coroutine handler needs an event loop")
        self._handler = handler
        self._loop = loop
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("[%s] Subscribing to %s (topic=%r)", self.name, self.endpoint, self.topic)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        logger.info("[%s] Feed subscriber stopped", self.name)

    @staticmethod
    def split_frames(parts: list[bytes]) -> Optional[tuple[str, str]]:
        """Decode a multipart message into (topic, payload)."""
        if not parts:
            return None
        if len(parts) == 1:
            return "", parts[0].decode("utf-8", errors="replace")
        topic, payload = parts[0], parts[1]
        return topic.decode("utf-8", errors="replace"), payload.decode("utf-8", errors="replace")

    def reconnect_delay(self) -> float:
        """Backoff before the next connection attempt."""
        return min(
            self._reconnect_min_s * (2 ** min(self._failures, 10)),
            self._reconnect_max_s,
        )

    # ------------------------------------------------------------------
    # Background thread
    # ------------------------------------------------------------------

    def _run(self) -> None:
        context = zmq.Context()
        try:
            while not self._stop.is_set():
                try:
                    self._receive(context)
                except zmq.ZMQError as exc:
                    self.errors += 1
                    self._failures += 1
                    logger.error("[%s] Feed socket error: %s", self.name, exc)

                if not self._stop.is_set():
                    delay = self.reconnect_delay()
                    logger.info("[%s] Reconnecting in %.1fs", self.name, delay)
                    self._stop.wait(delay)
        finally:
            context.term()

    def _receive(self, context: zmq.Context) -> None:
        """Connect and receive until stopped or the socket fails."""
        with context.socket(zmq.SUB) as socket:
            socket.setsockopt(zmq.LINGER, 0)
            socket.setsockopt_string(zmq.SUBSCRIBE, self.topic)
            socket.connect(self.endpoint)
            poller = zmq.Poller()
            poller.register(socket, zmq.POLLIN)
            self._connected = True
            logger.info("[%s] Connected to %s", self.name, self.endpoint)

            try:
                while not self._stop.is_set():
                    if not poller.poll(self._poll_timeout_ms):
                        continue
                    try:
                        parts = socket.recv_multipart(zmq.NOBLOCK)
                    except zmq.Again:
                        continue
                    frames = self.split_frames(parts)
                    if frames is None:
                        continue
                    self.messages_received += 1
                    self._failures = 0
                    self._dispatch(*frames)
            finally:
                self._connected = False

    def _dispatch(self, topic: str, payload: str) -> None:
        try:
            if self._loop is not None and asyncio.iscoroutinefunction(self._handler):
                asyncio.run_coroutine_threadsafe(self._handler(topic, payload), self._loop)
            elif self._handler is not None:
                self._handler(topic, payload)
        except Exception:
            logger.exception("[%s] Feed handler failed", self.name)
            self.errors += 1
