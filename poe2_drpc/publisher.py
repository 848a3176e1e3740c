"""Presence publisher: debounce status snapshots and push them to a sink.

Runs on its own worker thread so a slow or absent Discord never stalls log
polling.  The scheduling logic lives in ``process`` (one step, returns how
long to sleep) so it can be driven directly with a fake clock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum

from poe2_drpc.areas import AreaTranslations
from poe2_drpc.presence import PresencePayload, build_payload
from poe2_drpc.sink import PresenceRejected, PresenceSink, SinkUnavailable
from poe2_drpc.status import Status

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 1.5  # seconds
DEFAULT_BACKOFF_INITIAL = 1.0
DEFAULT_BACKOFF_MAX = 30.0


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# Sentinel for "clear the presence" in the pending slot
_CLEAR = object()


class PresencePublisher:
    """Debounced, reconnecting presence publisher.

    Only the latest pending snapshot is kept: submitting while a previous one
    is still waiting (debounce window, disconnected sink) replaces it.

    Usage:
        publisher = PresencePublisher(DiscordPresenceSink(), translations)
        publisher.start()
        publisher.submit(status)
        ...
        publisher.stop()
    """

    def __init__(
        self,
        sink: PresenceSink,
        translations: AreaTranslations | None = None,
        debounce_window: float = DEFAULT_DEBOUNCE,
        backoff_initial: float = DEFAULT_BACKOFF_INITIAL,
        backoff_max: float = DEFAULT_BACKOFF_MAX,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sink = sink
        self._translations = translations or AreaTranslations()
        self._debounce_window = debounce_window
        self._backoff_initial = backoff_initial
        self._backoff_max = backoff_max
        self._clock = clock

        self._lock = threading.Lock()
        self._pending: object | None = None  # Status or _CLEAR
        self._pending_since: float = 0.0

        self._state = ConnectionState.DISCONNECTED
        self._last_payload: PresencePayload | None = None
        self._cleared = True
        self._failures = 0
        self._next_attempt: float = 0.0
        self._publish_count = 0

        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def last_payload(self) -> PresencePayload | None:
        return self._last_payload

    @property
    def publish_count(self) -> int:
        """Number of payloads the sink accepted."""
        return self._publish_count

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def submit(self, status: Status) -> None:
        """Queue a status snapshot for publishing (latest wins, never blocks)."""
        self._set_pending(status)

    def clear(self) -> None:
        """Queue clearing the presence (e.g. the game was closed)."""
        self._set_pending(_CLEAR)

    def _set_pending(self, item: object) -> None:
        with self._lock:
            if self._pending is None:
                self._pending_since = self._clock()
            self._pending = item
        self._wake.set()

    def _take_pending(self) -> object | None:
        with self._lock:
            item, self._pending = self._pending, None
            return item

    def _restore_pending(self, item: object) -> None:
        # A newer submission made while we were busy supersedes the failed one
        with self._lock:
            if self._pending is None:
                self._pending = item
                self._pending_since = self._clock() - self._debounce_window

    def process(self) -> float | None:
        """Run one scheduling step.

        Returns seconds until the next step is due, or None when idle.
        """
        now = self._clock()
        with self._lock:
            if self._pending is _CLEAR and self._cleared:
                self._pending = None
            if self._pending is None:
                return None
            due = self._pending_since + self._debounce_window
        if now < due:
            return due - now

        if self._state is not ConnectionState.CONNECTED:
            if now < self._next_attempt:
                return self._next_attempt - now
            if not self._connect():
                return max(self._next_attempt - self._clock(), 0.0)

        item = self._take_pending()
        if item is None:
            return None
        try:
            if item is _CLEAR:
                self._send_clear()
            else:
                self._send_status(item)  # type: ignore[arg-type]
        except Exception as e:
            logger.exception("Unexpected presence sink error")
            self._on_failure("publish", e)
            self._restore_pending(item)
            return max(self._next_attempt - self._clock(), 0.0)
        with self._lock:
            return 0.0 if self._pending is not None else None

    def _connect(self) -> bool:
        self._state = ConnectionState.CONNECTING
        try:
            self._sink.connect()
        except SinkUnavailable as e:
            self._on_failure("connect", e)
            return False
        self._state = ConnectionState.CONNECTED
        self._failures = 0
        # A fresh connection shows nothing until we publish again
        self._last_payload = None
        self._cleared = True
        logger.info("Presence sink connected")
        return True

    def _on_failure(self, action: str, error: Exception) -> None:
        self._state = ConnectionState.DISCONNECTED
        delay = min(self._backoff_initial * (2 ** self._failures), self._backoff_max)
        self._failures += 1
        self._next_attempt = self._clock() + delay
        logger.warning("Presence %s failed (%s), retrying in %.1fs", action, error, delay)

    def _send_status(self, status: Status) -> None:
        payload = build_payload(status, self._translations)
        if payload is None:
            if not self._cleared:
                self._send_clear()
            return
        if payload == self._last_payload:
            logger.debug("Presence unchanged, not re-sending")
            return
        try:
            self._sink.update(payload)
        except PresenceRejected as e:
            logger.error("Presence payload rejected, dropping it: %s (%r)", e, payload)
            return
        except SinkUnavailable as e:
            self._on_failure("update", e)
            self._restore_pending(status)
            return
        self._last_payload = payload
        self._cleared = False
        self._publish_count += 1
        logger.info("Presence updated: %s | %s", payload.details, payload.state)

    def _send_clear(self) -> None:
        if self._cleared:
            return
        try:
            self._sink.clear()
        except SinkUnavailable as e:
            self._on_failure("clear", e)
            self._restore_pending(_CLEAR)
            return
        self._last_payload = None
        self._cleared = True
        logger.info("Presence cleared")

    def start(self) -> None:
        """Start the worker thread."""
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="presence-publisher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker, letting an in-flight attempt finish, then close the sink."""
        self._stop_event.set()
        self._wake.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                # Still inside a sink call; it is a daemon thread, leave the sink to it
                logger.warning("Presence publisher did not stop within %.1fs", timeout)
                return
            self._thread = None
        if self._state is ConnectionState.CONNECTED:
            try:
                self._sink.clear()
            except (SinkUnavailable, PresenceRejected) as e:
                logger.debug("Could not clear presence on shutdown: %s", e)
        self._sink.close()
        self._state = ConnectionState.DISCONNECTED
        logger.info("Presence publisher stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                delay = self.process()
            except Exception as e:
                logger.exception("Presence publisher step failed")
                self._on_failure("step", e)
                delay = max(self._next_attempt - self._clock(), 0.0)
            self._wake.wait(delay)
            self._wake.clear()
