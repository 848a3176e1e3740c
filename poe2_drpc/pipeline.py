"""Presence pipeline: line source -> parser -> status aggregator -> publisher."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path

from poe2_drpc.events import PlayerJoined
from poe2_drpc.parser import parse_line
from poe2_drpc.process import GameProcessMonitor
from poe2_drpc.publisher import PresencePublisher
from poe2_drpc.status import Status, apply
from poe2_drpc.watcher import LogLineSource, LogSourceError

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Pipeline configuration."""

    log_path: Path = Path("Client.txt")
    poll_interval: float = 1.0
    activity_is_liveness: bool = False
    replay_history: bool = True
    process_check_interval: float = 5.0


def scan_joined_players(log_path: Path) -> frozenset[str]:
    """Collect every name seen joining the area anywhere in the log.

    Run before replaying history, so that a party member's level line that
    precedes their join line is not taken for the player's own.
    """
    source = LogLineSource(log_path)
    names: set[str] = set()
    try:
        while True:
            for line in source.poll():
                event = parse_line(line)
                if isinstance(event, PlayerJoined):
                    names.add(event.name)
            if not source.has_backlog:
                break
    except LogSourceError as e:
        logger.warning("Could not scan log for other players: %s", e)
    return frozenset(names)


class PresencePipeline:
    """Owns the running Status and drives the poll loop.

    Flow: poll Client.txt -> parse each new line -> fold into Status ->
    hand the snapshot to the publisher (which works on its own thread).

    The Status is only ever written from the poll thread.
    """

    def __init__(
        self,
        config: PipelineConfig,
        publisher: PresencePublisher,
        process_monitor: GameProcessMonitor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._publisher = publisher
        self._process_monitor = process_monitor
        self._clock = clock

        self._source = LogLineSource(config.log_path)
        self._status = Status()
        self._published_status: Status | None = None
        self._players_scanned = False

        self._game_running: bool | None = None
        self._next_process_check: float = 0.0

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def status(self) -> Status:
        """Current status snapshot (immutable)."""
        return self._status

    @property
    def source(self) -> LogLineSource:
        return self._source

    @property
    def game_running(self) -> bool:
        return self._game_running is not False

    def tick(self) -> int:
        """Run one poll cycle.  Returns the number of lines consumed."""
        if not self._players_scanned:
            self._scan_players()
        consumed = 0
        while True:
            try:
                lines = self._source.poll()
            except LogSourceError as e:
                logger.warning("Skipping poll: %s", e)
                break
            for line in lines:
                self._status = apply(
                    parse_line(line),
                    self._status,
                    activity_is_liveness=self._config.activity_is_liveness,
                )
                consumed += 1
            if not self._source.has_backlog or self._stop_event.is_set():
                break

        if consumed:
            logger.debug("Consumed %d lines", consumed)
        self._check_game()
        if self.game_running and self._status is not self._published_status:
            self._submit()
        return consumed

    def _scan_players(self) -> None:
        self._players_scanned = True
        if not self._config.replay_history or self._source.position.offset:
            return
        names = scan_joined_players(self._source.path)
        if names:
            logger.debug("Known other players from history: %d", len(names))
            self._status = replace(
                self._status, other_players=self._status.other_players | names,
            )

    def _submit(self) -> None:
        self._published_status = self._status
        if not self._status.is_empty:
            self._publisher.submit(self._status)

    def _check_game(self) -> None:
        if self._process_monitor is None:
            return
        now = self._clock()
        if now < self._next_process_check:
            return
        self._next_process_check = now + self._config.process_check_interval

        running = self._process_monitor.is_running()
        if running == self._game_running:
            return
        self._game_running = running
        if running:
            logger.info("Game client detected")
            self._published_status = None
        else:
            logger.info("Game client not running, clearing presence")
            self._publisher.clear()

    def start(self) -> None:
        """Start the publisher and the poll loop."""
        if not self._config.replay_history:
            self._source.seek_to_end()
        self._stop_event.clear()
        self._publisher.start()
        self._thread = threading.Thread(target=self._poll_loop, name="log-poll", daemon=True)
        self._thread.start()
        logger.info("Watching (poll) %s", self._config.log_path)

    def stop(self) -> None:
        """Stop polling and let the publisher finish."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        self._publisher.stop()
        logger.info("Pipeline stopped at offset %d", self._source.position.offset)

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self._config.poll_interval)
