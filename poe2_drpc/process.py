"""Detect whether the game client is running."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator

import psutil

logger = logging.getLogger(__name__)

PROCESS_NAMES = (
    "PathOfExile_x64Steam.exe",
    "PathOfExile_x64.exe",
    "PathOfExileSteam.exe",
    "PathOfExile.exe",
)


class GameProcessMonitor:
    """Answers "is the game running?" by scanning process names."""

    def __init__(
        self,
        names: Iterable[str] = PROCESS_NAMES,
        process_iter: Callable[..., Iterator[psutil.Process]] = psutil.process_iter,
    ) -> None:
        self._names = {n.lower() for n in names}
        self._process_iter = process_iter

    def is_running(self) -> bool:
        try:
            for proc in self._process_iter(["name"]):
                name = (proc.info.get("name") or "").lower()
                if name in self._names:
                    return True
        except psutil.Error as e:
            # Treat an unreadable process table as "running" so we do not
            # clear a valid presence because of a permission hiccup
            logger.warning("Cannot list processes: %s", e)
            return True
        return False
