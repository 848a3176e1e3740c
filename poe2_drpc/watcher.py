"""Line source for Client.txt using polling.

The client keeps the log open and appends to it; filesystem events are
unreliable across platforms, so we stat the file on every poll and read what
was appended since the last one.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Client.txt easily reaches hundreds of MB; replaying it is done in chunks
MAX_READ = 4 * 1024 * 1024


class LogSourceError(OSError):
    """The log exists but could not be read (permissions, locking, I/O)."""


@dataclass(frozen=True, slots=True)
class LogPosition:
    """Where we are in the log file, plus the fingerprint it was taken from."""

    identity: tuple[int, int] | None = None  # (st_dev, st_ino)
    offset: int = 0
    size: int = 0
    mtime: float = 0.0


def _identity(st: os.stat_result) -> tuple[int, int] | None:
    # st_ino is 0 on filesystems that do not expose it; identity is unknown then
    if not st.st_ino:
        return None
    return (st.st_dev, st.st_ino)


class LogLineSource:
    """Yields complete lines appended to a log file since the previous poll.

    Usage:
        source = LogLineSource(Path("logs/Client.txt"))
        for line in source.poll():
            ...
    """

    def __init__(
        self,
        file_path: Path,
        position: LogPosition | None = None,
        max_read: int = MAX_READ,
    ) -> None:
        self._file_path = Path(file_path)
        self._position = position or LogPosition()
        self._max_read = max_read
        self._backlog = False

    @property
    def path(self) -> Path:
        return self._file_path

    @property
    def position(self) -> LogPosition:
        return self._position

    @property
    def has_backlog(self) -> bool:
        """True when the last poll stopped at MAX_READ with more data waiting."""
        return self._backlog

    def seek_to_end(self) -> None:
        """Move position to end of file so only new lines are read."""
        try:
            st = self._file_path.stat()
        except FileNotFoundError:
            self._position = LogPosition()
            return
        self._position = LogPosition(
            identity=_identity(st), offset=st.st_size, size=st.st_size, mtime=st.st_mtime,
        )

    def read_tail(self, max_lines: int = 50) -> list[str]:
        """Read last N non-empty lines from the file (diagnostics only)."""
        try:
            with open(self._file_path, encoding="utf-8", errors="replace") as f:
                all_lines = f.readlines()
        except OSError:
            return []
        result = []
        for line in all_lines[-max_lines:]:
            stripped = line.strip()
            if stripped:
                result.append(stripped)
        return result

    def poll(self) -> Iterator[str]:
        """Return new complete lines since the last poll.

        A missing file yields nothing (the client may be mid-rotation).  Any
        other OSError is raised as LogSourceError; position is unchanged then.
        A trailing line without a newline is left for the next poll.
        """
        try:
            st = self._file_path.stat()
        except FileNotFoundError:
            logger.debug("Log file missing: %s", self._file_path)
            return iter(())
        except OSError as e:
            raise LogSourceError(f"Cannot stat {self._file_path}: {e}") from e

        self._backlog = False
        identity = _identity(st)
        pos = self._position
        rotated = pos.identity is not None and identity is not None and identity != pos.identity
        if rotated or st.st_size < pos.offset:
            logger.info("Log truncated or replaced, reading from start: %s", self._file_path)
            pos = LogPosition()

        if st.st_size == pos.offset:
            self._position = LogPosition(identity, pos.offset, st.st_size, st.st_mtime)
            return iter(())

        want = min(st.st_size - pos.offset, self._max_read)
        try:
            data = self._read_chunk(pos.offset, want)
        except OSError as e:
            raise LogSourceError(f"Cannot read {self._file_path}: {e}") from e

        self._backlog = want < st.st_size - pos.offset
        self._position = LogPosition(identity, pos.offset, st.st_size, st.st_mtime)
        return self._iter_lines(data, pos.offset, truncated=self._backlog)

    def _iter_lines(self, data: bytes, base: int, truncated: bool = False) -> Iterator[str]:
        end = data.rfind(b"\n")
        if end < 0:
            if truncated and data:
                # A single line longer than MAX_READ: hand it out as is
                self._advance(base + len(data))
                yield data.decode("utf-8", errors="replace")
            return
        start = 0
        while start <= end:
            newline = data.index(b"\n", start)
            raw = data[start:newline]
            start = newline + 1
            # Advance before handing out: a handed-out line counts as consumed
            self._advance(base + start)
            text = raw.decode("utf-8", errors="replace").rstrip("\r")
            if text.strip():
                yield text

    def _advance(self, offset: int) -> None:
        pos = self._position
        self._position = LogPosition(pos.identity, offset, pos.size, pos.mtime)

    def _read_chunk(self, offset: int, size: int) -> bytes:
        # No handle is held between polls so the client can rotate the log
        with open(self._file_path, "rb") as f:
            f.seek(offset)
            return f.read(size)
