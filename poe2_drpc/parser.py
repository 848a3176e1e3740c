"""Parser for Path of Exile 2 Client.txt lines."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from poe2_drpc.areas import is_hideout, is_town
from poe2_drpc.classes import resolve_class
from poe2_drpc.events import (
    AreaEntered,
    CharacterLoaded,
    GameEvent,
    LevelUp,
    PlayerJoined,
    Unrecognized,
)

# Client.txt format examples:
# 2024/12/10 19:23:45 3614468 cffb0734 [DEBUG Client 25876] Generating level 1 area "G1_1" with seed 2830548042
# 2024/12/10 19:24:01 3630156 cff945b9 [INFO Client 25876] : Foo (Witch) is now level 2
# 2024/12/10 19:24:30 3659011 cff945b9 [INFO Client 25876] : Bar has joined the area.
# 2024/12/10 19:25:02 3690870 cff945b9 [INFO Client 25876] #Bar: Generating level 99 area "lol"
# 2024/12/10 19:25:09 3697412 cff945b9 [INFO Client 25876] Bar: Generating area lol

_RE_HEADER = re.compile(
    r"^(?P<ts>\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2})"  # timestamp
    r"(?:\s+\d+)?(?:\s+[0-9a-fA-F]+)?"  # uptime ms, hash
    r"\s+\[[^\]]*\]\s?"  # [LEVEL Client pid]
)
_RE_TIMESTAMP = re.compile(r"^(\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2})")
_TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

# Chat channel markers: #global, @whisper, %party, $trade, &guild
_CHAT_PREFIXES = ("#", "@", "%", "$", "&")

_RE_AREA = re.compile(
    r"^Generating (?:level (?P<area_level>\d+) )?area "
    r"(?:\"(?P<quoted>[^\"]+)\"|(?P<bare>.+?))"  # "G1_1" or bare name
    r"(?: with seed (?P<seed>\d+))?\s*$"
)
_RE_ANNOUNCEMENT = re.compile(
    r"^(?::\s*)?(?P<name>\w+) \((?P<cls>[^()]+)\) is now level (?P<level>\d+)"
)
_RE_CHARACTER = re.compile(
    r"^(?::\s*)?Character (?P<name>\w+),\s*Class (?P<cls>[^,]+?)"
    r"(?:,\s*Ascendancy (?P<asc>[^,]+?))?"
    r",\s*Level (?P<level>\d+)\s*$"
)
_RE_LEVEL_UP = re.compile(
    r"^(?::\s*)?Level up! You have reached Level (?P<level>\d+)", re.IGNORECASE
)
_RE_JOINED = re.compile(r"^(?::\s*)?(?P<name>\w+) has joined the area\.?\s*$")


def _build_area(m: re.Match[str], ts: float) -> GameEvent:
    area = (m.group("quoted") or m.group("bare")).strip()
    return AreaEntered(
        area=area,
        timestamp=ts,
        area_level=int(m.group("area_level")) if m.group("area_level") else None,
        seed=int(m.group("seed")) if m.group("seed") else None,
        is_town=is_town(area),
        is_hideout=is_hideout(area),
    )


def _build_announcement(m: re.Match[str], ts: float) -> GameEvent:
    character_class, ascendancy = resolve_class(m.group("cls"))
    return CharacterLoaded(
        name=m.group("name"),
        level=int(m.group("level")),
        character_class=character_class,
        ascendancy=ascendancy,
        timestamp=ts,
    )


def _build_character(m: re.Match[str], ts: float) -> GameEvent:
    character_class, ascendancy = resolve_class(m.group("cls"))
    if m.group("asc"):
        # An explicit ascendancy field wins over whatever the class slot held
        asc_class, ascendancy = resolve_class(m.group("asc"))
        if ascendancy is None:
            ascendancy = asc_class
    return CharacterLoaded(
        name=m.group("name"),
        level=int(m.group("level")),
        character_class=character_class,
        ascendancy=ascendancy,
        timestamp=ts,
    )


def _build_level_up(m: re.Match[str], ts: float) -> GameEvent:
    return LevelUp(level=int(m.group("level")), timestamp=ts)


def _build_joined(m: re.Match[str], ts: float) -> GameEvent:
    return PlayerJoined(name=m.group("name"), timestamp=ts)


@dataclass(frozen=True, slots=True)
class Matcher:
    """One line shape: a cheap keyword pre-check, a regex, and an event builder."""

    name: str
    keyword: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str], float], GameEvent]

    def match(self, body: str, ts: float) -> GameEvent | None:
        if self.keyword not in body:
            return None
        m = self.pattern.search(body)
        if m is None:
            return None
        return self.build(m, ts)


# Order matters: first match wins.  Keywords are disjoint enough that a line
# can only plausibly satisfy one pattern.
MATCHERS: tuple[Matcher, ...] = (
    Matcher("area", "Generating ", _RE_AREA, _build_area),
    Matcher("announcement", " is now level ", _RE_ANNOUNCEMENT, _build_announcement),
    Matcher("character", "Character ", _RE_CHARACTER, _build_character),
    Matcher("level_up", "reached Level", _RE_LEVEL_UP, _build_level_up),
    Matcher("joined", " has joined the area", _RE_JOINED, _build_joined),
)


def parse_timestamp(line: str) -> float | None:
    """Return the line's leading local timestamp as epoch seconds, if any."""
    m = _RE_TIMESTAMP.match(line)
    if not m:
        return None
    try:
        return datetime.strptime(m.group(1), _TIMESTAMP_FORMAT).timestamp()
    except ValueError:
        return None


def _message_body(line: str) -> str:
    """Strip the timestamp/[LEVEL Client pid] header, leaving the message."""
    m = _RE_HEADER.match(line)
    return line[m.end():] if m else line


def parse_line(line: str, received_at: float | None = None) -> GameEvent:
    """Parse a single Client.txt line into a GameEvent.

    Never raises: anything that is not a known line shape (the vast majority
    of the log) comes back as Unrecognized.  The event timestamp is the
    line's own timestamp when present, else ``received_at`` (default: now).
    """
    line = line.rstrip("\r\n")
    ts = parse_timestamp(line)
    if ts is None:
        ts = received_at if received_at is not None else time.time()

    body = _message_body(line).strip()
    # Players can type anything in chat, including lines that look like ours
    if not body or body.startswith(_CHAT_PREFIXES):
        return Unrecognized(line=line, timestamp=ts)

    for matcher in MATCHERS:
        event = matcher.match(body, ts)
        if event is not None:
            return event

    return Unrecognized(line=line, timestamp=ts)
