"""Typed game events produced by the log parser."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class CharacterLoaded:
    """A line that names the player's character together with class and level."""

    name: str
    level: int
    character_class: str | None
    ascendancy: str | None
    timestamp: float


@dataclass(frozen=True, slots=True)
class AreaEntered:
    """The client generated (and is about to enter) an area."""

    area: str
    timestamp: float
    area_level: int | None = None
    seed: int | None = None
    is_town: bool = False
    is_hideout: bool = False


@dataclass(frozen=True, slots=True)
class LevelUp:
    level: int
    timestamp: float


@dataclass(frozen=True, slots=True)
class PlayerJoined:
    """Someone else joined the player's area (party member, visitor)."""

    name: str
    timestamp: float


@dataclass(frozen=True, slots=True)
class Unrecognized:
    line: str
    timestamp: float


GameEvent = Union[CharacterLoaded, AreaEntered, LevelUp, PlayerJoined, Unrecognized]
