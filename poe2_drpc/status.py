"""Status aggregation: fold game events into the player's current status.

``apply`` is a pure reducer.  The pipeline owns the running Status and hands
immutable snapshots to the publisher.

Known limitation: the log has no authoritative "active character" signal.
If the player switches character and the new one never produces an identity
line (level up), the previous identity keeps being shown.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from poe2_drpc.events import (
    AreaEntered,
    CharacterLoaded,
    GameEvent,
    LevelUp,
    PlayerJoined,
    Unrecognized,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Status:
    """Snapshot of what we currently believe about the player."""

    name: str | None = None
    level: int | None = None
    character_class: str | None = None
    ascendancy: str | None = None
    area: str | None = None
    area_level: int | None = None
    in_town: bool = False
    in_hideout: bool = False
    area_entered_at: float | None = None
    # Names seen joining our area: their level-up lines are not about us
    other_players: frozenset[str] = field(default_factory=frozenset)
    last_updated: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.name is None and self.area is None


def _apply_character(event: CharacterLoaded, current: Status) -> Status:
    if event.name in current.other_players:
        logger.debug("Ignoring level line for other player %s", event.name)
        return current

    if current.name is not None and current.name != event.name:
        logger.info("Character changed: %s -> %s", current.name, event.name)
        return replace(
            current,
            name=event.name,
            level=event.level,
            character_class=event.character_class,
            ascendancy=event.ascendancy,
            area=None,
            area_level=None,
            in_town=False,
            in_hideout=False,
            area_entered_at=None,
            last_updated=event.timestamp,
        )

    # Same character (or the first one we see): never blank a known field
    return replace(
        current,
        name=event.name,
        level=event.level,
        character_class=event.character_class or current.character_class,
        ascendancy=event.ascendancy or current.ascendancy,
        last_updated=event.timestamp,
    )


def apply(event: GameEvent, current: Status, *, activity_is_liveness: bool = False) -> Status:
    """Return the Status that results from applying ``event`` to ``current``."""
    if isinstance(event, CharacterLoaded):
        return _apply_character(event, current)

    if isinstance(event, LevelUp):
        return replace(current, level=event.level, last_updated=event.timestamp)

    if isinstance(event, AreaEntered):
        return replace(
            current,
            area=event.area,
            area_level=event.area_level,
            in_town=event.is_town,
            in_hideout=event.is_hideout,
            area_entered_at=event.timestamp,
            last_updated=event.timestamp,
        )

    if isinstance(event, PlayerJoined):
        if event.name == current.name or event.name in current.other_players:
            return replace(current, last_updated=event.timestamp)
        return replace(
            current,
            other_players=current.other_players | {event.name},
            last_updated=event.timestamp,
        )

    if isinstance(event, Unrecognized) and activity_is_liveness:
        return replace(current, last_updated=event.timestamp)

    return current


def fold(
    events: Iterable[GameEvent],
    initial: Status | None = None,
    *,
    activity_is_liveness: bool = False,
) -> Status:
    """Apply events in order, starting from ``initial`` (default: empty)."""
    status = initial if initial is not None else Status()
    for event in events:
        status = apply(event, status, activity_is_liveness=activity_is_liveness)
    return status
