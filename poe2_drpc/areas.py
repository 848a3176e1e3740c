"""Area id -> display name translations and town/hideout heuristics.

The client logs internal area ids ("G1_town", "C_G2_3", "MapCrypt").  There is
no authoritative area-type metadata in the log, so town and hideout detection
is done by name.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TRANSLATIONS = Path(__file__).parent / "resources" / "translations_en.json"

# Cruel difficulty replays the campaign with a "C_" prefix on every id
_CRUEL_PREFIX = "C_"

_RE_TOWN_ID = re.compile(r"(?:^|_)town$", re.IGNORECASE)

KNOWN_TOWNS = frozenset({
    "clearfell encampment",
    "ardura caravan",
    "the ziggurat encampment",
    "the ziggurat refuge",
    "kingsmarch",
})


def is_town(area: str) -> bool:
    """Guess whether an area id or name is a town."""
    name = area.strip()
    if _RE_TOWN_ID.search(name):
        return True
    if name.lower().startswith("cruel "):
        name = name[len("cruel "):]
    return name.lower() in KNOWN_TOWNS


def is_hideout(area: str) -> bool:
    return "hideout" in area.lower()


class AreaTranslations:
    """Maps raw area ids to display names.

    Usage:
        translations = AreaTranslations.load()
        translations.display_name("C_G1_1")  # "Cruel The Riverbank"
    """

    def __init__(self, areas: dict[str, str] | None = None) -> None:
        self._areas: dict[str, str] = dict(areas or {})

    def __len__(self) -> int:
        return len(self._areas)

    @classmethod
    def load(cls, path: str | Path | None = None) -> AreaTranslations:
        """Load translations JSON ({"areas": {id: name}}).

        Raises OSError / ValueError on an unreadable or malformed file, so a
        bad --translations-file fails at startup rather than silently.
        """
        source = Path(path) if path else DEFAULT_TRANSLATIONS
        data = json.loads(source.read_text(encoding="utf-8"))
        areas = data.get("areas") if isinstance(data, dict) else None
        if not isinstance(areas, dict):
            raise ValueError(f"{source}: expected an object with an 'areas' mapping")
        logger.info("Loaded %d area translations from %s", len(areas), source)
        return cls({str(k): str(v) for k, v in areas.items()})

    def lookup(self, area: str) -> str | None:
        """Return the display name for a known id, or None."""
        if area.startswith(_CRUEL_PREFIX):
            name = self._areas.get(area[len(_CRUEL_PREFIX):])
            return f"Cruel {name}" if name is not None else None
        return self._areas.get(area)

    def display_name(self, area: str) -> str:
        """Return the display name, falling back to the raw text."""
        name = self.lookup(area)
        return name if name is not None else area
