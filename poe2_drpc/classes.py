"""Path of Exile 2 character classes and ascendancies.

The log only ever prints one word (or a few) in the class slot: the base
class before the ascendancy trial, the ascendancy afterwards.  We resolve
that text into a (class, ascendancy) pair of display names.
"""

from __future__ import annotations

import re

# Base class display name -> Discord asset key
CLASS_IMAGES: dict[str, str] = {
    "Mercenary": "mercenary",
    "Monk": "monk",
    "Ranger": "ranger",
    "Sorceress": "sorceress",
    "Warrior": "warrior",
    "Witch": "witch",
}

# Ascendancy display name -> (base class, Discord asset key)
ASCENDANCIES: dict[str, tuple[str, str]] = {
    "Witchhunter": ("Mercenary", "mercenary_witchhunter"),
    "Gemling Legionnaire": ("Mercenary", "mercenary_gemling_legionnaire"),
    "Acolyte of Chayula": ("Monk", "monk_acolyte_of_chayula"),
    "Invoker": ("Monk", "monk_invoker"),
    "Deadeye": ("Ranger", "ranger_deadeye"),
    "Pathfinder": ("Ranger", "ranger_pathfinder"),
    "Chronomancer": ("Sorceress", "sorceress_chronomancer"),
    "Stormweaver": ("Sorceress", "sorceress_stormweaver"),
    "Titan": ("Warrior", "warrior_titan"),
    "Warbringer": ("Warrior", "warrior_warbringer"),
    "Blood Mage": ("Witch", "witch_blood_mage"),
    "Infernalist": ("Witch", "witch_infernalist"),
}


def _normalize(text: str) -> str:
    # "Blood Mage", "BloodMage" and "blood_mage" all resolve the same
    return re.sub(r"[\s_]+", "", text).lower()


_CLASS_LOOKUP = {_normalize(name): name for name in CLASS_IMAGES}
_ASCENDANCY_LOOKUP = {_normalize(name): name for name in ASCENDANCIES}


def resolve_class(text: str) -> tuple[str | None, str | None]:
    """Resolve the class slot of a log line into (class, ascendancy).

    Returns the text itself as the class when it is neither a known class nor
    a known ascendancy, so format drift (new classes) still shows something.
    """
    key = _normalize(text)
    if not key:
        return None, None
    if key in _ASCENDANCY_LOOKUP:
        ascendancy = _ASCENDANCY_LOOKUP[key]
        return ASCENDANCIES[ascendancy][0], ascendancy
    if key in _CLASS_LOOKUP:
        return _CLASS_LOOKUP[key], None
    return text.strip(), None


def class_image(character_class: str | None) -> str | None:
    if character_class is None:
        return None
    return CLASS_IMAGES.get(character_class)


def ascendancy_image(ascendancy: str | None) -> str | None:
    if ascendancy is None:
        return None
    entry = ASCENDANCIES.get(ascendancy)
    return entry[1] if entry else None
