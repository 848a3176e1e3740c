"""Map a Status snapshot to a rich presence payload."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from poe2_drpc.areas import AreaTranslations
from poe2_drpc.classes import ascendancy_image, class_image
from poe2_drpc.status import Status

# Discord rejects state/details shorter than 2 or longer than 128 characters
_MIN_TEXT = 2
_MAX_TEXT = 128


@dataclass(frozen=True, slots=True)
class PresencePayload:
    """Logical presence fields; the sink owns the wire format."""

    state: str | None = None
    details: str | None = None
    start: int | None = None
    large_image: str | None = None
    large_text: str | None = None
    small_image: str | None = None
    small_text: str | None = None

    def as_kwargs(self) -> dict[str, str | int]:
        """Non-empty fields, ready for ``pypresence.Presence.update``."""
        return {k: v for k, v in asdict(self).items() if v is not None}


def _fit(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    if len(text) < _MIN_TEXT:
        return None
    return text[:_MAX_TEXT]


def _state_line(status: Status, translations: AreaTranslations) -> str | None:
    if status.area is None:
        return None
    name = translations.display_name(status.area)
    # Towns and hideouts are not "in a map", so drop the area level framing
    if status.in_town or status.in_hideout or status.area_level is None:
        return name
    return f"{name} ({status.area_level})"


def build_payload(status: Status, translations: AreaTranslations) -> PresencePayload | None:
    """Build the payload for a status, or None when there is nothing to show."""
    if status.is_empty:
        return None

    large_image = large_text = small_image = small_text = None
    level = f" ({status.level})" if status.level is not None else ""
    if status.ascendancy:
        large_image = ascendancy_image(status.ascendancy)
        large_text = f"{status.ascendancy}{level}"
        small_image = class_image(status.character_class)
        small_text = status.character_class
    elif status.character_class:
        large_image = class_image(status.character_class)
        large_text = f"{status.character_class}{level}"

    return PresencePayload(
        state=_fit(_state_line(status, translations)),
        details=_fit(status.name),
        start=int(status.area_entered_at) if status.area_entered_at is not None else None,
        large_image=large_image,
        large_text=_fit(large_text),
        small_image=small_image,
        small_text=_fit(small_text),
    )
