from __future__ import annotations

from typing import Mapping


class LocationResolver:
    """Static lookup from channel id to a human readable location."""

    def __init__(self, channel_locations: Mapping[str, str], hints: Mapping[str, str] | None = None) -> None:
        self._channels = dict(channel_locations)
        self._hints = tuple((name.lower(), hint) for name, hint in (hints or {}).items() if name)

    def resolve(self, channel_id: str | None) -> str | None:
        if not channel_id:
            return None
        location = self._channels.get(channel_id)
        if location is None or not location.strip():
            return None
        return location.strip()

    def hint_for(self, location: str | None) -> str | None:
        """Presentation hint for the first configured name contained in ``location``."""

        if not location:
            return None
        lowered = location.lower()
        for name, hint in self._hints:
            if name in lowered:
                return hint
        return None


def location_prefix(location: str) -> str:
    letters = "".join(char for char in location if char.isalpha())
    return letters[:3].upper()


def allocate_ticket_id(location: str, year: int, position: int) -> str:
    """Format ``{LOC}-{YY}-{position}`` for a record.

    The function is pure; callers must check the record has no ticket id yet.
    """

    prefix = location_prefix(location)
    if not prefix:
        raise ValueError(f"Location {location!r} has no letters to build a ticket prefix from")
    return f"{prefix}-{year % 100:02d}-{position}"
