from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

WEEKDAYS: tuple[int, ...] = (0, 1, 2, 3, 4)


def to_local(now: datetime, tz: str = "UTC") -> datetime:
    """Convert ``now`` to the ``tz`` time zone; naive values are taken as UTC."""

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz))


def is_within_window(now: datetime, weekdays: Iterable[int] = WEEKDAYS, tz: str = "UTC") -> bool:
    """Return whether ``now`` falls on an active weekday in the ``tz`` time zone."""

    return to_local(now, tz).weekday() in set(weekdays)
