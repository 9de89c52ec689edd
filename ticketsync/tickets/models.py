from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class ColumnRole(str, Enum):
    """Roles a column can play in the ticket store."""

    REFERENCE = "reference"
    TEXT = "text"
    LOCATION = "location"
    CATEGORY = "category"
    STATUS = "status"
    TICKET_ID = "ticket_id"
    CLOSED_BY = "closed_by"
    CLOSED_AT = "closed_at"


class TicketStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"

    @classmethod
    def is_open(cls, value: str | None) -> bool:
        return (value or "").strip().lower() == cls.OPEN.value.lower()


@dataclass(slots=True)
class TicketRecord:
    """One data row of the ticket store."""

    position: int
    reference: str = ""
    text: str = ""
    location: str = ""
    category: str = ""
    status: str = ""
    ticket_id: str = ""
    hint: str | None = None

    @property
    def link(self) -> str:
        """Target URL of the reference, with any hyperlink decoration removed."""

        return decode_reference(self.reference)


_HYPERLINK_RE = re.compile(
    r'^\s*=\s*HYPERLINK\(\s*"(?P<url>(?:[^"]|"")*)"\s*(?:[,;]\s*"(?P<label>(?:[^"]|"")*)"\s*)?\)\s*$',
    re.IGNORECASE,
)


def _escape(text: str) -> str:
    return text.replace('"', '""')


def _unescape(text: str) -> str:
    return text.replace('""', '"')


def is_decorated(value: str | None) -> bool:
    return bool(value) and _HYPERLINK_RE.match(value) is not None


def decode_reference(value: str | None) -> str:
    """Return the target URL of a hyperlink formula, or the plain stripped value."""

    if not value:
        return ""
    match = _HYPERLINK_RE.match(value)
    if match is not None:
        return _unescape(match.group("url")).strip()
    return value.strip()


def decorate_reference(value: str, label: str) -> str:
    """Wrap a plain reference in a hyperlink formula; decorated values pass through."""

    if is_decorated(value):
        return value
    return f'=HYPERLINK("{_escape(value.strip())}", "{_escape(label)}")'
