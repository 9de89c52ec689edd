from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from ticketsync.services.slack import Notifier

from .models import TicketRecord, TicketStatus
from .repository import TicketRowStore

logger = logging.getLogger(__name__)

NO_OPEN_TICKETS_MESSAGE = "There are no open tickets. :tada:"


@dataclass(slots=True)
class StatusReport:
    open_count: int = 0
    message: str = ""
    delivered: bool = False
    skipped: bool = False
    reason: str | None = None


def count_open(records: Iterable[TicketRecord]) -> int:
    return sum(1 for record in records if TicketStatus.is_open(record.status))


def compose_status_message(open_count: int) -> str:
    if open_count <= 0:
        return NO_OPEN_TICKETS_MESSAGE
    noun = "ticket" if open_count == 1 else "tickets"
    verb = "is" if open_count == 1 else "are"
    return f"There {verb} currently {open_count} open {noun}."


class StatusReporter:
    """Count open tickets and push a summary to a channel."""

    def __init__(self, store: TicketRowStore, notifier: Notifier, channel: str) -> None:
        self._store = store
        self._notifier = notifier
        self._channel = channel

    async def run(self) -> StatusReport:
        records = await self._store.read_rows()
        open_count = count_open(records)
        message = compose_status_message(open_count)
        delivered = await self._notifier.post_message(self._channel, message)
        if delivered:
            logger.info("Posted status report to %s: %d open tickets", self._channel, open_count)
        return StatusReport(open_count=open_count, message=message, delivered=delivered)
