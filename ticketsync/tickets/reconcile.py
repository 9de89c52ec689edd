"""Fill in the blank enrichment fields of every ticket row."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from ticketsync.core.config import TicketSyncConfig
from ticketsync.services.slack import MessageFetcher

from .classifier import CategoryClassifier
from .locations import LocationResolver, allocate_ticket_id
from .models import ColumnRole, TicketRecord, decorate_reference, is_decorated
from .permalink import parse_permalink
from .repository import TicketRowStore
from .schedule import to_local

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ReconcileSummary:
    """Counters describing one reconciliation pass."""

    processed: int = 0
    touched: int = 0
    failed: int = 0
    skipped: int = 0
    writes: int = 0


class ReconciliationEngine:
    """Idempotently complete partially filled ticket records.

    Each field is only written while it is blank, so re-running over already
    enriched rows performs no writes.
    """

    def __init__(
        self,
        store: TicketRowStore,
        fetcher: MessageFetcher,
        config: TicketSyncConfig,
        *,
        classifier: CategoryClassifier | None = None,
        resolver: LocationResolver | None = None,
        clock: Callable[[], datetime] = _utcnow,
        timezone_name: str = "UTC",
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._config = config
        self._classifier = classifier or CategoryClassifier(config.category_rules)
        self._resolver = resolver or LocationResolver(config.channel_locations, config.location_hints)
        self._clock = clock
        self._timezone = timezone_name

    async def run(
        self, records: Iterable[TicketRecord] | None = None, *, now: datetime | None = None
    ) -> ReconcileSummary:
        if records is None:
            records = await self._store.read_rows()

        summary = ReconcileSummary()
        # Ticket ids carry the year of the office calendar, not of UTC.
        year = to_local(now or self._clock(), self._timezone).year
        for record in records:
            if not record.reference.strip():
                summary.skipped += 1
                continue
            summary.processed += 1
            try:
                writes, touched = await self._reconcile_record(record, year)
            except Exception:
                summary.failed += 1
                logger.exception("Failed to reconcile ticket row %d", record.position)
                continue
            summary.writes += writes
            if touched:
                summary.touched += 1

        logger.info(
            "Reconciled %d ticket rows: %d updated, %d failed, %d skipped",
            summary.processed,
            summary.touched,
            summary.failed,
            summary.skipped,
        )
        return summary

    async def _fill(self, record: TicketRecord, role: ColumnRole, value: str) -> bool:
        written = await self._store.fill_blank(record.position, role, value)
        if not written:
            logger.warning(
                "Row %d %s changed during the pass; leaving the current value", record.position, role.value
            )
        return written

    async def _reconcile_record(self, record: TicketRecord, year: int) -> tuple[int, bool]:
        writes = 0
        touched = False
        permalink = parse_permalink(record.reference)

        # 1. message text
        if not record.text.strip():
            if permalink is None:
                logger.debug("Row %d reference is not a message permalink", record.position)
            else:
                result = await self._fetcher.fetch_message(permalink)
                if result.ok:
                    text = result.text or ""
                else:
                    logger.warning(
                        "Could not fetch message for row %d (%s): %s",
                        record.position,
                        permalink.channel_id,
                        result.error or "empty message text",
                    )
                    text = self._config.fetch_failed_marker
                if await self._fill(record, ColumnRole.TEXT, text):
                    record.text = text
                    writes += 1
                    touched = True

        has_text = bool(record.text.strip())

        # 2. location
        if not record.location.strip() and has_text and permalink is not None:
            location = self._resolver.resolve(permalink.channel_id)
            if location is None:
                logger.info("No location mapped for channel %s (row %d)", permalink.channel_id, record.position)
            elif await self._fill(record, ColumnRole.LOCATION, location):
                record.location = location
                writes += 1

        # 3. category
        if not record.category.strip() and has_text and record.text != self._config.fetch_failed_marker:
            categories = self._classifier.classify(record.text)
            if categories:
                joined = self._config.category_separator.join(categories)
                if await self._fill(record, ColumnRole.CATEGORY, joined):
                    record.category = joined
                    writes += 1
                    touched = True

        # 4. reference link
        if not is_decorated(record.reference):
            decorated = decorate_reference(record.reference, self._config.link_label)
            if await self._store.replace_value(record.position, ColumnRole.REFERENCE, record.reference, decorated):
                record.reference = decorated
                writes += 1
                touched = True
            else:
                logger.warning("Row %d reference changed during the pass; not relinking", record.position)

        location = record.location.strip()

        # 5. row hint
        if location:
            hint = self._resolver.hint_for(location)
            if hint is not None and hint != record.hint:
                await self._store.set_row_hint(record.position, hint)
                record.hint = hint
                writes += 1

        # 6. ticket id
        if not record.ticket_id.strip() and location:
            ticket_id = allocate_ticket_id(location, year, record.position)
            if await self._fill(record, ColumnRole.TICKET_ID, ticket_id):
                record.ticket_id = ticket_id
                writes += 1
                touched = True

        return writes, touched
