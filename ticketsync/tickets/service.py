from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Sequence

from opentelemetry import trace

from ticketsync.core.config import TicketSyncConfig
from ticketsync.services.slack import MessageFetcher, Notifier

from .dedup import DedupResult, Deduplicator
from .reconcile import ReconcileSummary, ReconciliationEngine
from .report import StatusReport, StatusReporter
from .repository import TicketRowStore
from .schedule import WEEKDAYS, is_within_window

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TicketSyncError(RuntimeError):
    """Base error for ticket sync issues."""


class ConfigurationError(TicketSyncError):
    """Raised when the service is missing a credential or a setting."""


class StoreUnavailableError(TicketSyncError):
    """Raised when the target ticket store does not exist."""


class PassTrigger(str, Enum):
    CHANGE = "change"
    SCHEDULE = "schedule"


@dataclass(slots=True)
class PassResult:
    """Outcome of one dedup and reconciliation pass."""

    trigger: PassTrigger
    skipped: bool = False
    reason: str | None = None
    dedup: DedupResult = field(default_factory=DedupResult)
    reconcile: ReconcileSummary = field(default_factory=ReconcileSummary)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketSyncService:
    """Entry points invoked by triggers and the scheduler."""

    def __init__(
        self,
        store: TicketRowStore,
        config: TicketSyncConfig,
        *,
        fetcher: MessageFetcher | None,
        notifier: Notifier | None,
        report_channel: str | None = None,
        weekdays: Sequence[int] = WEEKDAYS,
        timezone_name: str = "UTC",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._report_channel = report_channel
        self._weekdays = tuple(weekdays)
        self._timezone = timezone_name
        self._clock = clock
        self._deduplicator = Deduplicator(store)
        self._engine: ReconciliationEngine | None = None
        if fetcher is not None:
            self._engine = ReconciliationEngine(
                store, fetcher, config, clock=clock, timezone_name=timezone_name
            )

    async def _ensure_ready(self, collaborator: object | None, name: str) -> None:
        if collaborator is None:
            raise ConfigurationError(f"{name} is not configured; set SLACK_BOT_TOKEN")
        if not await self._store.is_available():
            raise StoreUnavailableError("Ticket store is not available; provision it before running")

    async def run_pass(self, trigger: PassTrigger = PassTrigger.CHANGE, now: datetime | None = None) -> PassResult:
        """Remove duplicate rows, then reconcile every remaining row."""

        now = now or self._clock()
        result = PassResult(trigger=trigger)
        with tracer.start_as_current_span("ticketsync.pass") as span:
            span.set_attribute("ticketsync.trigger", trigger.value)
            try:
                await self._ensure_ready(self._engine, "Message fetcher")
            except TicketSyncError as exc:
                logger.error("Skipping %s pass: %s", trigger.value, exc)
                result.skipped = True
                result.reason = str(exc)
                return result

            if trigger is PassTrigger.SCHEDULE and not is_within_window(now, self._weekdays, self._timezone):
                logger.info("Skipping scheduled pass outside active weekdays")
                result.skipped = True
                result.reason = "outside schedule window"
                return result

            result.dedup = await self._deduplicator.run()
            result.reconcile = await self._engine.run(now=now)
            span.set_attribute("ticketsync.rows_removed", result.dedup.removed_count)
            span.set_attribute("ticketsync.rows_touched", result.reconcile.touched)
        return result

    async def send_status_report(self, now: datetime | None = None) -> StatusReport:
        now = now or self._clock()
        with tracer.start_as_current_span("ticketsync.status_report"):
            try:
                await self._ensure_ready(self._notifier, "Notifier")
                if not self._report_channel:
                    raise ConfigurationError("Report channel is not configured; set REPORT_CHANNEL")
            except TicketSyncError as exc:
                logger.error("Skipping status report: %s", exc)
                return StatusReport(skipped=True, reason=str(exc))

            if not is_within_window(now, self._weekdays, self._timezone):
                logger.info("Skipping status report outside active weekdays")
                return StatusReport(skipped=True, reason="outside schedule window")

            return await StatusReporter(self._store, self._notifier, self._report_channel).run()
