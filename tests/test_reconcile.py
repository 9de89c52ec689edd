from datetime import datetime, timezone

import pytest

from ticketsync.services.slack import FetchResult
from ticketsync.tickets.models import ColumnRole
from ticketsync.tickets.reconcile import ReconciliationEngine


def _clock() -> datetime:
    return datetime(2025, 3, 4, 9, 0, tzinfo=timezone.utc)


def _engine(store, fetcher, config) -> ReconciliationEngine:
    return ReconciliationEngine(store, fetcher, config, clock=_clock)


@pytest.mark.asyncio
async def test_reconcile_fills_every_blank_field(make_store, make_permalink, stub_fetcher_cls, config):
    link = make_permalink()
    store = make_store({ColumnRole.REFERENCE: link, ColumnRole.STATUS: "Open"})
    fetcher = stub_fetcher_cls({"1700000000.123456": "need a new laptop please"})

    summary = await _engine(store, fetcher, config).run()

    assert store.cell(2, ColumnRole.TEXT) == "need a new laptop please"
    assert store.cell(2, ColumnRole.LOCATION) == "Toronto"
    assert store.cell(2, ColumnRole.CATEGORY) == "Hardware"
    assert store.cell(2, ColumnRole.REFERENCE) == f'=HYPERLINK("{link}", "View message")'
    assert store.cell(2, ColumnRole.TICKET_ID) == "TOR-25-2"
    assert store.cell(2, ColumnRole.STATUS) == "Open"
    assert store.hint(2) == "#d9ead3"
    assert summary.processed == 1
    assert summary.touched == 1
    assert summary.writes == 6


@pytest.mark.asyncio
async def test_reconcile_second_run_performs_no_writes(make_store, make_permalink, stub_fetcher_cls, config):
    store = make_store(
        {ColumnRole.REFERENCE: make_permalink(), ColumnRole.STATUS: "Open"},
        {ColumnRole.REFERENCE: make_permalink(digits="1700000000000002"), ColumnRole.STATUS: "Open"},
        {ColumnRole.REFERENCE: make_permalink(channel="C0000000000", digits="1700000000000003")},
    )
    fetcher = stub_fetcher_cls({"1700000000.123456": "monitor is dead", "1700000000.000003": "hello"})
    engine = _engine(store, fetcher, config)

    first = await engine.run()
    calls_after_first = len(fetcher.calls)
    second = await engine.run()

    assert first.writes > 0
    assert second.writes == 0
    assert second.touched == 0
    assert len(fetcher.calls) == calls_after_first


@pytest.mark.asyncio
async def test_reconcile_writes_failure_marker_once(make_store, make_permalink, stub_fetcher_cls, config):
    store = make_store({ColumnRole.REFERENCE: make_permalink(), ColumnRole.STATUS: "Open"})
    fetcher = stub_fetcher_cls({})
    engine = _engine(store, fetcher, config)

    await engine.run()
    await engine.run()

    assert store.cell(2, ColumnRole.TEXT) == config.fetch_failed_marker
    assert store.cell(2, ColumnRole.CATEGORY) == ""
    assert store.cell(2, ColumnRole.LOCATION) == "Toronto"
    assert store.cell(2, ColumnRole.TICKET_ID) == "TOR-25-2"
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_reconcile_never_overwrites_populated_fields(make_store, make_permalink, stub_fetcher_cls, config):
    store = make_store(
        {
            ColumnRole.REFERENCE: make_permalink(),
            ColumnRole.TEXT: "laptop broke",
            ColumnRole.LOCATION: "Vancouver",
            ColumnRole.CATEGORY: "Custom",
            ColumnRole.TICKET_ID: "VAN-24-99",
            ColumnRole.STATUS: "Closed",
        }
    )
    fetcher = stub_fetcher_cls({"1700000000.123456": "something else"})

    await _engine(store, fetcher, config).run()

    assert fetcher.calls == []
    assert store.cell(2, ColumnRole.TEXT) == "laptop broke"
    assert store.cell(2, ColumnRole.LOCATION) == "Vancouver"
    assert store.cell(2, ColumnRole.CATEGORY) == "Custom"
    assert store.cell(2, ColumnRole.TICKET_ID) == "VAN-24-99"
    assert store.cell(2, ColumnRole.STATUS) == "Closed"


@pytest.mark.asyncio
async def test_reconcile_skips_rows_without_reference(make_store, stub_fetcher_cls, config):
    store = make_store({ColumnRole.REFERENCE: "", ColumnRole.STATUS: "Open"})

    summary = await _engine(store, stub_fetcher_cls(), config).run()

    assert summary.skipped == 1
    assert summary.processed == 0
    assert summary.writes == 0
    assert store.cell(2, ColumnRole.REFERENCE) == ""


@pytest.mark.asyncio
async def test_reconcile_leaves_location_blank_for_unknown_channel(
    make_store, make_permalink, stub_fetcher_cls, config
):
    store = make_store({ColumnRole.REFERENCE: make_permalink(channel="C0000000000")})
    fetcher = stub_fetcher_cls({"1700000000.123456": "my licence expired"})

    await _engine(store, fetcher, config).run()

    assert store.cell(2, ColumnRole.LOCATION) == ""
    assert store.cell(2, ColumnRole.TICKET_ID) == ""
    assert store.cell(2, ColumnRole.CATEGORY) == "Licensing"
    assert store.hint(2) is None


@pytest.mark.asyncio
async def test_reconcile_does_not_fetch_unparseable_reference(make_store, stub_fetcher_cls, config):
    store = make_store({ColumnRole.REFERENCE: "not a link"})
    fetcher = stub_fetcher_cls()

    await _engine(store, fetcher, config).run()

    assert fetcher.calls == []
    assert store.cell(2, ColumnRole.TEXT) == ""
    assert store.cell(2, ColumnRole.REFERENCE) == '=HYPERLINK("not a link", "View message")'


@pytest.mark.asyncio
async def test_reconcile_isolates_row_failures(make_store, make_permalink, stub_fetcher_cls, config):
    digits = [f"170000000000000{index}" for index in range(5)]
    store = make_store(*({ColumnRole.REFERENCE: make_permalink(digits=value)} for value in digits))
    texts = {f"{value[:10]}.{value[10:]}": "laptop" for value in digits}
    # Row 5 holds the fourth permalink.
    fetcher = stub_fetcher_cls(texts, fail={"1700000000.000003"})

    summary = await _engine(store, fetcher, config).run()

    assert summary.failed == 1
    assert summary.processed == 5
    for position in (4, 6):
        assert store.cell(position, ColumnRole.TEXT) == "laptop"
        assert store.cell(position, ColumnRole.TICKET_ID) == f"TOR-25-{position}"
    assert store.cell(5, ColumnRole.TEXT) == ""


@pytest.mark.asyncio
async def test_reconcile_keeps_concurrent_edit(make_store, make_permalink, stub_fetcher_cls, config):
    store = make_store({ColumnRole.REFERENCE: make_permalink()})
    records = await store.read_rows()
    # Another writer fills the text after the pass read the rows.
    await store.fill_blank(2, ColumnRole.TEXT, "edited by hand: keyboard")
    fetcher = stub_fetcher_cls({"1700000000.123456": "fetched text"})

    await _engine(store, fetcher, config).run(records)

    assert store.cell(2, ColumnRole.TEXT) == "edited by hand: keyboard"


@pytest.mark.asyncio
async def test_reconcile_keeps_link_with_quoted_label(make_store, make_permalink, stub_fetcher_cls, config):
    reference = f'=HYPERLINK("{make_permalink()}", "say ""hi""")'
    store = make_store(
        {
            ColumnRole.REFERENCE: reference,
            ColumnRole.TEXT: "laptop",
            ColumnRole.LOCATION: "Toronto",
            ColumnRole.CATEGORY: "Hardware",
            ColumnRole.TICKET_ID: "TOR-25-2",
        }
    )
    await store.set_row_hint(2, "#d9ead3")

    summary = await _engine(store, stub_fetcher_cls(), config).run()

    assert store.cell(2, ColumnRole.REFERENCE) == reference
    assert summary.writes == 0


class EmptyTextFetcher:
    def __init__(self) -> None:
        self.calls = 0

    async def fetch_message(self, link):
        self.calls += 1
        return FetchResult(text="")


@pytest.mark.asyncio
async def test_reconcile_treats_empty_fetched_text_as_failure(make_store, make_permalink, config):
    store = make_store({ColumnRole.REFERENCE: make_permalink()})
    fetcher = EmptyTextFetcher()
    engine = _engine(store, fetcher, config)

    await engine.run()
    second = await engine.run()

    assert store.cell(2, ColumnRole.TEXT) == config.fetch_failed_marker
    assert second.writes == 0
    assert second.touched == 0
    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_reconcile_takes_ticket_year_from_configured_time_zone(
    make_store, make_permalink, stub_fetcher_cls, config
):
    store = make_store({ColumnRole.REFERENCE: make_permalink()})
    fetcher = stub_fetcher_cls({"1700000000.123456": "laptop"})
    # 03:00 UTC on New Year's Day is still the previous evening in Toronto.
    engine = ReconciliationEngine(
        store,
        fetcher,
        config,
        clock=lambda: datetime(2026, 1, 1, 3, tzinfo=timezone.utc),
        timezone_name="America/Toronto",
    )

    await engine.run()

    assert store.cell(2, ColumnRole.TICKET_ID) == "TOR-25-2"
