from __future__ import annotations

from typing import Callable

import pytest

from ticketsync.core.config import TicketSyncConfig
from ticketsync.services.slack import FetchResult
from ticketsync.tickets.models import ColumnRole
from ticketsync.tickets.permalink import Permalink
from ticketsync.tickets.repository import InMemoryRowStore

HEADER = ["Link", "Message", "Location", "Category", "Status", "Ticket ID", "Closed by", "Closed at"]


def permalink(channel: str = "C0123456789", digits: str = "1700000000123456") -> str:
    return f"https://example.slack.com/archives/{channel}/p{digits}"


class StubFetcher:
    def __init__(self, texts: dict[str, str] | None = None, *, fail: set[str] | None = None) -> None:
        self.texts = texts or {}
        self.fail = fail or set()
        self.calls: list[Permalink] = []

    async def fetch_message(self, link: Permalink) -> FetchResult:
        self.calls.append(link)
        if link.message_timestamp in self.fail:
            raise RuntimeError("fetch exploded")
        text = self.texts.get(link.message_timestamp)
        if text is None:
            return FetchResult(error="message_not_found")
        return FetchResult(text=text)


@pytest.fixture
def make_permalink() -> Callable[..., str]:
    return permalink


@pytest.fixture
def stub_fetcher_cls() -> type[StubFetcher]:
    return StubFetcher


@pytest.fixture
def config() -> TicketSyncConfig:
    return TicketSyncConfig(
        channel_locations={"C0123456789": "Toronto", "C0987654321": "Vancouver"},
        location_hints={"toronto": "#d9ead3"},
    )


@pytest.fixture
def make_store(config: TicketSyncConfig) -> Callable[..., InMemoryRowStore]:
    def _make(*rows: dict[ColumnRole, str]) -> InMemoryRowStore:
        store = InMemoryRowStore.from_config(config, header=[HEADER])
        for row in rows:
            store.append_row(row)
        return store

    return _make
