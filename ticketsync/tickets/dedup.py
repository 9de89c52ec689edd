from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .models import TicketRecord, decode_reference
from .repository import TicketRowStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DedupResult:
    """Outcome of a duplicate removal scan."""

    scanned: int = 0
    removed: list[int] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.removed)


def find_duplicate_positions(entries: Iterable[tuple[int, str]]) -> list[int]:
    """Return positions whose decoded reference was already seen at a lower position.

    Blank references are never treated as duplicates of one another.
    """

    seen: set[str] = set()
    duplicates: list[int] = []
    for position, reference in sorted(entries, key=lambda entry: entry[0]):
        url = decode_reference(reference)
        if not url:
            continue
        if url in seen:
            duplicates.append(position)
        else:
            seen.add(url)
    return duplicates


class Deduplicator:
    """Remove every record whose reference repeats an earlier record's."""

    def __init__(self, store: TicketRowStore) -> None:
        self._store = store

    async def run(self, records: Iterable[TicketRecord] | None = None) -> DedupResult:
        if records is None:
            records = await self._store.read_rows()
        entries = [(record.position, record.link) for record in records]
        duplicates = find_duplicate_positions(entries)
        result = DedupResult(scanned=len(entries))

        # Highest position first so pending targets keep their positions.
        for position in sorted(duplicates, reverse=True):
            await self._store.delete_row(position)
            result.removed.append(position)

        if result.removed:
            logger.info("Removed %d duplicate ticket rows: %s", result.removed_count, result.removed)
        else:
            logger.debug("No duplicate ticket rows among %d scanned", result.scanned)
        return result
