from __future__ import annotations

import re
from typing import Any, Mapping, Protocol, Sequence

import asyncpg

from ticketsync.core.config import TicketSyncConfig

from .models import ColumnRole, TicketRecord


class TicketRowStore(Protocol):
    """Tabular store holding one ticket per data row.

    Writes are compare-and-set: they report ``False`` without writing when the
    cell no longer holds the value the caller read.
    """

    async def is_available(self) -> bool:
        ...

    async def read_rows(self) -> list[TicketRecord]:
        ...

    async def fill_blank(self, position: int, role: ColumnRole, value: str) -> bool:
        ...

    async def replace_value(self, position: int, role: ColumnRole, expected: str, value: str) -> bool:
        ...

    async def set_row_hint(self, position: int, hint: str | None) -> None:
        ...

    async def delete_row(self, position: int) -> None:
        ...


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class InMemoryRowStore:
    """Spreadsheet-like grid addressed by 1-based column indices.

    Row positions are handed out on append and never reused, so deleting a row
    does not move the rows below it. Header rows only offset the first data
    position.
    """

    def __init__(
        self,
        columns: Mapping[ColumnRole, int],
        *,
        header: Sequence[Sequence[Any]] = (),
        rows: Sequence[Sequence[Any]] = (),
    ) -> None:
        self._columns = dict(columns)
        self._width = max(self._columns.values(), default=0)
        self._rows: dict[int, list[str]] = {}
        self._hints: dict[int, str | None] = {}
        self._next_position = len(header) + 1
        for row in rows:
            self.append_row(row)

    @classmethod
    def from_config(
        cls,
        config: TicketSyncConfig,
        *,
        header: Sequence[Sequence[Any]] = (),
        rows: Sequence[Sequence[Any]] = (),
    ) -> InMemoryRowStore:
        return cls(config.columns, header=header, rows=rows)

    def _pad(self, values: Sequence[Any]) -> list[str]:
        cells = [_cell_text(value) for value in values]
        if len(cells) < self._width:
            cells.extend([""] * (self._width - len(cells)))
        return cells

    def _index(self, role: ColumnRole) -> int:
        try:
            return self._columns[role] - 1
        except KeyError as exc:
            raise KeyError(f"Column role {role.value!r} is not mapped") from exc

    def _row(self, position: int) -> list[str]:
        try:
            return self._rows[position]
        except KeyError as exc:
            raise KeyError(f"No data row at position {position}") from exc

    def append_row(self, values: Sequence[Any] | Mapping[ColumnRole, Any]) -> int:
        if isinstance(values, Mapping):
            cells = [""] * self._width
            for role, value in values.items():
                cells[self._index(role)] = _cell_text(value)
        else:
            cells = self._pad(values)
        position = self._next_position
        self._next_position += 1
        self._rows[position] = cells
        return position

    def cell(self, position: int, role: ColumnRole) -> str:
        return self._row(position)[self._index(role)]

    def hint(self, position: int) -> str | None:
        return self._hints.get(position)

    @property
    def positions(self) -> list[int]:
        return list(self._rows)

    async def is_available(self) -> bool:
        return True

    async def read_rows(self) -> list[TicketRecord]:
        records: list[TicketRecord] = []
        for position, cells in self._rows.items():
            values = {role: cells[index - 1] for role, index in self._columns.items()}
            records.append(
                TicketRecord(
                    position=position,
                    reference=values.get(ColumnRole.REFERENCE, ""),
                    text=values.get(ColumnRole.TEXT, ""),
                    location=values.get(ColumnRole.LOCATION, ""),
                    category=values.get(ColumnRole.CATEGORY, ""),
                    status=values.get(ColumnRole.STATUS, ""),
                    ticket_id=values.get(ColumnRole.TICKET_ID, ""),
                    hint=self._hints.get(position),
                )
            )
        return records

    async def fill_blank(self, position: int, role: ColumnRole, value: str) -> bool:
        cells = self._row(position)
        index = self._index(role)
        if cells[index].strip():
            return False
        cells[index] = value
        return True

    async def replace_value(self, position: int, role: ColumnRole, expected: str, value: str) -> bool:
        cells = self._row(position)
        index = self._index(role)
        if cells[index] != expected:
            return False
        cells[index] = value
        return True

    async def set_row_hint(self, position: int, hint: str | None) -> None:
        self._row(position)
        self._hints[position] = hint

    async def delete_row(self, position: int) -> None:
        self._row(position)
        del self._rows[position]
        self._hints.pop(position, None)


_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PostgresRowStore:
    """Ticket rows kept in a PostgreSQL table, keyed by a never-reused serial position.

    The table is provisioned outside the service: a ``position BIGSERIAL`` key,
    one ``TEXT NOT NULL DEFAULT ''`` column per column role and a nullable
    ``hint`` column.
    """

    def __init__(self, pool: asyncpg.Pool, *, table: str = "tickets") -> None:
        if not _IDENTIFIER_RE.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self._pool = pool
        self._table = table

    async def is_available(self) -> bool:
        async with self._pool.acquire() as connection:
            found = await connection.fetchval("SELECT to_regclass($1) IS NOT NULL", self._table)
        return bool(found)

    async def read_rows(self) -> list[TicketRecord]:
        sql = (
            "SELECT position, reference, text, location, category, status, ticket_id, hint "
            f"FROM {self._table} ORDER BY position ASC"
        )
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(sql)
        return [self._row_to_record(row) for row in rows]

    async def fill_blank(self, position: int, role: ColumnRole, value: str) -> bool:
        column = role.value
        sql = (
            f"UPDATE {self._table} SET {column} = $2 "
            f"WHERE position = $1 AND btrim(coalesce({column}, '')) = ''"
        )
        async with self._pool.acquire() as connection:
            result = await connection.execute(sql, position, value)
        return _affected(result)

    async def replace_value(self, position: int, role: ColumnRole, expected: str, value: str) -> bool:
        column = role.value
        sql = f"UPDATE {self._table} SET {column} = $3 WHERE position = $1 AND {column} = $2"
        async with self._pool.acquire() as connection:
            result = await connection.execute(sql, position, expected, value)
        return _affected(result)

    async def set_row_hint(self, position: int, hint: str | None) -> None:
        async with self._pool.acquire() as connection:
            await connection.execute(f"UPDATE {self._table} SET hint = $2 WHERE position = $1", position, hint)

    async def delete_row(self, position: int) -> None:
        async with self._pool.acquire() as connection:
            await connection.execute(f"DELETE FROM {self._table} WHERE position = $1", position)

    @staticmethod
    def _row_to_record(row: Any) -> TicketRecord:
        hint = row["hint"]
        return TicketRecord(
            position=int(row["position"]),
            reference=_cell_text(row["reference"]),
            text=_cell_text(row["text"]),
            location=_cell_text(row["location"]),
            category=_cell_text(row["category"]),
            status=_cell_text(row["status"]),
            ticket_id=_cell_text(row["ticket_id"]),
            hint=None if hint is None else str(hint),
        )


def _affected(result: Any) -> bool:
    if isinstance(result, str):
        return result.strip().endswith(" 1")
    return bool(result)
