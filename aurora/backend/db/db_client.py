import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple

import asyncpg

from ..core.exceptions import StoreError

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Row = Dict[str, Any]


def _ident(name: str) -> str:
    """Quotes a table or column name. Only plain identifiers are accepted."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


def _where(filters: Optional[Mapping[str, Any]], start: int = 1) -> Tuple[str, List[Any]]:
    """
    Builds a WHERE clause from equality filters. A list/tuple value matches any
    of its items, None matches NULL.
    """
    if not filters:
        return "", []
    clauses, args = [], []
    for column, value in filters.items():
        if value is None:
            clauses.append(f"{_ident(column)} IS NULL")
        elif isinstance(value, (list, tuple, set)):
            args.append(list(value))
            clauses.append(f"{_ident(column)} = ANY(${start + len(args) - 1})")
        else:
            args.append(value)
            clauses.append(f"{_ident(column)} = ${start + len(args) - 1}")
    return " WHERE " + " AND ".join(clauses), args


def _values(rows: Sequence[Mapping[str, Any]]) -> Tuple[List[str], str, List[Any]]:
    columns = list(rows[0].keys())
    placeholders, args = [], []
    for row in rows:
        if set(row.keys()) != set(columns):
            raise ValueError("All rows of a multi-row insert must have the same columns.")
        slots = []
        for column in columns:
            args.append(row[column])
            slots.append(f"${len(args)}")
        placeholders.append(f"({', '.join(slots)})")
    return columns, ", ".join(placeholders), args


class AsyncPostgresClient:
    """
    Table-oriented data store client over an asyncpg pool.

    Every method takes a table name plus plain dicts and returns the affected
    rows as dicts. Any driver or connection failure is raised as `StoreError`;
    retrying is left to the caller. Statements that must land together run
    inside `transaction()`.
    """
    def __init__(self, pool: asyncpg.Pool, connection: Optional[asyncpg.Connection] = None):
        self._pool = pool
        self._connection = connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["AsyncPostgresClient"]:
        """
        Yields a client bound to one connection inside a database transaction.
        Everything run through it is committed together, or rolled back when
        the block raises. Nested calls join the outer transaction.
        """
        if self._connection is not None:
            yield self
            return
        try:
            async with self._pool.acquire() as connection:
                async with connection.transaction():
                    yield AsyncPostgresClient(self._pool, connection=connection)
        except asyncpg.PostgresError as e:
            logger.error(f"Store transaction failed ({e.sqlstate}): {e}")
            raise StoreError(str(e), sqlstate=e.sqlstate) from e
        except (asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Store connection error: {e}", exc_info=True)
            raise StoreError(f"Could not reach the database: {e}") from e

    async def _fetch(self, query: str, *args) -> List[Row]:
        try:
            if self._connection is not None:
                records = await self._connection.fetch(query, *args)
            else:
                async with self._pool.acquire() as connection:
                    records = await connection.fetch(query, *args)
            return [dict(record) for record in records]
        except asyncpg.PostgresError as e:
            logger.error(f"Store query failed ({e.sqlstate}): {e}")
            raise StoreError(str(e), sqlstate=e.sqlstate) from e
        except (asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Store connection error: {e}", exc_info=True)
            raise StoreError(f"Could not reach the database: {e}") from e

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Row]:
        """Returns the rows of `table` matching every filter."""
        where, args = _where(filters)
        query = f"SELECT * FROM {_ident(table)}{where}"
        if order_by:
            query += " ORDER BY " + ", ".join(_ident(column) for column in order_by)
        if limit is not None:
            args.append(limit)
            query += f" LIMIT ${len(args)}"
        return await self._fetch(query + ";", *args)

    async def select_one(self, table: str, filters: Mapping[str, Any]) -> Optional[Row]:
        rows = await self.select(table, filters, limit=1)
        return rows[0] if rows else None

    async def count(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        where, args = _where(filters)
        rows = await self._fetch(f"SELECT COUNT(*) AS count FROM {_ident(table)}{where};", *args)
        return rows[0]["count"]

    async def insert(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        on_conflict_do_nothing: Optional[Sequence[str]] = None,
    ) -> List[Row]:
        """
        Inserts rows and returns the inserted ones. With `on_conflict_do_nothing`,
        rows colliding on those columns are skipped and missing from the result.
        """
        if not rows:
            return []
        columns, values, args = _values(rows)
        query = f"INSERT INTO {_ident(table)} ({', '.join(_ident(c) for c in columns)}) VALUES {values}"
        if on_conflict_do_nothing:
            query += f" ON CONFLICT ({', '.join(_ident(c) for c in on_conflict_do_nothing)}) DO NOTHING"
        return await self._fetch(query + " RETURNING *;", *args)

    async def upsert(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> List[Row]:
        """
        Single-statement insert-or-update keyed by `conflict_columns`. Existing
        rows keep their identity and only `update_columns` are overwritten.
        """
        if not rows:
            return []
        columns, values, args = _values(rows)
        assignments = ", ".join(f"{_ident(c)} = EXCLUDED.{_ident(c)}" for c in update_columns)
        query = (
            f"INSERT INTO {_ident(table)} ({', '.join(_ident(c) for c in columns)}) VALUES {values}"
            f" ON CONFLICT ({', '.join(_ident(c) for c in conflict_columns)}) DO UPDATE SET {assignments}"
            " RETURNING *;"
        )
        return await self._fetch(query, *args)

    async def update(self, table: str, patch: Mapping[str, Any], filters: Mapping[str, Any]) -> List[Row]:
        """Applies `patch` to every row matching `filters` and returns the updated rows."""
        if not patch:
            raise ValueError("update() needs at least one column to set.")
        if not filters:
            raise ValueError("update() without filters would touch every row.")
        args = list(patch.values())
        assignments = ", ".join(f"{_ident(column)} = ${i}" for i, column in enumerate(patch.keys(), start=1))
        where, where_args = _where(filters, start=len(args) + 1)
        return await self._fetch(f"UPDATE {_ident(table)} SET {assignments}{where} RETURNING *;", *args, *where_args)

    async def delete(self, table: str, filters: Mapping[str, Any]) -> List[Row]:
        """Deletes every row matching `filters` and returns the deleted rows."""
        if not filters:
            raise ValueError("delete() without filters would remove every row.")
        where, args = _where(filters)
        return await self._fetch(f"DELETE FROM {_ident(table)}{where} RETURNING *;", *args)


async def apply_schema(pool: asyncpg.Pool):
    """Creates the application tables if they do not exist yet."""
    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")
    async with pool.acquire() as connection:
        await connection.execute(schema_sql)
    logger.info("Database schema is up to date.")
