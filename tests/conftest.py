# tests/conftest.py
import asyncio
import copy
import itertools
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

from aurora.backend.config.config import Config
from aurora.backend.core.exceptions import StoreError
from aurora.backend.db import tables

# This is the crucial fix for Windows asyncio issues with pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


TEST_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"

# Unique keys enforced by schema.sql, mirrored by the in-memory store.
UNIQUE_KEYS = {
    tables.USERS: [("username",)],
    tables.STAFFS: [("staff_id",)],
    tables.STUDENTS: [("admission_number",)],
    tables.STAFF_ATTENDANCE_DAYS: [("date",)],
    tables.STAFF_ATTENDANCE_STATUSES: [("date", "staff_id")],
    tables.STUDENT_ATTENDANCES: [("admission_number", "date")],
}


def _matches(row: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            if row.get(column) not in value:
                return False
        elif row.get(column) != value:
            return False
    return True


class InMemoryStore:
    """
    Dict-backed stand-in for AsyncPostgresClient with the same method
    signatures and the unique constraints from schema.sql.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self._ids = itertools.count(1)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def _conflict(self, table: str, row: Mapping[str, Any], columns: Sequence[str]) -> Optional[Dict[str, Any]]:
        for existing in self.rows(table):
            if all(existing.get(c) == row.get(c) for c in columns):
                return existing
        return None

    def _violated_key(self, table: str, row: Mapping[str, Any]) -> Optional[Sequence[str]]:
        for key in UNIQUE_KEYS.get(table, []):
            if self._conflict(table, row, key) is not None:
                return key
        return None

    @asynccontextmanager
    async def transaction(self):
        """Restores every table to its state at entry when the block raises."""
        snapshot = copy.deepcopy(self.tables)
        try:
            yield self
        except BaseException:
            self.tables = snapshot
            raise

    async def select(self, table, filters=None, order_by=None, limit=None):
        found = [dict(row) for row in self.rows(table) if _matches(row, filters)]
        if order_by:
            found.sort(key=lambda row: tuple(row.get(c) for c in order_by))
        return found[:limit] if limit is not None else found

    async def select_one(self, table, filters):
        found = await self.select(table, filters, limit=1)
        return found[0] if found else None

    async def count(self, table, filters=None):
        return len(await self.select(table, filters))

    async def insert(self, table, rows, on_conflict_do_nothing=None):
        inserted = []
        for row in rows:
            if on_conflict_do_nothing and self._conflict(table, row, on_conflict_do_nothing) is not None:
                continue
            if self._violated_key(table, row) is not None:
                raise StoreError("duplicate key value violates unique constraint", sqlstate="23505")
            stored = {"id": next(self._ids), **row}
            self.rows(table).append(stored)
            inserted.append(dict(stored))
        return inserted

    async def upsert(self, table, rows, conflict_columns, update_columns):
        result = []
        for row in rows:
            existing = self._conflict(table, row, conflict_columns)
            if existing is None:
                result.extend(await self.insert(table, [row]))
            else:
                existing.update({c: row[c] for c in update_columns})
                result.append(dict(existing))
        return result

    async def update(self, table, patch, filters):
        updated = []
        for row in self.rows(table):
            if _matches(row, filters):
                row.update(patch)
                updated.append(dict(row))
        return updated

    async def delete(self, table, filters):
        kept, deleted = [], []
        for row in self.rows(table):
            (deleted if _matches(row, filters) else kept).append(row)
        self.tables[table] = kept
        return [dict(row) for row in deleted]


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def test_settings() -> Config:
    return Config({
        "SECRET_KEY": TEST_SECRET_KEY,
        "ALGORITHM": "HS256",
        "SESSION_TTL_SECONDS": "600",
        "ALLOWED_ORIGINS": "http://localhost:5173",
    })
