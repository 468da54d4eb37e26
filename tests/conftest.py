import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest

from teleprompter.errors import DataStoreError

# Upsert identity per logical table; tables not listed always insert
UNIQUE_KEYS = {
    "spiel_alts": ("script_name", "spiel_id", "alt_order"),
    "objection_alts": ("script_name", "objection_id", "alt_order"),
    "app_settings": ("setting_key",),
    "script": ("step_name",),
    "list_id_config": ("list_id", "step_name"),
}

BASE_TIME = datetime(2024, 1, 1, 9, 0, 0)


class FakeDataStore:
    """In-memory stand-in for the remote CRUD endpoint"""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.failures = set()
        self.gate: Optional[asyncio.Event] = None
        # Creates before this many have completed skip the gate
        self.gate_after = 0
        self._created = 0
        self._next_id = 0

    # ---- test helpers ----

    def fail(self, verb: str, table: Optional[str] = None):
        self.failures.add((verb, table))

    def heal(self):
        self.failures.clear()

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def writes(self) -> List[tuple]:
        return [c for c in self.calls if c[0] != "get"]

    def _check(self, verb: str, table: str):
        self.calls.append((verb, table))
        if (verb, table) in self.failures or (verb, None) in self.failures:
            raise DataStoreError(f"{verb} {table} failed", table=table, status_code=500)

    def _new_row(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self._next_id += 1
        row = dict(record)
        row["id"] = self._next_id
        row.setdefault("created_at", (BASE_TIME + timedelta(seconds=self._next_id)).strftime("%Y-%m-%d %H:%M:%S"))
        return row

    # ---- DataStore ----

    async def get(self, table, where=None, order_by=None, order="ASC", limit=None):
        self._check("get", table)
        rows = [
            dict(r) for r in self.rows(table)
            if all(str(r.get(k)) == str(v) for k, v in (where or {}).items())
        ]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or 0, reverse=order.upper() == "DESC")
        if limit:
            rows = rows[:limit]
        return rows

    async def create(self, table, record):
        self._check("create", table)
        if self.gate is not None and self._created >= self.gate_after:
            await self.gate.wait()
        row = self._new_row(record)
        self.rows(table).append(row)
        self._created += 1
        return row["id"]

    async def update(self, table, record_id, partial):
        self._check("update", table)
        for row in self.rows(table):
            if str(row["id"]) == str(record_id):
                row.update(partial)
                return
        raise DataStoreError(f"No {table} record {record_id}", table=table, status_code=404)

    async def upsert(self, table, record):
        self._check("upsert", table)
        key = UNIQUE_KEYS.get(table)
        if key:
            for row in self.rows(table):
                if all(str(row.get(k)) == str(record.get(k)) for k in key):
                    row.update(record)
                    return row["id"]
        row = self._new_row(record)
        self.rows(table).append(row)
        return row["id"]


@pytest.fixture
def store():
    return FakeDataStore()
