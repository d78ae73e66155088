from __future__ import annotations
import copy
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from settings import get_settings

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

_OPERATORS = {
    "eq": lambda value, expected: value == expected,
    "ne": lambda value, expected: value != expected,
    "gte": lambda value, expected: value is not None and value >= expected,
    "lte": lambda value, expected: value is not None and value <= expected,
    "gt": lambda value, expected: value is not None and value > expected,
    "lt": lambda value, expected: value is not None and value < expected,
    "in": lambda value, expected: value in expected,
}


class StoreError(Exception):
    """Raised when the remote store rejects or cannot serve a request."""


class RecordNotFound(StoreError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Record not found."


def _split_filter(key: str) -> tuple[str, str]:
    column, _, operator = key.partition("__")
    operator = operator or "eq"
    if operator not in _OPERATORS:
        raise StoreError(f"Unsupported filter operator {operator!r} on {column!r}.")
    return column, operator


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    for key, expected in filters.items():
        column, operator = _split_filter(key)
        try:
            if not _OPERATORS[operator](row.get(column), expected):
                return False
        except TypeError:
            return False
    return True


class MockRelationalStore:
    """In-process stand-in for the hosted relational backend.

    Rows are plain JSON-compatible dictionaries keyed by ``id``. Filters are
    ``{"column": value}`` equalities or ``{"column__gte": value}`` style
    comparisons.
    """

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._tables: Dict[str, Dict[str, Row]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Row]:
        criteria = dict(filters or {})
        with self._lock:
            rows = [
                copy.deepcopy(row)
                for row in self._tables.get(table, {}).values()
                if _matches(row, criteria)
            ]
        if order_by:
            present = [row for row in rows if row.get(order_by) is not None]
            missing = [row for row in rows if row.get(order_by) is None]
            try:
                present.sort(key=lambda row: row[order_by], reverse=descending)
            except TypeError as exc:
                raise StoreError(f"Cannot order {table!r} by {order_by!r}.") from exc
            rows = present + missing
        return rows

    def get(self, table: str, record_id: str) -> Row:
        with self._lock:
            row = self._tables.get(table, {}).get(record_id)
            if row is None:
                raise RecordNotFound(f"Record {record_id!r} not found in {table!r}.")
            return copy.deepcopy(row)

    def insert(self, table: str, record: Mapping[str, Any]) -> Row:
        if not isinstance(record, Mapping):
            raise StoreError(f"Cannot insert a {type(record).__name__} into {table!r}.")
        row = dict(record)
        row.setdefault("id", str(uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        row_id = str(row["id"])
        with self._lock:
            rows = self._tables.setdefault(table, {})
            if row_id in rows:
                raise StoreError(f"Duplicate id {row_id!r} in {table!r}.")
            rows[row_id] = copy.deepcopy(row)
            self._persist()
        logger.debug("Row inserted", extra={"table": table, "record_id": row_id})
        return row

    def update(self, table: str, record_id: str, patch: Mapping[str, Any]) -> Row:
        with self._lock:
            row = self._tables.get(table, {}).get(record_id)
            if row is None:
                raise RecordNotFound(f"Record {record_id!r} not found in {table!r}.")
            updated = {**row, **copy.deepcopy(dict(patch)), "id": row["id"]}
            self._tables[table][record_id] = updated
            self._persist()
            return copy.deepcopy(updated)

    def delete(self, table: str, record_id: str) -> None:
        with self._lock:
            rows = self._tables.get(table, {})
            if record_id not in rows:
                raise RecordNotFound(f"Record {record_id!r} not found in {table!r}.")
            del rows[record_id]
            self._persist()

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._tables, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable store file %s", self.persistence_path)
            data = {}

        for table, rows in data.items():
            self._tables[table] = {str(row_id): row for row_id, row in rows.items()}


class TenantStore:
    """View of the store restricted to one restaurant."""

    def __init__(self, store: MockRelationalStore, restaurant_id: str) -> None:
        self.store = store
        self.restaurant_id = restaurant_id

    def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Row]:
        scoped = {**dict(filters or {}), "restaurant_id": self.restaurant_id}
        return self.store.select(table, scoped, order_by=order_by, descending=descending)

    def get(self, table: str, record_id: str) -> Row:
        row = self.store.get(table, record_id)
        if row.get("restaurant_id") != self.restaurant_id:
            raise RecordNotFound(f"Record {record_id!r} not found in {table!r}.")
        return row

    def insert(self, table: str, record: Mapping[str, Any]) -> Row:
        return self.store.insert(table, {**dict(record), "restaurant_id": self.restaurant_id})

    def update(self, table: str, record_id: str, patch: Mapping[str, Any]) -> Row:
        self.get(table, record_id)
        allowed = {key: value for key, value in patch.items() if key != "restaurant_id"}
        return self.store.update(table, record_id, allowed)

    def delete(self, table: str, record_id: str) -> None:
        self.get(table, record_id)
        self.store.delete(table, record_id)


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockRelationalStore:
    settings = get_settings()
    store_name = settings.store_name if name is None else name
    store_path = settings.store_persistence_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return MockRelationalStore(name=store_name, persistence_path=persistence)
