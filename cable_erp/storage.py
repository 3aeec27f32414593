"""
Durable key-value area for entity collections.

Every entity type lives as one JSON blob under a named key in the sqlite
``kv_store`` table. Date and datetime values are written as ISO-8601 strings
and parsed back on load for the fields each caller names.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import date, datetime
from typing import Any, Iterable, Optional

from cable_erp.db import q, x
from cable_erp.utils import iso_now

logger = logging.getLogger(__name__)


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat(timespec="milliseconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(payload: Any) -> str:
    return json.dumps(payload, default=_encode_value, ensure_ascii=False)


def to_jsonable(payload: Any) -> Any:
    """Plain JSON types only (dates as ISO strings), for pushing to the remote endpoint."""
    return json.loads(dumps(payload))


def parse_temporal(value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value
    text = value.strip()
    try:
        if len(text) == 10 and "T" not in text:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Unparseable date value kept as text: %r", value)
        return value


def decode_dates(record: dict, date_fields: Iterable[str]) -> dict:
    """
    Parse the named fields in place. A dotted path ("daily_payouts.date")
    addresses a field inside every element of a nested list.
    """
    for path in date_fields:
        head, _, rest = path.partition(".")
        if head not in record:
            continue
        if not rest:
            record[head] = parse_temporal(record[head])
            continue
        children = record[head]
        if isinstance(children, dict):
            decode_dates(children, [rest])
        elif isinstance(children, list):
            for child in children:
                if isinstance(child, dict):
                    decode_dates(child, [rest])
    return record


class DurableStore:
    """
    Reads and writes JSON blobs by key. Missing keys load as empty, corrupt
    blobs are logged and load as empty, and write failures are logged and
    reported through the boolean result instead of raising.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def lock(self, key: str) -> threading.RLock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.RLock()
            return self._locks[key]

    # -------------------------
    # Raw blob access
    # -------------------------

    def read_raw(self, key: str) -> Any:
        with self.lock(key):
            try:
                rows = q(self.conn, "SELECT value FROM kv_store WHERE key=?", (key,))
            except sqlite3.Error as e:
                logger.error("Failed to read %s from storage: %s", key, e)
                return None
        if not rows:
            return None
        try:
            return json.loads(rows[0]["value"])
        except ValueError as e:
            logger.warning("Corrupt value under %s ignored: %s", key, e)
            return None

    def write_raw(self, key: str, payload: Any) -> bool:
        with self.lock(key):
            try:
                blob = dumps(payload)
                x(
                    self.conn,
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                    """,
                    (key, blob, iso_now()),
                )
            except (TypeError, ValueError, sqlite3.Error) as e:
                logger.error("Failed to save %s to storage: %s", key, e)
                return False
        return True

    # -------------------------
    # Collections
    # -------------------------

    def load(self, key: str, field: Optional[str] = None, date_fields: Iterable[str] = ()) -> list[dict]:
        raw = self.read_raw(key)
        if raw is None:
            return []

        if isinstance(raw, list):
            items = raw
        elif isinstance(raw, dict) and field and isinstance(raw.get(field), list):
            items = raw[field]
        elif isinstance(raw, dict) and field is None:
            # Wrapped blob read without a field name: accept a single array member.
            lists = [v for v in raw.values() if isinstance(v, list)]
            if len(lists) != 1:
                logger.warning("Unknown format under %s; loading empty collection", key)
                return []
            items = lists[0]
        else:
            logger.warning("Unknown format under %s; loading empty collection", key)
            return []

        date_fields = tuple(date_fields)
        return [decode_dates(dict(item), date_fields) for item in items if isinstance(item, dict)]

    def save(self, key: str, records: list[dict], field: Optional[str] = None) -> bool:
        payload: Any = {field: list(records)} if field else list(records)
        return self.write_raw(key, payload)

    # -------------------------
    # Documents (maps, lookup lists, status)
    # -------------------------

    def load_document(self, key: str, default: Optional[dict] = None, date_fields: Iterable[str] = ()) -> dict:
        raw = self.read_raw(key)
        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning("Expected an object under %s; using defaults", key)
            return dict(default or {})
        merged = dict(default or {})
        merged.update(raw)
        return decode_dates(merged, tuple(date_fields))

    def save_document(self, key: str, doc: dict) -> bool:
        return self.write_raw(key, dict(doc))

    # -------------------------
    # Housekeeping
    # -------------------------

    def keys(self) -> list[str]:
        return [str(r["key"]) for r in q(self.conn, "SELECT key FROM kv_store ORDER BY key")]

    def remove(self, key: str) -> None:
        with self.lock(key):
            x(self.conn, "DELETE FROM kv_store WHERE key=?", (key,))

    def clear(self, keep: Iterable[str] = ()) -> list[str]:
        keep = set(keep)
        removed = [k for k in self.keys() if k not in keep]
        for k in removed:
            self.remove(k)
        return removed
