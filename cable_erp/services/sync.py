from __future__ import annotations

import logging
import socket
import threading
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlparse

import requests

from cable_erp.config import Settings
from cable_erp.events import sync_status_changed
from cable_erp.storage import DurableStore, to_jsonable
from cable_erp.utils import now

logger = logging.getLogger(__name__)

STATUS_KEY = "sync-status"


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    FAILED = "failed"


def _fail(message: str) -> dict:
    return {"success": False, "error": message}


class SyncService:
    """
    Tracks unsynced local changes per entity type and pushes them to a
    Supabase-compatible REST endpoint on demand.

    Push is all-or-nothing per invocation: counters are cleared only when every
    pending collection was accepted. Failures come back as
    ``{"success": False, "error": ...}`` and never raise.
    """

    def __init__(
        self,
        durable: DurableStore,
        settings: Settings,
        *,
        session: Optional[requests.Session] = None,
        online_probe: Optional[Callable[[], bool]] = None,
    ):
        self.durable = durable
        self.settings = settings
        self.session = session or requests.Session()
        self._probe = online_probe or self._default_probe
        self._sources: dict[str, tuple[str, Callable[[], list[dict]]]] = {}
        self._lock = threading.Lock()

        status = self.durable.load_document(STATUS_KEY, {}, date_fields=("last_sync_time",))
        self.pending: dict[str, int] = {
            str(k): int(v) for k, v in (status.get("pending_changes") or {}).items()
        }
        last = status.get("last_sync_time")
        self.last_sync_time = last if hasattr(last, "isoformat") else None
        self.error: Optional[str] = status.get("error")
        self.is_online: bool = bool(status.get("is_online", True))
        # A push interrupted by a restart is not resumed.
        self.state = SyncState.FAILED if self.error else SyncState.IDLE

    # -------------------------
    # Registration / pending counters
    # -------------------------

    def register(self, name: str, table: str, source: Callable[[], list[dict]]) -> None:
        self._sources[name] = (table, source)

    def register_store(self, store) -> None:
        if store.spec.sync_table:
            self.register(store.name, store.spec.sync_table, store.snapshot)

    @property
    def tables(self) -> list[str]:
        return [table for table, _ in self._sources.values()]

    def mark_pending(self, name: str) -> None:
        self.pending[name] = self.pending.get(name, 0) + 1
        self._save()

    def reset(self) -> None:
        self.pending = {k: 0 for k in self.pending}
        self.last_sync_time = None
        self.error = None
        self.state = SyncState.IDLE
        self._save()

    def _save(self) -> None:
        ok = self.durable.save_document(
            STATUS_KEY,
            {
                "pending_changes": dict(self.pending),
                "last_sync_time": self.last_sync_time,
                "is_online": self.is_online,
                "error": self.error,
            },
        )
        if not ok:
            logger.error("Sync status could not be saved")
        sync_status_changed.send(self, state=self.state.value)

    def _failed(self, message: str) -> dict:
        self.state = SyncState.FAILED
        self.error = message
        self._save()
        return _fail(message)

    # -------------------------
    # Connectivity
    # -------------------------

    def _default_probe(self) -> bool:
        parsed = urlparse(self.settings.sync_url) if self.settings.sync_url else None
        if parsed and parsed.hostname:
            target = (parsed.hostname, parsed.port or (443 if parsed.scheme == "https" else 80))
        else:
            target = ("1.1.1.1", 53)
        try:
            with socket.create_connection(target, timeout=2):
                return True
        except OSError:
            return False

    def set_online(self, flag: bool) -> None:
        flag = bool(flag)
        if flag != self.is_online:
            logger.info("Connectivity changed: %s", "online" if flag else "offline")
            self.is_online = flag
            self._save()

    def refresh_online(self) -> bool:
        self.set_online(self._probe())
        return self.is_online

    def get_sync_status(self) -> dict:
        return {
            "is_online": self.refresh_online(),
            "pending_changes": dict(self.pending),
            "last_sync_time": self.last_sync_time,
            "state": self.state.value,
            "is_syncing": self.state is SyncState.SYNCING,
            "error": self.error,
        }

    # -------------------------
    # Remote calls
    # -------------------------

    def _headers(self) -> dict:
        key = self.settings.sync_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates,return=minimal",
        }

    def _table_url(self, table: str) -> str:
        return f"{self.settings.sync_url.rstrip('/')}/rest/v1/{table}"

    def _push(self, table: str, records: list[dict]) -> None:
        if not records:
            logger.debug("Skipping %s - no data", table)
            return
        logger.debug("Pushing %s (%d items)", table, len(records))
        response = self.session.post(
            self._table_url(table),
            params={"on_conflict": "id"},
            json=to_jsonable(records),
            headers=self._headers(),
            timeout=self.settings.sync_timeout,
        )
        response.raise_for_status()

    def sync_to_cloud(self) -> dict:
        if not self.refresh_online():
            return _fail("No internet connection")
        if not self.settings.sync_configured:
            return _fail(
                "Cloud sync is not configured. Set CABLE_ERP_SYNC_URL and CABLE_ERP_SYNC_KEY "
                "or save them on the Sync page."
            )
        if not self._lock.acquire(blocking=False):
            return _fail("Sync already in progress")

        try:
            logger.info("Starting sync to cloud")
            self.state = SyncState.SYNCING
            self.error = None
            self._save()

            pushed: list[str] = []
            try:
                for name, count in list(self.pending.items()):
                    if count <= 0 or name not in self._sources:
                        continue
                    table, source = self._sources[name]
                    self._push(table, source())
                    pushed.append(table)
            except requests.RequestException as e:
                logger.error("Sync failed: %s", e)
                return self._failed(str(e) or "Sync failed")
            except Exception as e:
                logger.exception("Sync failed: %s", e)
                return self._failed(str(e) or type(e).__name__)

            self.pending = {k: 0 for k in self.pending}
            self.last_sync_time = now()
            self.state = SyncState.SYNCED
            self._save()
            logger.info("Sync finished: %s", ", ".join(pushed) or "nothing pending")
            return {"success": True, "synced": pushed}
        finally:
            self._lock.release()

    def pull_from_cloud(self) -> dict:
        if not self.refresh_online():
            return _fail("No internet connection")
        if not self.settings.sync_configured:
            return _fail("Cloud sync is not configured")

        data: dict[str, list] = {}
        try:
            for table in self.tables:
                response = self.session.get(
                    self._table_url(table),
                    params={"select": "*", "order": "created_at.desc"},
                    headers=self._headers(),
                    timeout=self.settings.sync_timeout,
                )
                response.raise_for_status()
                data[table] = response.json() or []
        except (requests.RequestException, ValueError) as e:
            logger.error("Pull failed: %s", e)
            return _fail(str(e) or "Pull failed")
        return {"success": True, "data": data}

    def check_connection(self) -> bool:
        if not self.settings.sync_configured or not self.tables:
            return False
        try:
            response = self.session.get(
                self._table_url(self.tables[0]),
                params={"select": "id", "limit": 1},
                headers=self._headers(),
                timeout=self.settings.sync_timeout,
            )
        except requests.RequestException:
            return False
        return response.status_code < 400
