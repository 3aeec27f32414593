from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "CABLE_ERP_DATA_DIR"
ENV_SYNC_URL = "CABLE_ERP_SYNC_URL"
ENV_SYNC_KEY = "CABLE_ERP_SYNC_KEY"
ENV_SYNC_TIMEOUT = "CABLE_ERP_SYNC_TIMEOUT"
SESSION_DATA_DIR = "cable_erp_data_dir"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "PKR"
    sync_url: str = ""
    sync_key: str = ""
    sync_timeout: float = 15.0

    @property
    def sync_configured(self) -> bool:
        return bool(self.sync_url.strip()) and bool(self.sync_key.strip())


def _default_data_dir() -> Path:
    return Path.home() / ".cable_erp"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            payload = json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return payload if isinstance(payload, dict) else {}
    return {}


def _write_persisted_settings(data_dir: Path, updates: dict) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    payload = _load_persisted_settings(data_dir)
    payload.update(updates)
    (data_dir / CONFIG_FILE_NAME).write_text(json.dumps(payload, indent=2), encoding="utf-8")


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    _write_persisted_settings(data_dir, {"data_dir": str(data_dir)})
    # The default folder points at the chosen one so restarts pick it up.
    default_dir = _default_data_dir()
    if default_dir.resolve() != data_dir:
        _write_persisted_settings(default_dir, {"data_dir": str(data_dir)})

    st.session_state[SESSION_DATA_DIR] = str(data_dir)


def persist_sync_config(data_dir: Path, sync_url: str, sync_key: str) -> None:
    _write_persisted_settings(Path(data_dir), {"sync_url": sync_url.strip(), "sync_key": sync_key.strip()})


def _float_or(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def load_settings(session_data_dir: Optional[str] = None, environ: Optional[dict] = None) -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    env = os.environ if environ is None else environ
    if session_data_dir:
        data_dir = Path(session_data_dir).expanduser().resolve()
    elif env.get(ENV_DATA_DIR):
        data_dir = Path(env.get(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    persisted = _load_persisted_settings(data_dir)

    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "app.db",
        sync_url=str(env.get(ENV_SYNC_URL) or persisted.get("sync_url") or "").rstrip("/"),
        sync_key=str(env.get(ENV_SYNC_KEY) or persisted.get("sync_key") or ""),
        sync_timeout=_float_or(env.get(ENV_SYNC_TIMEOUT) or persisted.get("sync_timeout"), 15.0),
    )


@st.cache_resource
def get_settings() -> Settings:
    return load_settings(st.session_state.get(SESSION_DATA_DIR))
