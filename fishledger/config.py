from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
DB_FILE_NAME = "app.db"
ENV_DATA_DIR = "FISH_LEDGER_DATA_DIR"
ENV_LOG_LEVEL = "FISH_LEDGER_LOG_LEVEL"
SESSION_KEY = "fish_ledger_data_dir"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    return Path.home() / ".fish_ledger"


def _read_settings_file(folder: Path) -> dict[str, Any]:
    path = folder / CONFIG_FILE_NAME
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def persist_data_dir(data_dir_str: str) -> Path:
    """Remember a chosen data folder (written to its settings.json and the session)."""
    folder = Path(data_dir_str).expanduser().resolve()
    folder.mkdir(parents=True, exist_ok=True)
    (folder / CONFIG_FILE_NAME).write_text(json.dumps({"data_dir": str(folder)}, indent=2), encoding="utf-8")
    st.session_state[SESSION_KEY] = str(folder)
    return folder


def _pick_data_dir() -> tuple[Path, dict[str, Any]]:
    # session choice > env var > settings.json in the default folder > default folder
    if SESSION_KEY in st.session_state:
        return Path(st.session_state[SESSION_KEY]), {}
    from_env = os.getenv(ENV_DATA_DIR)
    if from_env:
        return Path(from_env), {}
    persisted = _read_settings_file(_default_data_dir())
    return Path(persisted.get("data_dir") or _default_data_dir()), persisted


def resolve_settings() -> Settings:
    folder, persisted = _pick_data_dir()
    folder = folder.expanduser().resolve()
    folder.mkdir(parents=True, exist_ok=True)
    return Settings(
        data_dir=folder,
        db_path=folder / DB_FILE_NAME,
        log_level=(os.getenv(ENV_LOG_LEVEL) or persisted.get("log_level") or "INFO").upper(),
    )


@st.cache_resource
def get_settings() -> Settings:
    return resolve_settings()
