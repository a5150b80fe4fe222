from __future__ import annotations

import json
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "RESTO_RECON_DATA_DIR"
ENV_LOG_LEVEL = "RESTO_RECON_LOG_LEVEL"
ENV_DEFAULT_TOLERANCE = "RESTO_RECON_DEFAULT_TOLERANCE"
ENV_CACHE_DAYS = "RESTO_RECON_CACHE_DAYS"

SESSION_DATA_DIR = "resto_recon_data_dir"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    log_level: str = "INFO"
    default_tolerance_pct: Decimal = Decimal("5")
    cache_max_age_days: int = 7


def _default_data_dir() -> Path:
    return Path.home() / ".resto_recon"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state[SESSION_DATA_DIR] = str(data_dir)


def load_settings(session_data_dir: str | None = None, environ: dict | None = None) -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    env = os.environ if environ is None else environ

    if session_data_dir:
        data_dir = Path(session_data_dir).expanduser().resolve()
    elif env.get(ENV_DATA_DIR):
        data_dir = Path(env[ENV_DATA_DIR]).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)

    tolerance = Decimal(str(env.get(ENV_DEFAULT_TOLERANCE, "5")))
    if tolerance < 0 or tolerance > 100:
        raise ValueError(f"{ENV_DEFAULT_TOLERANCE} must be between 0 and 100.")

    cache_days = int(env.get(ENV_CACHE_DAYS, "7"))
    if cache_days < 0:
        raise ValueError(f"{ENV_CACHE_DAYS} must be >= 0.")

    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "app.db",
        log_level=str(env.get(ENV_LOG_LEVEL, "INFO")).upper(),
        default_tolerance_pct=tolerance,
        cache_max_age_days=cache_days,
    )


@st.cache_resource
def get_settings() -> Settings:
    return load_settings(st.session_state.get(SESSION_DATA_DIR))
