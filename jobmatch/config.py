"""Load engine settings from env, .env and config/matching.yaml."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobmatch.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "matching.yaml"
REPORTS_DIR: Path = ROOT_DIR / "reports"
DATA_DIR: Path = ROOT_DIR / "data"

# setting name -> environment variable
_ENV_KEYS: dict[str, str] = {
    "database_url": "DATABASE_URL",
    "llm_api_key": "GROQ_API_KEY",
    "llm_model": "GROQ_LLM_MODEL",
    "llm_base_url": "LLM_BASE_URL",
    "llm_timeout": "LLM_TIMEOUT_SECONDS",
    "batch_size": "SCORING_BATCH_SIZE",
    "scoring_max_workers": "SCORING_MAX_WORKERS",
    "min_local_results": "MIN_LOCAL_RESULTS",
    "ingest_limit": "INGEST_LIMIT",
    "adzuna_app_id": "ADZUNA_APP_ID",
    "adzuna_app_key": "ADZUNA_APP_KEY",
    "adzuna_country": "ADZUNA_COUNTRY",
    "daily_run_hour": "DAILY_RUN_HOUR",
}


@dataclass(frozen=True)
class Settings:
    database_url: str = f"sqlite:///{DATA_DIR / 'jobmatch.db'}"
    llm_api_key: str = ""
    llm_model: str = "llama-3.3-70b-versatile"
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_timeout: float = 20.0
    batch_size: int = 5
    scoring_max_workers: int = 4
    min_local_results: int = 5
    ingest_limit: int = 20
    adzuna_app_id: str = ""
    adzuna_app_key: str = ""
    adzuna_country: str = "us"
    daily_run_hour: int = 8

    @classmethod
    def load(cls, path: Path | None = None) -> Settings:
        """Defaults, overridden by the YAML file, overridden by env vars."""
        values: dict[str, Any] = {}
        values.update(_read_yaml(path or SETTINGS_PATH))
        for name, env_key in _ENV_KEYS.items():
            raw = get_env(env_key)
            if raw:
                values[name] = raw
        return cls(**_coerce(values))


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def ensure_dirs() -> None:
    for d in (REPORTS_DIR, DATA_DIR):
        d.mkdir(parents=True, exist_ok=True)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        log.warning("Ignoring %s: expected a mapping, got %s", path.name, type(data).__name__)
        return {}
    known = {f.name for f in fields(Settings)}
    unknown = set(data) - known
    if unknown:
        log.warning("Ignoring unknown settings in %s: %s", path.name, ", ".join(sorted(unknown)))
    return {k: v for k, v in data.items() if k in known}


def _coerce(values: dict[str, Any]) -> dict[str, Any]:
    """Cast string values (env vars) to the field's declared type."""
    casts = {"int": int, "float": float, "str": str}
    out: dict[str, Any] = {}
    for f in fields(Settings):
        if f.name not in values:
            continue
        cast = casts.get(f.type if isinstance(f.type, str) else f.type.__name__, str)
        try:
            out[f.name] = cast(values[f.name])
        except (TypeError, ValueError):
            log.warning("Invalid value for %s: %r — using default", f.name, values[f.name])
    return out
