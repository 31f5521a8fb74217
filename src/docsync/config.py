from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys

from docsync.domain.errors import ConfigurationError


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    workbook_path: Path
    reference_path: Path
    state_db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class Settings:
    api_url: str
    api_token: str
    paths: AppPaths
    page_size: int = 100
    batch_size: int = 200
    calls_per_minute: int = 50
    pause_every: int = 0
    pause_seconds: float = 0.0
    max_attempts: int = 5
    base_delay: float = 1.0
    request_timeout: float = 30.0
    base_currency: str = "PLN"


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "DocSync", env: Optional[Mapping[str, str]] = None) -> AppPaths:
    env = os.environ if env is None else env
    if env.get("DOCSYNC_HOME"):
        base = Path(env["DOCSYNC_HOME"])
    elif sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(
        base_dir=base,
        workbook_path=Path(env.get("DOCSYNC_WORKBOOK") or base / "docsync.xlsx"),
        reference_path=Path(env.get("DOCSYNC_REFERENCE") or base / "reference.xlsx"),
        state_db_path=Path(env.get("DOCSYNC_STATE_DB") or base / "state.db"),
        logs_dir=logs,
    )


def _int_setting(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer. Received: {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}. Received: {value}")
    return value


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number. Received: {raw!r}") from e
    if value < 0:
        raise ConfigurationError(f"{name} must be >= 0. Received: {value}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment, failing before any network call."""
    env = os.environ if env is None else env

    api_url = (env.get("DOCSYNC_API_URL") or "").strip().rstrip("/")
    api_token = (env.get("DOCSYNC_API_TOKEN") or "").strip()
    if not api_url:
        raise ConfigurationError("DOCSYNC_API_URL is not set.")
    if not api_url.startswith(("http://", "https://")):
        raise ConfigurationError(f"DOCSYNC_API_URL must be an http(s) URL. Received: {api_url!r}")
    if not api_token:
        raise ConfigurationError("DOCSYNC_API_TOKEN is not set.")

    return Settings(
        api_url=api_url,
        api_token=api_token,
        paths=get_app_paths(env=env),
        batch_size=_int_setting(env, "DOCSYNC_BATCH_SIZE", 200),
        calls_per_minute=_int_setting(env, "DOCSYNC_CALLS_PER_MINUTE", 50),
        pause_every=_int_setting(env, "DOCSYNC_PAUSE_EVERY", 0, minimum=0),
        pause_seconds=_float_setting(env, "DOCSYNC_PAUSE_SECONDS", 0.0),
        max_attempts=_int_setting(env, "DOCSYNC_MAX_ATTEMPTS", 5),
        base_currency=(env.get("DOCSYNC_BASE_CURRENCY") or "PLN").strip().upper(),
    )
