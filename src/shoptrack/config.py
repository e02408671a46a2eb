from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class Settings:
    db_path: Optional[Path] = None
    log_level: str = "INFO"
    default_low_stock_threshold: int = 10
    allow_new_signups: bool = True
    currency: str = "INR"
    admin_auth_url: Optional[str] = None
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "ShopTrack", settings: Settings | None = None) -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    if settings is not None and settings.db_path is not None:
        db = Path(settings.db_path)
        base = db.parent
    else:
        db = base / "shoptrack.db"
    logs = base / "logs"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build ``Settings`` from ``SHOPTRACK_*`` environment variables."""
    env = os.environ if environ is None else environ

    def get(name: str) -> Optional[str]:
        value = env.get(f"SHOPTRACK_{name}", "").strip()
        return value or None

    threshold = get("DEFAULT_LOW_STOCK_THRESHOLD")
    signups = get("ALLOW_NEW_SIGNUPS")
    db_path = get("DB_PATH")
    return Settings(
        db_path=Path(db_path) if db_path else None,
        log_level=(get("LOG_LEVEL") or "INFO").upper(),
        default_low_stock_threshold=int(threshold) if threshold else 10,
        allow_new_signups=_flag(signups) if signups is not None else True,
        currency=get("CURRENCY") or "INR",
        admin_auth_url=get("ADMIN_AUTH_URL"),
        admin_email=get("ADMIN_EMAIL"),
        admin_password=get("ADMIN_PASSWORD"),
    )
