"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    """Read a positive integer setting, falling back to ``default``."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "AssoFin"
    DB_FILENAME = "assofin.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}

    def __init__(self, data_dir: Path | str | None = None) -> None:
        self.SECRET_KEY = os.getenv("ASSOFIN_SECRET_KEY", "replace-me")
        self.DEV_MODE = _env_bool("ASSOFIN_DEV_MODE", default=True)
        self.DATA_DIR = self._resolve_data_dir(data_dir)
        self.DATABASE_URL = os.getenv("ASSOFIN_DATABASE_URL", self._build_sqlite_url())
        self.LOG_LEVEL = os.getenv("ASSOFIN_LOG_LEVEL", "INFO").upper()
        self.EXPIRING_WINDOW_DAYS = _env_int("ASSOFIN_EXPIRING_WINDOW_DAYS", 30)
        self.TOP_DONORS_LIMIT = _env_int("ASSOFIN_TOP_DONORS_LIMIT", 5)
        if not self.DEV_MODE and self.SECRET_KEY == "replace-me":
            raise ValueError("ASSOFIN_SECRET_KEY must be set in non-dev mode.")

    def _resolve_data_dir(self, override: Path | str | None) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = override or os.getenv("ASSOFIN_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        return f"sqlite:///{self.DATA_DIR / self.DB_FILENAME}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if self.DATABASE_URL.startswith("sqlite"):
            return {"connect_args": {"check_same_thread": False}}
        return {"pool_pre_ping": True}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False


class TestConfig(BaseConfig):
    """Configuration for the test-suite: in-memory database, quiet console."""

    __test__ = False  # not a pytest test class

    DEBUG = False
    TESTING = True

    def __init__(self, data_dir: Path | str | None = None) -> None:
        super().__init__(data_dir)
        self.DEV_MODE = True
        self.DATABASE_URL = "sqlite://"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        from sqlalchemy.pool import StaticPool

        # A single shared connection keeps the in-memory schema alive across sessions.
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
