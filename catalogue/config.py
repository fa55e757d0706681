"""Configuration utilities for the collection ordering service.

This module loads application configuration with the following rules:
- Primary source: `catalogue_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("catalogue_config.json")
DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"
# Staging range for the displacement phase; must exceed any real collection size
DEFAULT_POSITION_OFFSET = 1_000_000
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


def _truthy(text: Optional[str]) -> bool:
    return str(text or "").strip().lower() in {"1", "true", "yes", "on"}


class DatabaseConfig(BaseModel):
    dsn: str
    pool_size: int = Field(default=5, gt=0)

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class ReorderConfig(BaseModel):
    position_offset: int = Field(default=DEFAULT_POSITION_OFFSET, gt=0)
    # 0 disables the per-transaction lock wait limit
    lock_timeout_ms: int = Field(default=0, ge=0)


class CorsConfig(BaseModel):
    origins: list[str] = Field(default_factory=lambda: ["*"])


class AppConfig(BaseModel):
    database: DatabaseConfig
    reorder: ReorderConfig = Field(default_factory=ReorderConfig)
    cors: CorsConfig = Field(default_factory=CorsConfig)
    auto_apply_migrations: bool = False


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:  # pragma: no cover - defensive
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) catalogue_config.json at project root (primary base)
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG)
    if not isinstance(base, dict):
        logger.warning("Ignoring %s: top level is not an object", ROOT_CONFIG)
        base = {}

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    # Database
    dsn = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or DEFAULT_DATABASE_URL
    )
    pool_size_text = _env("DATABASE_POOL_SIZE") or _read_config_file("database.pool_size") or _base("database.pool_size", "5")

    # Reorder engine
    offset_text = (
        _env("REORDER_POSITION_OFFSET")
        or _read_config_file("reorder.position_offset")
        or _base("reorder.position_offset", str(DEFAULT_POSITION_OFFSET))
    )
    lock_timeout_text = (
        _env("REORDER_LOCK_TIMEOUT_MS")
        or _read_config_file("reorder.lock_timeout_ms")
        or _base("reorder.lock_timeout_ms", "0")
    )

    # CORS
    origins_text = _env("CORS_ORIGINS") or _read_config_file("cors.origins")
    if origins_text is not None:
        origins = [o.strip() for o in origins_text.split(",") if o.strip()]
    else:
        raw_origins = base.get("cors", {}).get("origins") if isinstance(base.get("cors"), dict) else None
        origins = [str(o) for o in raw_origins] if isinstance(raw_origins, list) else ["*"]

    auto_migrate_text = _env("AUTO_APPLY_MIGRATIONS") or _read_config_file("migrations.auto_apply") or _base("migrations.auto_apply", "false")

    try:
        cfg = AppConfig(
            database=DatabaseConfig(dsn=dsn, pool_size=int(str(pool_size_text).strip())),
            reorder=ReorderConfig(
                position_offset=int(str(offset_text).strip()),
                lock_timeout_ms=int(str(lock_timeout_text).strip()),
            ),
            cors=CorsConfig(origins=origins or ["*"]),
            auto_apply_migrations=_truthy(auto_migrate_text),
        )
        return cfg
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "ReorderConfig",
    "CorsConfig",
    "DEFAULT_POSITION_OFFSET",
    "load_config",
]
