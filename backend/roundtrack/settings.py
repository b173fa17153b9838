from __future__ import annotations

import os
from dataclasses import dataclass

MAX_BLOCK_HOURS_CEILING = 720


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class Settings:
    persistence_enabled: bool
    database_url: str
    jwt_secret: str
    jwt_algorithm: str
    token_ttl_hours: int
    block_auto_heal: bool
    default_block_hours: int
    max_block_hours: int
    storage_backend: str
    storage_local_dir: str
    storage_public_base_url: str
    storage_upload_url: str
    storage_api_key: str
    upload_timeout_seconds: int
    max_upload_bytes: int


def load_settings() -> Settings:
    persistence_db_path = os.getenv("PERSISTENCE_DB_PATH", "data/roundtrack.sqlite3").strip()
    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        database_url = f"sqlite:///{persistence_db_path.replace(chr(92), '/')}"
    max_block_hours = max(1, min(MAX_BLOCK_HOURS_CEILING, _int_env("MAX_BLOCK_HOURS", 720)))
    storage_backend = os.getenv("STORAGE_BACKEND", "local").strip().lower()
    if storage_backend not in {"local", "http"}:
        storage_backend = "local"
    return Settings(
        persistence_enabled=_bool_env("PERSISTENCE_ENABLED", True),
        database_url=database_url,
        jwt_secret=os.getenv("JWT_SECRET", "dev-only-secret-change-in-prod").strip(),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256").strip(),
        token_ttl_hours=max(1, min(168, _int_env("TOKEN_TTL_HOURS", 12))),
        block_auto_heal=_bool_env("BLOCK_AUTO_HEAL", True),
        default_block_hours=max(1, min(max_block_hours, _int_env("DEFAULT_BLOCK_HOURS", 24))),
        max_block_hours=max_block_hours,
        storage_backend=storage_backend,
        storage_local_dir=os.getenv("STORAGE_LOCAL_DIR", "data/uploads").strip(),
        storage_public_base_url=os.getenv("STORAGE_PUBLIC_BASE_URL", "/uploads").strip(),
        storage_upload_url=os.getenv("STORAGE_UPLOAD_URL", "").strip(),
        storage_api_key=os.getenv("STORAGE_API_KEY", "").strip(),
        upload_timeout_seconds=max(1, min(120, _int_env("UPLOAD_TIMEOUT_SECONDS", 20))),
        max_upload_bytes=max(1024, _int_env("MAX_UPLOAD_BYTES", 25 * 1024 * 1024)),
    )
