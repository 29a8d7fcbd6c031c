from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    jwt_secret: str
    jwt_audience: str
    # Flat mark for free-text answers and for options whose marks don't parse.
    free_text_mark: int = 1
    sync_max_attempts: int = 3
    sync_backoff_seconds: float = 0.5

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _parse_int(name: str, raw: str, *, minimum: int) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _parse_int("PORT", _getenv("PORT", "8000"), minimum=1)
    free_text_mark = _parse_int(
        "FREE_TEXT_MARK", _getenv("FREE_TEXT_MARK", "1"), minimum=0
    )
    sync_max_attempts = _parse_int(
        "SYNC_MAX_ATTEMPTS", _getenv("SYNC_MAX_ATTEMPTS", "3"), minimum=1
    )

    backoff_raw = _getenv("SYNC_BACKOFF_SECONDS", "0.5")
    try:
        sync_backoff_seconds = float(backoff_raw)
    except ValueError:
        raise ValueError(
            f"SYNC_BACKOFF_SECONDS must be a number (got {backoff_raw!r})"
        ) from None
    if sync_backoff_seconds < 0:
        raise ValueError("SYNC_BACKOFF_SECONDS must be >= 0")

    jwt_secret = _getenv("JWT_SECRET", "")
    if not jwt_secret:
        if app_env_raw == "prod":
            raise ValueError("JWT_SECRET is required when APP_ENV=prod")
        jwt_secret = "dev-only-insecure-secret"

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getenv("LOG_JSON", "false").lower() in _TRUTHY,
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        jwt_secret=jwt_secret,
        jwt_audience=_getenv("JWT_AUDIENCE", "authenticated"),
        free_text_mark=free_text_mark,
        sync_max_attempts=sync_max_attempts,
        sync_backoff_seconds=sync_backoff_seconds,
    )


SETTINGS = load_settings()
