"""Application configuration helpers."""

from __future__ import annotations

import os

from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


OVERFLOW_POLICIES = ("drop_new", "drop_oldest", "block")


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _parse_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: Optional[float]) -> Optional[float]:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_policy(value: Optional[str]) -> str:
    if not value:
        return "drop_new"
    policy = value.strip().lower().replace("-", "_")
    if policy not in OVERFLOW_POLICIES:
        return "drop_new"
    return policy


@dataclass(frozen=True)
class Config:
    """Central application configuration."""

    database_url: str
    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    app_port: int = 5001
    sqlalchemy_echo: bool = False
    flask_secret: str = "dev"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    jwt_secret: str = "change_me"
    jwt_algorithm: str = "HS256"
    log_level: str = "INFO"
    audit_queue_max_size: int = 10000
    audit_overflow_policy: str = "drop_new"
    audit_submit_timeout: float = 0.05
    audit_shutdown_timeout: Optional[float] = 10.0
    database_ssl_mode: Optional[str] = None


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Return the singleton configuration instance."""

    default_db = "sqlite+pysqlite:///:memory:"
    return Config(
        database_url=os.getenv("DATABASE_URL", default_db),
        pool_size=_parse_int(os.getenv("DB_POOL_SIZE"), 5),
        max_overflow=_parse_int(os.getenv("DB_MAX_OVERFLOW"), 5),
        pool_timeout=_parse_int(os.getenv("DB_POOL_TIMEOUT"), 30),
        pool_recycle=_parse_int(os.getenv("DB_POOL_RECYCLE"), 1800),
        app_port=_parse_int(os.getenv("APP_PORT"), 5001),
        sqlalchemy_echo=_parse_bool(os.getenv("SQLALCHEMY_ECHO")),
        flask_secret=os.getenv("FLASK_SECRET", "dev"),
        cors_origins=_parse_origins(os.getenv("CORS_ORIGINS")),
        jwt_secret=os.getenv("JWT_SECRET", "change_me"),
        jwt_algorithm=os.getenv("JWT_ALGO", "HS256"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        audit_queue_max_size=max(
            _parse_int(os.getenv("AUDIT_QUEUE_MAX_SIZE"), 10000), 0
        ),
        audit_overflow_policy=_parse_policy(
            os.getenv("AUDIT_OVERFLOW_POLICY")
        ),
        audit_submit_timeout=_parse_float(
            os.getenv("AUDIT_SUBMIT_TIMEOUT"), 0.05
        ),
        audit_shutdown_timeout=_parse_float(
            os.getenv("AUDIT_SHUTDOWN_TIMEOUT"), 10.0
        ),
        database_ssl_mode=os.getenv("DATABASE_SSL_MODE"),
    )


def reset_config(
    overrides: Optional[dict[str, Optional[str]]] = None,
) -> Config:
    """Reset cached configuration and optionally override env vars."""

    if overrides:
        for key, value in overrides.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
    get_config.cache_clear()
    return get_config()
