"""
Runtime configuration.

Settings are read from the environment once at process start. A `.env` file
in the project root is loaded first so local development needs no exports.

Environment variables:
- BACKOFFICE_STORE: "memory" (default) or "supabase"
- SUPABASE_URL / SUPABASE_KEY: required when BACKOFFICE_STORE=supabase
- BACKOFFICE_STORAGE_TIMEOUT_SECONDS: upper bound for every store call (default 10)
- BACKOFFICE_FOLLOW_UP_DAYS: follow-up task due offset (default 3)
- BACKOFFICE_DEFAULT_DELIVERY_DAYS: delivery date when none is given (default 7)
- BACKOFFICE_ORDER_PREFIX: order id prefix (default RPC)
- BACKOFFICE_NOTIFICATION_FEED_SIZE: notifications kept in the feed (default 20)
- BACKOFFICE_LOG_LEVEL: logging level name (default INFO)
- BACKOFFICE_CORS_ORIGINS: comma-separated origins the API accepts (default *)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

STORE_MEMORY = "memory"
STORE_SUPABASE = "supabase"


@dataclass(frozen=True, slots=True)
class Settings:
    store_backend: str = STORE_MEMORY
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    storage_timeout_seconds: float = 10.0
    follow_up_days: int = 3
    default_delivery_days: int = 7
    order_id_prefix: str = "RPC"
    notification_feed_size: int = 20
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = ("*",)

    def __post_init__(self) -> None:
        if self.store_backend not in (STORE_MEMORY, STORE_SUPABASE):
            raise RuntimeError(
                f"Unsupported BACKOFFICE_STORE: {self.store_backend!r}. "
                f"Use '{STORE_MEMORY}' or '{STORE_SUPABASE}'."
            )
        if self.storage_timeout_seconds <= 0:
            raise RuntimeError("BACKOFFICE_STORAGE_TIMEOUT_SECONDS must be > 0")
        if not self.cors_origins:
            raise RuntimeError("BACKOFFICE_CORS_ORIGINS must name at least one origin")
        if self.store_backend == STORE_SUPABASE:
            if not self.supabase_url:
                raise RuntimeError(
                    "Missing environment variable: SUPABASE_URL. "
                    "Set SUPABASE_URL to your Supabase project URL."
                )
            if not self.supabase_key:
                raise RuntimeError(
                    "Missing environment variable: SUPABASE_KEY. "
                    "Set SUPABASE_KEY to your Supabase API key."
                )


def _number(environ: Mapping[str, str], name: str, default: str, cast: type) -> float:
    raw = environ.get(name, default)
    try:
        return cast(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid value for {name}: {raw!r}") from e


def load_settings(environ: Optional[Mapping[str, str]] = None, env_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        environ: Mapping to read instead of os.environ (tests pass their own)
        env_file: .env file to load first; defaults to the project root .env
    """

    if environ is None:
        load_dotenv(dotenv_path=env_file or Path(__file__).parent.parent / ".env")
        environ = os.environ

    return Settings(
        store_backend=environ.get("BACKOFFICE_STORE", STORE_MEMORY).strip().lower(),
        supabase_url=environ.get("SUPABASE_URL"),
        supabase_key=environ.get("SUPABASE_KEY"),
        storage_timeout_seconds=_number(environ, "BACKOFFICE_STORAGE_TIMEOUT_SECONDS", "10", float),
        follow_up_days=int(_number(environ, "BACKOFFICE_FOLLOW_UP_DAYS", "3", int)),
        default_delivery_days=int(_number(environ, "BACKOFFICE_DEFAULT_DELIVERY_DAYS", "7", int)),
        order_id_prefix=environ.get("BACKOFFICE_ORDER_PREFIX", "RPC"),
        notification_feed_size=int(_number(environ, "BACKOFFICE_NOTIFICATION_FEED_SIZE", "20", int)),
        log_level=environ.get("BACKOFFICE_LOG_LEVEL", "INFO").upper(),
        cors_origins=tuple(
            origin.strip() for origin in environ.get("BACKOFFICE_CORS_ORIGINS", "*").split(",") if origin.strip()
        ),
    )


__all__ = ["Settings", "STORE_MEMORY", "STORE_SUPABASE", "load_settings"]
