"""Centralized configuration: all environment variables in one place.

Import `settings` from this module instead of calling os.getenv() directly.
Handlers never read the environment; `create_app()` receives a Settings
instance and publishes it on `app.state`.

Usage:
    from config import settings
    print(settings.rate_limit)
    print(settings.version)
"""

import os
from dataclasses import dataclass
from datetime import date
from functools import lru_cache

DEFAULT_VERSION = "v1.0.0"
DEFAULT_GIT_COMMIT = "abcdef0"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """All environment variables used by the edge probe service."""

    # ---- Server ----
    port: int = 8787
    log_level: str = "INFO"
    sentry_dsn: str = ""

    # ---- Auth ----
    api_probe_token: str = ""

    # ---- Build info ----
    version: str = DEFAULT_VERSION
    git_commit: str = DEFAULT_GIT_COMMIT
    build_time: str = ""

    # ---- Rate limiting ----
    rate_limit: int = 30
    rate_limit_window: int = 60  # seconds
    rate_limit_storage_uri: str = "async+memory://"
    rate_limit_deferred_write: bool = False
    rate_limit_fail_open: bool = True
    rate_limit_expensive: bool = True
    rate_limit_store_failures: int = 3
    rate_limit_store_recovery: float = 30.0

    # ---- Client identity ----
    client_ip_header: str = "cf-connecting-ip"


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    """Load settings from environment. Cached after first call."""

    def _env(key: str, default: str = "") -> str:
        return os.environ.get(key, default)

    return Settings(
        # Server
        port=int(_env("PORT", "8787")),
        log_level=_env("LOG_LEVEL", "INFO"),
        sentry_dsn=_env("SENTRY_DSN"),
        # Auth
        api_probe_token=_env("API_PROBE_TOKEN"),
        # Build info (YYYY-MM-DD when BUILD_TIME is unset)
        version=_env("VERSION", DEFAULT_VERSION),
        git_commit=_env("GIT_COMMIT", DEFAULT_GIT_COMMIT),
        build_time=_env("BUILD_TIME", date.today().isoformat()),
        # Rate limiting
        rate_limit=int(_env("RATE_LIMIT", "30")),
        rate_limit_window=int(_env("RATE_LIMIT_WINDOW", "60")),
        rate_limit_storage_uri=_env("RATE_LIMIT_STORAGE_URI", "async+memory://"),
        rate_limit_deferred_write=_env_bool(_env("RATE_LIMIT_DEFERRED_WRITE", "false")),
        rate_limit_fail_open=_env_bool(_env("RATE_LIMIT_FAIL_OPEN", "true")),
        rate_limit_expensive=_env_bool(_env("RATE_LIMIT_EXPENSIVE", "true")),
        rate_limit_store_failures=int(_env("RATE_LIMIT_STORE_FAILURES", "3")),
        rate_limit_store_recovery=float(_env("RATE_LIMIT_STORE_RECOVERY", "30")),
        # Client identity
        client_ip_header=_env("CLIENT_IP_HEADER", "cf-connecting-ip").lower(),
    )


# Module-level accessor: import this
settings = _load_settings()
