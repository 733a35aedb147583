"""Application configuration helpers for role resolution feature flags."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional, Tuple

_TRUE_VALUES = {"1", "true", "yes", "on"}

DEFAULT_DATABASE_URL = "sqlite:///./passport.db"
DEFAULT_CLIENT_CONTEXT_TTL = 300
DEFAULT_SECONDARY_TIMEOUT = 5.0


def _read_flag(name: str) -> bool | None:
    """Return the parsed boolean value for ``name`` if explicitly set."""

    value = os.getenv(name)
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized.lower() in _TRUE_VALUES


def _read_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


__all__ = [
    "get_database_url",
    "is_admin_api_enabled",
    "is_secondary_system_enabled",
    "get_api_token",
    "get_secondary_url",
    "get_secondary_timeout",
    "get_role_catalog_values",
    "get_client_context_ttl",
    "clear_config_cache",
]


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


@lru_cache(maxsize=1)
def is_admin_api_enabled() -> bool:
    """Return ``True`` when the administrative CRUD routes are mounted."""

    flag = _read_flag("PASSPORT_ADMIN_API")
    if flag is None:
        return True
    return flag


@lru_cache(maxsize=1)
def is_secondary_system_enabled() -> bool:
    """Return ``True`` when a secondary identity system should be wired in.

    Resolution only consults entity overrides and entity-class mappings when
    this flag is set and a bridge is available.
    """

    flag = _read_flag("PASSPORT_SECONDARY_ENABLED")
    if flag is None:
        return False
    return flag


@lru_cache(maxsize=1)
def get_api_token() -> Optional[str]:
    """Return the bearer token required by the HTTP API, if configured."""

    return _read_str("PASSPORT_API_TOKEN")


@lru_cache(maxsize=1)
def get_secondary_url() -> Optional[str]:
    return _read_str("PASSPORT_SECONDARY_URL")


@lru_cache(maxsize=1)
def get_secondary_timeout() -> float:
    raw = _read_str("PASSPORT_SECONDARY_TIMEOUT")
    if raw is None:
        return DEFAULT_SECONDARY_TIMEOUT
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid PASSPORT_SECONDARY_TIMEOUT: {raw!r}") from exc
    if value <= 0:
        raise ValueError("PASSPORT_SECONDARY_TIMEOUT must be positive")
    return value


@lru_cache(maxsize=1)
def get_role_catalog_values() -> Optional[Tuple[str, ...]]:
    """Return the configured role catalog, or ``None`` to use the defaults."""

    raw = _read_str("PASSPORT_ROLE_CATALOG")
    if raw is None:
        return None
    values = []
    for token in raw.replace("\n", ",").split(","):
        token = token.strip()
        if token and token not in values:
            values.append(token)
    return tuple(values) or None


@lru_cache(maxsize=1)
def get_client_context_ttl() -> int:
    """Return the lifetime in seconds of a bound authorization client id."""

    raw = _read_str("PASSPORT_CLIENT_CONTEXT_TTL")
    if raw is None:
        return DEFAULT_CLIENT_CONTEXT_TTL
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid PASSPORT_CLIENT_CONTEXT_TTL: {raw!r}") from exc
    if value <= 0:
        raise ValueError("PASSPORT_CLIENT_CONTEXT_TTL must be positive")
    return value


def clear_config_cache() -> None:
    """Drop cached values so the next call re-reads the environment."""

    for accessor in (
        is_admin_api_enabled,
        is_secondary_system_enabled,
        get_api_token,
        get_secondary_url,
        get_secondary_timeout,
        get_role_catalog_values,
        get_client_context_ttl,
    ):
        accessor.cache_clear()
