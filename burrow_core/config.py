"""
TOML-based configuration for Burrow clients.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from burrow_core.config import load_config, build_controller
    cfg = load_config("burrow.toml")
    ctl = build_controller(cfg, fetch, store_auth, store_user)
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import,no-redef]

from burrow_core.cache import MemoryCache, SqliteCache
from burrow_core.errors import ConfigurationError
from burrow_core.kdf import KeyDeriver, get_profile
from burrow_core.session import SessionController


@dataclass
class KDFConfig:
    """
    Key-derivation profile.  Must match every client sharing records:
    pbkdf2 is what headless clients use, scrypt what browser clients use.
    """
    profile: str = "pbkdf2"   # "pbkdf2" or "scrypt"
    max_workers: int = 1


@dataclass
class CacheConfig:
    """Local entropy cache."""
    backend: str = "memory"   # "memory" or "sqlite"
    path: str = "data/burrow-cache.db"
    use_local_cache: bool = True


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class BurrowConfig:
    """Top-level configuration container."""
    kdf: KDFConfig = field(default_factory=KDFConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> BurrowConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        BURROW_KDF_PROFILE   -> kdf.profile
        BURROW_KDF_WORKERS   -> kdf.max_workers
        BURROW_CACHE_BACKEND -> cache.backend
        BURROW_CACHE_PATH    -> cache.path   (implies backend = sqlite)
        BURROW_LOG_LEVEL     -> logging.level
        BURROW_LOG_FMT       -> logging.format
    """
    cfg = BurrowConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("kdf", cfg.kdf),
                ("cache", cfg.cache),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("BURROW_KDF_PROFILE"):
        cfg.kdf.profile = v.lower()
    if v := os.environ.get("BURROW_KDF_WORKERS"):
        cfg.kdf.max_workers = int(v)
    if v := os.environ.get("BURROW_CACHE_BACKEND"):
        cfg.cache.backend = v.lower()
    if v := os.environ.get("BURROW_CACHE_PATH"):
        cfg.cache.path = v
        cfg.cache.backend = "sqlite"
    if v := os.environ.get("BURROW_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("BURROW_LOG_FMT"):
        cfg.logging.format = v

    return cfg


# ── factories ────────────────────────────────────────────────────

def build_key_deriver(cfg: BurrowConfig) -> KeyDeriver:
    return KeyDeriver(get_profile(cfg.kdf.profile), max_workers=cfg.kdf.max_workers)


def build_cache(cfg: BurrowConfig) -> MemoryCache | SqliteCache:
    if cfg.cache.backend == "memory":
        return MemoryCache()
    if cfg.cache.backend == "sqlite":
        return SqliteCache(cfg.cache.path)
    raise ConfigurationError(f"Unknown cache backend {cfg.cache.backend!r}")


def build_controller(cfg: BurrowConfig, fetch, store_auth, store_user):
    """Wire a SessionController from configuration."""
    return SessionController(
        fetch, store_auth, store_user,
        use_local_cache=cfg.cache.use_local_cache,
        cache=build_cache(cfg),
        key_deriver=build_key_deriver(cfg),
    )
