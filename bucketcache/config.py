from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bucketcache.exceptions import ConfigurationError

DEFAULT_BUCKET_NAME = "aspnetcore-distributed-cache"

_BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


class CacheSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BUCKETCACHE_", extra="ignore", frozen=True)

    endpoint: str = ""
    access_key: str = ""
    secret_key: str = Field(default="", repr=False)
    bucket_name: str = DEFAULT_BUCKET_NAME
    use_tls: bool = False
    region: str | None = None
    use_fallback_cache: bool = True
    fallback_max_size: int | None = 10_000
    connect_timeout: float = Field(default=5.0, gt=0)
    read_timeout: float = Field(default=30.0, gt=0)

    @field_validator("bucket_name")
    @classmethod
    def validate_bucket_name(cls, value: str) -> str:
        if not _BUCKET_NAME_PATTERN.match(value) or ".." in value:
            raise ValueError(f"invalid bucket name: {value!r}")
        return value

    @field_validator("fallback_max_size")
    @classmethod
    def validate_fallback_max_size(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("fallback_max_size must be at least 1")
        return value

    @field_validator("region")
    @classmethod
    def blank_region_is_unset(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


def _resolve_env_token(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("os.environ/"):
        env_name = value.split("/", 1)[1]
        return os.getenv(env_name)
    if isinstance(value, dict):
        return {k: _resolve_env_token(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_token(v) for v in value]
    return value


def build_settings(**values: Any) -> CacheSettings:
    """Build settings from explicit values layered over ``BUCKETCACHE_*`` variables."""
    try:
        return CacheSettings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid cache settings: {exc}") from exc


def load_settings(path: str | Path | None = None, **overrides: Any) -> CacheSettings:
    """Load settings from the ``cache:`` section of a YAML file.

    Missing files fall back to environment variables and defaults. Values of
    the form ``os.environ/NAME`` are read from the environment.
    """
    data: dict[str, Any] = {}
    if path is not None:
        cfg_path = Path(path)
        if cfg_path.exists():
            try:
                loaded = yaml.safe_load(cfg_path.read_text()) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"cannot parse {cfg_path}: {exc}") from exc
            if not isinstance(loaded, dict):
                raise ConfigurationError(f"{cfg_path} must contain a mapping")
            section = loaded.get("cache", loaded)
            if not isinstance(section, dict):
                raise ConfigurationError(f"'cache' section of {cfg_path} must be a mapping")
            data = _resolve_env_token(section)

    data = {k: v for k, v in data.items() if v is not None}
    data.update(overrides)
    return build_settings(**data)


@lru_cache
def get_settings() -> CacheSettings:
    return build_settings()
