from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from iptuapi import __version__

DEFAULT_BASE_URL = "https://iptuapi.com.br/api/v1"
DEFAULT_USER_AGENT = f"iptuapi-python/{__version__}"
API_KEY_ENV = "IPTU_API_KEY"


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or validated."""


class RetryPolicy(BaseModel):
    """Backoff settings for transient failures.

    ``delay_for_attempt(n)`` is the wait before retry ``n + 1``; it grows by
    ``backoff_factor`` per attempt and never exceeds ``max_delay_ms``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_retries: int = Field(default=3, ge=0)
    initial_delay_ms: int = Field(default=500, gt=0)
    max_delay_ms: int = Field(default=10_000, gt=0)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    retryable_statuses: frozenset[int] = Field(default=frozenset({429, 500, 502, 503, 504}))

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetryPolicy":
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must be >= initial_delay_ms")
        return self

    def is_retryable(self, status_code: int) -> bool:
        return status_code in self.retryable_statuses

    def delay_for_attempt(self, attempt_index: int) -> int:
        if attempt_index < 0:
            raise ValueError("attempt_index must be >= 0")
        try:
            delay = self.initial_delay_ms * self.backoff_factor**attempt_index
        except OverflowError:
            return self.max_delay_ms
        if not delay < self.max_delay_ms:
            return self.max_delay_ms
        return int(delay)


class ClientConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    base_url: str = Field(default=DEFAULT_BASE_URL)
    timeout_s: int = Field(default=30, gt=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    logger: logging.Logger | None = Field(default=None, exclude=True)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL: {value}")
        return value.rstrip("/")


class ObsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_jsonl: bool = Field(default=True)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: str | None = Field(default=None)
    client: ClientConfig = Field(default_factory=ClientConfig)
    obs: ObsConfig = Field(default_factory=ObsConfig)


@dataclass(frozen=True)
class LoadedConfig:
    config: AppConfig
    raw: dict[str, Any]


def load_config(path: Path) -> LoadedConfig:
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")

    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a mapping")

    try:
        config = AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    return LoadedConfig(config=config, raw=payload)


def resolve_api_key(config: AppConfig, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    api_key = config.api_key or env.get(API_KEY_ENV)
    if not api_key:
        raise ConfigError(f"API key missing: set api_key in config or {API_KEY_ENV}")
    return api_key
