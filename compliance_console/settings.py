"""Typed application settings with Pydantic validation."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

import tomllib
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

API_URL_ENV = "COMPLIANCE_CONSOLE_API_URL"
USE_MOCKS_ENV = "COMPLIANCE_CONSOLE_USE_MOCKS"

DEFAULT_API_URL = "http://localhost:8000"
TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _coerce_positive(value: int | float | str | None, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise TypeError("Boolean is not a valid numeric setting")
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return default
        value = float(raw)
    numeric = float(value)
    return numeric if numeric > 0 else default


class ApiSettings(BaseModel):
    """Connection settings for the remote requirements service."""

    model_config = ConfigDict(validate_assignment=True)

    base_url: str = DEFAULT_API_URL
    timeout_seconds: float = 15.0
    use_mocks: bool = False

    @field_validator("base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: str | None) -> str:
        """Strip whitespace and trailing slashes; empty means the default."""
        if value is None:
            return DEFAULT_API_URL
        text = str(value).strip().rstrip("/")
        return text or DEFAULT_API_URL

    @field_validator("timeout_seconds", mode="before")
    @classmethod
    def _normalize_timeout(cls, value: float | str | None) -> float:
        return _coerce_positive(value, 15.0)

    @field_validator("use_mocks", mode="before")
    @classmethod
    def _normalize_use_mocks(cls, value: bool | str | None) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in TRUE_VALUES
        return bool(value)


class ListSettings(BaseModel):
    """Paging and background refresh for one list screen."""

    model_config = ConfigDict(validate_assignment=True)

    page_size: int = Field(10, ge=1, le=100)
    refresh_interval_seconds: float = 120.0

    @field_validator("refresh_interval_seconds", mode="before")
    @classmethod
    def _normalize_interval(cls, value: float | str | None) -> float:
        return _coerce_positive(value, 120.0)


class PollingSettings(BaseModel):
    """Timers for document processing polls."""

    model_config = ConfigDict(validate_assignment=True)

    interval_seconds: float = 5.0
    retry_interval_seconds: float = 8.0

    @field_validator("interval_seconds", mode="before")
    @classmethod
    def _normalize_interval(cls, value: float | str | None) -> float:
        return _coerce_positive(value, 5.0)

    @field_validator("retry_interval_seconds", mode="before")
    @classmethod
    def _normalize_retry(cls, value: float | str | None) -> float:
        return _coerce_positive(value, 8.0)


class UISettings(BaseModel):
    """Presentation preferences."""

    model_config = ConfigDict(validate_assignment=True)

    language: Literal["en", "es"] = "en"
    theme: Literal["light", "dark"] = "light"
    login_path: str = "/login"
    log_level: int = Field(default=logging.INFO)

    @field_validator("language", mode="before")
    @classmethod
    def _normalise_language(cls, value: str | None) -> str:
        """Map any Spanish variant to ``es`` and everything else to ``en``."""
        if value and str(value).strip().lower().startswith("es"):
            return "es"
        return "en"


class AppSettings(BaseModel):
    """Aggregate settings for the application."""

    model_config = ConfigDict(validate_assignment=True)

    api: ApiSettings = Field(default_factory=ApiSettings)
    requirements: ListSettings = Field(default_factory=ListSettings)
    documents: ListSettings = Field(
        default_factory=lambda: ListSettings(page_size=5, refresh_interval_seconds=60)
    )
    polling: PollingSettings = Field(default_factory=PollingSettings)
    ui: UISettings = Field(default_factory=UISettings)

    def to_dict(self) -> dict:
        """Return settings as a plain dictionary."""
        return self.model_dump()

    def with_environment(self, environ: Mapping[str, str] | None = None) -> AppSettings:
        """Return a copy with API overrides from *environ* applied."""
        env = os.environ if environ is None else environ
        updated = self.model_copy(deep=True)
        api_url = env.get(API_URL_ENV)
        if api_url:
            updated.api.base_url = api_url
        use_mocks = env.get(USE_MOCKS_ENV)
        if use_mocks is not None:
            updated.api.use_mocks = use_mocks
        return updated

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> AppSettings:
        """Return default settings adjusted by environment variables."""
        return cls().with_environment(environ)


def load_app_settings(path: str | Path) -> AppSettings:
    """Load :class:`AppSettings` from *path* with validation.

    Format is detected by file extension: ``.toml`` uses :mod:`tomllib`,
    everything else is treated as JSON.  Validation errors are wrapped into
    :class:`ValueError`.
    """
    p = Path(path)
    with p.open("rb") as fh:
        data = tomllib.load(fh) if p.suffix.lower() == ".toml" else json.load(fh)
    try:
        return AppSettings.model_validate(data)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc
