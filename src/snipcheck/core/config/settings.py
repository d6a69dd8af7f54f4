"""
Centralized settings for snipcheck.

Manifesto:
    One validated, cached settings object replaces ad-hoc option parsing in
    each component. ``VerifierSettings`` resolves values in a single place:

    init arguments (CLI)  →  ``SNIPCHECK_*`` env vars  →  ``.env``  →
    ``[tool.snipcheck]`` in ``pyproject.toml``  →  defaults

Tags:
    snipcheck, configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    PyprojectTomlConfigSettingsSource,
    SettingsConfigDict,
)

from snipcheck.core.errors import ConfigError


class ReportFormat(str, Enum):
    """Report rendering format."""

    TEXT = "text"
    JSON = "json"


class LogFormat(str, Enum):
    """Log rendering format."""

    CONSOLE = "console"
    JSON = "json"


def _default_workers() -> int:
    return max(1, min(4, os.cpu_count() or 1))


class VerifierSettings(BaseSettings):
    """snipcheck configuration.

    All fields can be set via ``SNIPCHECK_*`` environment variables (e.g.
    ``SNIPCHECK_TIMEOUT_SECONDS=2``), a ``.env`` file, or the
    ``[tool.snipcheck]`` table of the nearest ``pyproject.toml``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SNIPCHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        pyproject_toml_table_header=("tool", "snipcheck"),
        pyproject_toml_depth=3,
    )

    # ── Evaluation ───────────────────────────────────────────────
    timeout_seconds: float = Field(default=5.0, gt=0, description="Per-block execution timeout")
    startup_timeout_seconds: float = Field(default=30.0, gt=0, description="Sandbox start-up budget")
    workers: int = Field(default_factory=_default_workers, ge=1, description="Concurrent sessions")
    languages: list[str] = Field(default=["python", "py", "python3"])

    # ── Run control ──────────────────────────────────────────────
    fail_fast: bool = Field(default=False)
    strict: bool = Field(default=False, description="Parse warnings fail the run")

    # ── Input / output ───────────────────────────────────────────
    patterns: list[str] = Field(default=["*.md", "*.markdown"])
    format: ReportFormat = Field(default=ReportFormat.TEXT)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="WARNING")
    log_format: LogFormat = Field(default=LogFormat.CONSOLE)

    @field_validator("languages")
    @classmethod
    def _normalize_languages(cls, value: list[str]) -> list[str]:
        languages = [lang.strip().lower() for lang in value if lang.strip()]
        if not languages:
            raise ValueError("at least one evaluated language is required")
        return languages

    @field_validator("patterns")
    @classmethod
    def _require_patterns(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one search pattern is required")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            PyprojectTomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def is_evaluated(self, language: str) -> bool:
        """Whether blocks tagged *language* are executed."""
        return language.lower() in self.languages


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, VerifierSettings] = {}


def get_settings(*, _force_reload: bool = False, **overrides: Any) -> VerifierSettings:
    """Load, validate, and cache a :class:`VerifierSettings` instance.

    Parameters
    ----------
    _force_reload:
        Bypass cache and reload from the environment.
    overrides:
        Explicit values (usually command-line options). ``None`` values are
        ignored so unset options fall through to the other sources. Settings
        built with overrides are never cached.

    Raises
    ------
    ConfigError
        If any source holds an invalid value.
    """
    overrides = {key: value for key, value in overrides.items() if value is not None}
    cache_key = str(Path.cwd().resolve())

    if not overrides and not _force_reload and cache_key in _settings_cache:
        return _settings_cache[cache_key]

    try:
        settings = VerifierSettings(**overrides)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}", cause=exc) from exc

    if not overrides:
        _settings_cache[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
