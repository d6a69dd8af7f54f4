"""Centralized configuration.

Quick start::

    from snipcheck.core.config import get_settings

    settings = get_settings()
    print(settings.timeout_seconds)        # 5.0
    print(settings.is_evaluated("py"))     # True

Tags:
    snipcheck, configuration, settings, pydantic

Doc-Types:
    package-overview
"""

from .settings import (
    LogFormat,
    ReportFormat,
    VerifierSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "LogFormat",
    "ReportFormat",
    "VerifierSettings",
    "clear_settings_cache",
    "get_settings",
]
