"""Runtime settings for :mod:`pdfreadx` read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .exceptions import ConfigurationError

ENV_PREFIX = "PDFREADX_"
DEFAULT_SEPARATOR = "\f"
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _parse_int(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    value = env.get(ENV_PREFIX + name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from exc
    if parsed < minimum:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {parsed}")
    return parsed


def unescape_separator(value: str) -> str:
    """Expand the ``\\n``, ``\\f`` and ``\\t`` escapes accepted in separators."""
    return value.replace("\\n", "\n").replace("\\f", "\f").replace("\\t", "\t")


def normalise_log_level(value: str) -> str:
    level = value.strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(
            f"Unknown log level {value!r}; expected one of {', '.join(_LOG_LEVELS)}"
        )
    return level


@dataclass(frozen=True)
class Settings:
    """
    Extraction settings.

    Attributes:
        workers: Threads used to interpret pages of one multi-page call
        cache_size: Documents kept by the service-level handle cache (0 disables it)
        page_separator: Marker placed between page texts in aggregated output
        log_level: Level passed to :func:`pdfreadx.utils.configure_logging`
    """
    workers: int = 1
    cache_size: int = 16
    page_separator: str = DEFAULT_SEPARATOR
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        separator = env.get(ENV_PREFIX + "PAGE_SEPARATOR")
        return cls(
            workers=_parse_int(env, "WORKERS", 1, 1),
            cache_size=_parse_int(env, "CACHE_SIZE", 16, 0),
            page_separator=DEFAULT_SEPARATOR if separator is None else unescape_separator(separator),
            log_level=normalise_log_level(env.get(ENV_PREFIX + "LOG_LEVEL", "WARNING")),
        )

    def with_overrides(self, **overrides: object) -> "Settings":
        """Return a copy with the non-``None`` overrides applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if "log_level" in values:
            values["log_level"] = normalise_log_level(str(values["log_level"]))
        if "page_separator" in values:
            values["page_separator"] = unescape_separator(str(values["page_separator"]))
        workers = values.get("workers")
        if workers is not None and int(workers) < 1:
            raise ConfigurationError(f"workers must be >= 1, got {workers}")
        return replace(self, **values)

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level)
