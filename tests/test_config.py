from __future__ import annotations

import logging

import pytest

from pdfreadx.config import Settings, unescape_separator
from pdfreadx.exceptions import ConfigurationError


def test_defaults():
    settings = Settings.from_env({})

    assert settings == Settings()
    assert settings.workers == 1
    assert settings.cache_size == 16
    assert settings.page_separator == "\f"
    assert settings.log_level == "WARNING"
    assert settings.logging_level == logging.WARNING


def test_values_from_environment():
    settings = Settings.from_env(
        {
            "PDFREADX_WORKERS": "4",
            "PDFREADX_CACHE_SIZE": "0",
            "PDFREADX_PAGE_SEPARATOR": "\\n\\n",
            "PDFREADX_LOG_LEVEL": "debug",
        }
    )

    assert settings.workers == 4
    assert settings.cache_size == 0
    assert settings.page_separator == "\n\n"
    assert settings.log_level == "DEBUG"


def test_reads_process_environment(monkeypatch):
    monkeypatch.setenv("PDFREADX_WORKERS", "3")
    assert Settings.from_env().workers == 3


@pytest.mark.parametrize(
    "environ",
    [
        {"PDFREADX_WORKERS": "many"},
        {"PDFREADX_WORKERS": "0"},
        {"PDFREADX_CACHE_SIZE": "-1"},
        {"PDFREADX_LOG_LEVEL": "LOUD"},
    ],
)
def test_invalid_values_raise(environ):
    with pytest.raises(ConfigurationError) as excinfo:
        Settings.from_env(environ)

    assert excinfo.value.kind == "Configuration"


def test_blank_values_use_defaults():
    assert Settings.from_env({"PDFREADX_WORKERS": "  "}).workers == 1


def test_overrides():
    base = Settings(workers=2)

    updated = base.with_overrides(workers=None, page_separator="\\t", log_level="info")

    assert updated.workers == 2
    assert updated.page_separator == "\t"
    assert updated.log_level == "INFO"
    assert base.page_separator == "\f"


def test_override_rejects_zero_workers():
    with pytest.raises(ConfigurationError):
        Settings().with_overrides(workers=0)


def test_unescape_separator():
    assert unescape_separator("\\f--\\n") == "\f--\n"
    assert unescape_separator("plain") == "plain"
