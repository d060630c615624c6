from __future__ import annotations

import logging
from pathlib import Path

import pytest

from config import Settings


def test_settings_read_environment_when_created(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BOOK_CATALOG_HOME", str(tmp_path))
    monkeypatch.setenv("BOOK_CATALOG_OLDER_THAN", "5")
    monkeypatch.setenv("BOOK_CATALOG_CONTACT_SUFFIX", "енко")
    monkeypatch.setenv("HTTP_TIMEOUT", "2.5")
    monkeypatch.setenv("TILE_URL", "http://tiles.local/{z}/{x}/{y}.png")

    settings = Settings()

    assert settings.app_dir == tmp_path
    assert settings.db_path == tmp_path / "books.sqlite3"
    assert settings.tiles_dir == tmp_path / "tiles"
    assert settings.older_than_years == 5
    assert settings.contact_suffix == "енко"
    assert settings.http_timeout == 2.5
    assert settings.tile_url == "http://tiles.local/{z}/{x}/{y}.png"


def test_settings_defaults_without_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BOOK_CATALOG_OLDER_THAN", "BOOK_CATALOG_CONTACT_SUFFIX", "HTTP_TIMEOUT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.older_than_years == 10
    assert settings.contact_suffix == "ко"
    assert settings.http_timeout == 15.0
    assert settings.log_level == "INFO"


@pytest.mark.parametrize("value", ["ten", "7.5", "1_0x"])
def test_malformed_numbers_fall_back_to_defaults(
    value: str, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("BOOK_CATALOG_OLDER_THAN", value)
    monkeypatch.setenv("HTTP_TIMEOUT", "soon")

    with caplog.at_level(logging.WARNING, logger="config"):
        settings = Settings()

    assert settings.older_than_years == 10
    assert settings.http_timeout == 15.0
    assert "BOOK_CATALOG_OLDER_THAN" in caplog.text
    assert "HTTP_TIMEOUT" in caplog.text
