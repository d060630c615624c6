from __future__ import annotations

from pathlib import Path

import pandas
import pytest

import cli
from catalog import CatalogStore


@pytest.fixture
def store(tmp_path: Path) -> CatalogStore:
    test_store = CatalogStore(db_path=tmp_path / "cli.sqlite3")
    yield test_store
    test_store.close()


def _feed(monkeypatch: pytest.MonkeyPatch, answers: list) -> None:
    replies = iter(answers)
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(replies))


def test_prompt_new_book_adds_record(store: CatalogStore, monkeypatch: pytest.MonkeyPatch) -> None:
    _feed(monkeypatch, ["Kobzar", "Taras Shevchenko", "1840", "114", "Saint Petersburg"])

    book_id = cli.prompt_new_book(store)

    assert store.get_book(book_id)["publisher_address"] == "Saint Petersburg"


def test_prompt_new_book_rejects_bad_numbers(
    store: CatalogStore, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    _feed(monkeypatch, ["Kobzar", "Taras Shevchenko", "eighteen forty", "114", "Saint Petersburg"])

    assert cli.prompt_new_book(store) is None
    assert store.count_books() == 0
    assert "whole number" in capsys.readouterr().out


def test_prompt_new_book_rejects_oversized_year(
    store: CatalogStore, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    _feed(monkeypatch, ["Kobzar", "Taras Shevchenko", "99999999999999999999", "114", "Saint Petersburg"])

    assert cli.prompt_new_book(store) is None
    assert store.count_books() == 0
    assert "too large" in capsys.readouterr().out


def test_prompt_delete_with_unknown_huge_id(
    store: CatalogStore, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    _feed(monkeypatch, ["99999999999999999999", "²"])

    cli.prompt_delete(store)
    cli.prompt_delete(store)

    output = capsys.readouterr().out
    assert "No book with id 99999999999999999999." in output
    assert "Please enter the id using digits only." in output


def test_export_catalog_writes_csv(store: CatalogStore, tmp_path: Path) -> None:
    store.add_book(
        {
            "name": "Kobzar",
            "author_name": "Taras Shevchenko",
            "year_of_publish": 1840,
            "publisher_address": "Saint Petersburg",
            "number_of_pages": 114,
        }
    )

    target = cli.export_catalog(store, tmp_path / "catalog.csv")

    frame = pandas.read_csv(target)
    assert list(frame.columns) == cli.EXPORT_COLUMNS
    assert frame.loc[0, "name"] == "Kobzar"
    assert frame.loc[0, "year_of_publish"] == 1840


def test_interactive_session_lists_and_deletes(
    store: CatalogStore, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    book_id = store.add_book(
        {
            "name": "Zapovit",
            "author_name": "Taras Shevchenko",
            "year_of_publish": 1845,
            "publisher_address": "Kyiv",
            "number_of_pages": 2,
        }
    )
    _feed(monkeypatch, ["l", "o", "d", str(book_id), "x", "q"])
    monkeypatch.setattr(store, "close", lambda: None)

    cli.interactive_session(store)

    output = capsys.readouterr().out
    assert "Name: Zapovit" in output
    assert "Percentage: 100.00%" in output
    assert f"Deleted book {book_id}." in output
    assert "Please enter a valid option." in output
    assert store.count_books() == 0
