from __future__ import annotations

import datetime
import logging
import re
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import get_settings

logger = logging.getLogger(__name__)

BOOK_COLUMNS = [
    "name",
    "author_name",
    "year_of_publish",
    "publisher_address",
    "number_of_pages",
]

DEFAULT_OLDER_THAN_YEARS = 10

# SQLite INTEGER is a signed 64-bit value.
SQLITE_INT_MIN = -(2 ** 63)
SQLITE_INT_MAX = 2 ** 63 - 1

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


class CatalogError(RuntimeError):
    """Raised when the underlying SQLite database cannot be used."""


class BookFormError(ValueError):
    """Raised when the new-book form holds values that cannot be stored."""


@dataclass
class OlderBooksReport:
    books: List[Dict[str, Any]]
    total: int
    years: int
    percentage: float = field(init=False)

    def __post_init__(self) -> None:
        self.percentage = older_percentage(len(self.books), self.total)

    @property
    def percentage_label(self) -> str:
        return format_percentage(self.percentage)


class CatalogStore:
    """SQLite-backed store for the book catalog."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or get_settings().db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as error:
            raise CatalogError(f"Unable to open {self.db_path}: {error}") from error
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()
        logger.debug("Opened catalog at %s", self.db_path)

    # --------------------------------------------------------------------- #
    # Schema
    # --------------------------------------------------------------------- #
    def _ensure_schema(self) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS books (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    author_name TEXT NOT NULL,
                    year_of_publish INTEGER NOT NULL,
                    publisher_address TEXT NOT NULL,
                    number_of_pages INTEGER NOT NULL
                );
                """
            )

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # --------------------------------------------------------------------- #
    # Book management
    # --------------------------------------------------------------------- #
    def add_book(self, record: Dict[str, Any]) -> int:
        """Insert a book and return the id assigned by SQLite."""
        values = [record.get(column) for column in BOOK_COLUMNS]
        placeholders = ", ".join("?" for _ in BOOK_COLUMNS)
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(
                    f"""
                    INSERT INTO books ({", ".join(BOOK_COLUMNS)})
                    VALUES ({placeholders})
                    """,
                    values,
                )
                book_id = cursor.lastrowid
        except (sqlite3.Error, OverflowError) as error:
            logger.error("Unable to add book %r: %s", record.get("name"), error)
            raise CatalogError(str(error)) from error
        logger.info("Added book %s (%r)", book_id, record.get("name"))
        return int(book_id)

    def list_books(self) -> List[Dict[str, Any]]:
        try:
            with self._lock:
                rows = self._conn.execute("SELECT * FROM books ORDER BY id;").fetchall()
        except sqlite3.Error as error:
            logger.error("Unable to fetch books: %s", error)
            raise CatalogError(str(error)) from error
        return [dict(row) for row in rows]

    def get_book(self, book_id: int) -> Optional[Dict[str, Any]]:
        if not _fits_integer_column(book_id):
            return None
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT * FROM books WHERE id = ?;",
                    (book_id,),
                ).fetchone()
        except sqlite3.Error as error:
            logger.error("Unable to fetch book %s: %s", book_id, error)
            raise CatalogError(str(error)) from error
        return dict(row) if row else None

    def delete_book(self, book_id: int) -> bool:
        if not _fits_integer_column(book_id):
            return False
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute("DELETE FROM books WHERE id = ?;", (book_id,))
        except sqlite3.Error as error:
            logger.error("Unable to delete book %s: %s", book_id, error)
            raise CatalogError(str(error)) from error
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted book %s", book_id)
        return deleted

    def count_books(self) -> int:
        try:
            with self._lock:
                return int(self._conn.execute("SELECT COUNT(*) FROM books;").fetchone()[0])
        except sqlite3.Error as error:
            logger.error("Unable to count books: %s", error)
            raise CatalogError(str(error)) from error

    def older_report(
        self,
        years: int = DEFAULT_OLDER_THAN_YEARS,
        current_year: Optional[int] = None,
    ) -> OlderBooksReport:
        return build_older_report(self.list_books(), years=years, current_year=current_year)


# ------------------------------------------------------------------------------
# Form parsing
# ------------------------------------------------------------------------------
def _fits_integer_column(number: int) -> bool:
    return SQLITE_INT_MIN <= number <= SQLITE_INT_MAX


def _parse_int(value: Any, label: str) -> int:
    text = str(value if value is not None else "").strip()
    # ASCII digits only: int() would also take "1_999" and non-Latin digits.
    if not _INTEGER_PATTERN.fullmatch(text):
        raise BookFormError(f"{label} must be a whole number.")
    number = int(text)
    if not _fits_integer_column(number):
        raise BookFormError(f"{label} is too large.")
    return number


def parse_book_form(
    name: str,
    author_name: str,
    year_text: Any,
    pages_text: Any,
    publisher_address: str,
) -> Dict[str, Any]:
    """Turn raw form input into a storage-ready record."""
    return {
        "name": (name or "").strip(),
        "author_name": (author_name or "").strip(),
        "year_of_publish": _parse_int(year_text, "Year of publish"),
        "publisher_address": (publisher_address or "").strip(),
        "number_of_pages": _parse_int(pages_text, "Number of pages"),
    }


def describe_book(book: Dict[str, Any]) -> str:
    lines = [
        f"Id: {book.get('id')}",
        f"Name: {book.get('name')}",
        f"Author: {book.get('author_name')}",
        f"Year of Publish: {book.get('year_of_publish')}",
        f"Publisher Address: {book.get('publisher_address')}",
        f"Number of Pages: {book.get('number_of_pages')}",
    ]
    return "\n".join(lines)


# ------------------------------------------------------------------------------
# Older-than view
# ------------------------------------------------------------------------------
def older_books(
    books: List[Dict[str, Any]],
    years: int = DEFAULT_OLDER_THAN_YEARS,
    current_year: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Books published strictly more than ``years`` years before ``current_year``."""
    if current_year is None:
        current_year = datetime.date.today().year
    return [book for book in books if current_year - int(book["year_of_publish"]) > years]


def older_percentage(older_count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return older_count / total * 100


def format_percentage(value: float) -> str:
    return f"{value:.2f}%"


def build_older_report(
    books: List[Dict[str, Any]],
    years: int = DEFAULT_OLDER_THAN_YEARS,
    current_year: Optional[int] = None,
) -> OlderBooksReport:
    return OlderBooksReport(
        books=older_books(books, years=years, current_year=current_year),
        total=len(books),
        years=years,
    )
