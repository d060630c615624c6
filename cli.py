from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas

from catalog import (
    BOOK_COLUMNS,
    BookFormError,
    CatalogError,
    CatalogStore,
    build_older_report,
    describe_book,
    parse_book_form,
)
from config import configure_logging, get_settings

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["id"] + BOOK_COLUMNS

MENU = """
Choose an action:
  a  add a book
  l  list books
  o  books older than {years} years
  d  delete a book
  e  export the catalog to a CSV spreadsheet
  q  quit
"""


def books_frame(books: List[Dict[str, Any]]) -> pandas.DataFrame:
    return pandas.DataFrame(books, columns=EXPORT_COLUMNS)


def export_catalog(store: CatalogStore, path: Path) -> Path:
    """Write every book to a CSV spreadsheet."""
    frame = books_frame(store.list_books())
    frame.to_csv(path, index=False)
    logger.info("Exported %d books to %s", len(frame), path)
    return path


def print_books(books: List[Dict[str, Any]]) -> None:
    if not books:
        print("The catalog is empty.")
        return
    for book in books:
        print(describe_book(book))
        print()


def prompt_new_book(store: CatalogStore) -> Optional[int]:
    name = input("Name: ").strip()
    author = input("Author Name: ").strip()
    year = input("Year of Publish: ").strip()
    pages = input("Number of Pages: ").strip()
    address = input("Publisher Address: ").strip()
    try:
        record = parse_book_form(name, author, year, pages, address)
    except BookFormError as error:
        print(error)
        return None
    book_id = store.add_book(record)
    print(f"Added '{record['name']}' with id {book_id}.")
    return book_id


def prompt_delete(store: CatalogStore) -> None:
    value = input("Id of the book to delete: ").strip()
    if not value.isdecimal():
        print("Please enter the id using digits only.")
        return
    if store.delete_book(int(value)):
        print(f"Deleted book {value}.")
    else:
        print(f"No book with id {value}.")


def print_older_report(store: CatalogStore, years: int) -> None:
    report = build_older_report(store.list_books(), years=years)
    print(f"\nOlder than {years} Years")
    print(f"Percentage: {report.percentage_label}")
    for book in report.books:
        print(f"Name: {book['name']}")


def interactive_session(store: Optional[CatalogStore] = None) -> None:
    """Run the interactive catalog session."""
    store = store or CatalogStore()
    years = get_settings().older_than_years

    try:
        while True:
            choice = input(MENU.format(years=years) + "> ").strip().lower()
            try:
                if choice in {"q", "quit"}:
                    break
                if choice == "a":
                    prompt_new_book(store)
                elif choice == "l":
                    print_books(store.list_books())
                elif choice == "o":
                    print_older_report(store, years)
                elif choice == "d":
                    prompt_delete(store)
                elif choice == "e":
                    target = input("Spreadsheet path (.csv): ").strip()
                    if target:
                        path = export_catalog(store, Path(target).expanduser())
                        print(f"Saved catalog to {path}")
                else:
                    print("Please enter a valid option.")
            except CatalogError as error:
                print(f"Database error: {error}")
    finally:
        store.close()

    print("\nSession complete.")


if __name__ == "__main__":
    configure_logging()
    interactive_session()
