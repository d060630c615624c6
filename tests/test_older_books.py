from __future__ import annotations

import datetime
import unittest

from catalog import build_older_report, format_percentage, older_books, older_percentage


def _book(name: str, year: int) -> dict:
    return {
        "id": 0,
        "name": name,
        "author_name": "Author",
        "year_of_publish": year,
        "publisher_address": "Lviv",
        "number_of_pages": 200,
    }


class OlderBooksTests(unittest.TestCase):
    def test_threshold_is_strictly_greater(self) -> None:
        books = [_book("Eleven", 2013), _book("Ten", 2014), _book("Nine", 2015)]

        result = older_books(books, years=10, current_year=2024)

        self.assertEqual([book["name"] for book in result], ["Eleven"])

    def test_preserves_catalog_order(self) -> None:
        books = [_book("B", 1950), _book("A", 1900), _book("New", 2023), _book("C", 1980)]

        result = older_books(books, years=10, current_year=2024)

        self.assertEqual([book["name"] for book in result], ["B", "A", "C"])

    def test_defaults_to_current_calendar_year(self) -> None:
        this_year = datetime.date.today().year
        books = [_book("Old", this_year - 11), _book("Recent", this_year - 10)]

        result = older_books(books)

        self.assertEqual([book["name"] for book in result], ["Old"])

    def test_future_years_are_never_older(self) -> None:
        self.assertEqual(older_books([_book("Future", 2100)], years=10, current_year=2024), [])


class PercentageTests(unittest.TestCase):
    def test_percentage_of_catalog(self) -> None:
        self.assertAlmostEqual(older_percentage(1, 3), 33.333333, places=5)
        self.assertEqual(older_percentage(3, 3), 100.0)

    def test_empty_catalog_reports_zero(self) -> None:
        self.assertEqual(older_percentage(0, 0), 0.0)

    def test_two_decimal_formatting(self) -> None:
        self.assertEqual(format_percentage(older_percentage(1, 3)), "33.33%")
        self.assertEqual(format_percentage(older_percentage(2, 3)), "66.67%")
        self.assertEqual(format_percentage(0.0), "0.00%")

    def test_report_bundles_books_total_and_percentage(self) -> None:
        books = [_book("Old", 1990), _book("Older", 1970), _book("New", 2022), _book("Newer", 2023)]

        report = build_older_report(books, years=10, current_year=2024)

        self.assertEqual(report.total, 4)
        self.assertEqual(report.years, 10)
        self.assertEqual([book["name"] for book in report.books], ["Old", "Older"])
        self.assertEqual(report.percentage, 50.0)
        self.assertEqual(report.percentage_label, "50.00%")


if __name__ == "__main__":
    unittest.main()
