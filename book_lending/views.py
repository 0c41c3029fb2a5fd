"""Read-only listings derived from the store's collections.

All functions here are pure: they take the collections and return new
lists, so they can be tested without a store or a server.
"""

from __future__ import annotations

import locale
import math
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from book_lending.book import Book, InventoryCheckRecord, RentalRecord
from book_lending.config import settings
from book_lending.identifiers import normalize
from book_lending.library import latest_open_record

PAGE_SIZE = settings.page_size


def sort_key_title(title: str) -> str:
    """Collation key for titles (width-folded, case-insensitive, locale-aware)."""
    folded = unicodedata.normalize("NFKC", title or "").casefold()
    return locale.strxfrm(folded)


def clamp_page(page: int, total_pages: int) -> int:
    return min(max(page, 1), max(total_pages, 1))


@dataclass
class Page:
    items: list
    page: int
    total_pages: int
    total_items: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def paginate(items: Sequence, page: int = 1, page_size: int = PAGE_SIZE) -> Page:
    """Slice ``items`` into a page. Out-of-range pages are pulled back into range."""
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    total_pages = math.ceil(len(items) / page_size)
    page = clamp_page(page, total_pages)
    start = (page - 1) * page_size
    return Page(
        items=list(items[start:start + page_size]),
        page=page,
        total_pages=total_pages,
        total_items=len(items),
    )


# ------------------------- Registered books ------------------------- #
def filter_and_sort_books(books: Iterable[Book], search: str = "") -> List[Book]:
    term = (search or "").strip().casefold()
    matched = [b for b in books if term in b.title.casefold()]
    return sorted(matched, key=lambda b: sort_key_title(b.title))


def registered_listing(books: Iterable[Book], search: str = "", page: int = 1,
                       page_size: int = PAGE_SIZE) -> Page:
    return paginate(filter_and_sort_books(books, search), page, page_size)


# ------------------------- Inventory ------------------------- #
@dataclass
class InventoryRow:
    book: Book
    last_check: Optional[InventoryCheckRecord] = None
    current_rental: Optional[RentalRecord] = None

    @property
    def last_check_date(self) -> Optional[datetime]:
        return self.last_check.check_date if self.last_check else None


def inventory_listing(books: Iterable[Book], checks: Sequence[InventoryCheckRecord],
                      records: Sequence[RentalRecord]) -> List[InventoryRow]:
    """Books ordered by last inventory check, oldest first.

    ``checks`` must be newest first. Books never checked come before all
    others; ties keep the input order.
    """
    latest_checks = {}
    for check in checks:
        latest_checks.setdefault(normalize(check.isbn), check)

    rows = []
    for book in books:
        row = InventoryRow(book=book, last_check=latest_checks.get(normalize(book.isbn)))
        if book.is_rented:
            row.current_rental = latest_open_record(records, book.isbn)
        rows.append(row)

    # Never-checked rows sort as the oldest
    return sorted(rows, key=lambda r: (r.last_check is not None,
                                       r.last_check_date.timestamp() if r.last_check else 0.0))


def inventory_page(books: Iterable[Book], checks: Sequence[InventoryCheckRecord],
                   records: Sequence[RentalRecord], page: int = 1, page_size: int = PAGE_SIZE) -> Page:
    return paginate(inventory_listing(books, checks, records), page, page_size)


# ------------------------- Rented books ------------------------- #
@dataclass
class RentedRow:
    book: Book
    rental_date: Optional[datetime] = None
    renter_name: Optional[str] = None


def rented_listing(books: Iterable[Book], records: Sequence[RentalRecord]) -> List[RentedRow]:
    rows = []
    for book in books:
        if not book.is_rented:
            continue
        record = latest_open_record(records, book.isbn)
        rows.append(RentedRow(
            book=book,
            rental_date=record.rental_date if record else None,
            renter_name=book.rented_by or (record.renter_name if record else None),
        ))
    return sorted(rows, key=lambda r: sort_key_title(r.book.title))
