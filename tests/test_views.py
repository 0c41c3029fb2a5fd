from datetime import datetime, timedelta, timezone

import pytest

from book_lending.book import Book, InventoryCheckRecord, RentalRecord
from book_lending.views import (
    clamp_page,
    inventory_listing,
    inventory_page,
    paginate,
    registered_listing,
    rented_listing,
)

NOW = datetime(2024, 4, 10, 12, 0, tzinfo=timezone.utc)


def _books(*titles):
    return [Book(isbn=f"97840000000{i:02d}", title=t) for i, t in enumerate(titles)]


def _check(isbn, when, check_id="c"):
    return InventoryCheckRecord(id=check_id, isbn=isbn, check_date=when)


def test_paginate_basic():
    page = paginate(list(range(25)), page=2, page_size=10)
    assert page.items == list(range(10, 20))
    assert page.total_pages == 3
    assert page.total_items == 25
    assert page.has_previous and page.has_next


@pytest.mark.parametrize("requested,total,expected", [(0, 3, 1), (5, 3, 3), (2, 3, 2), (4, 0, 1)])
def test_clamp_page(requested, total, expected):
    assert clamp_page(requested, total) == expected


def test_paginate_rejects_bad_page_size():
    with pytest.raises(ValueError):
        paginate([1], page_size=0)


def test_registered_listing_filters_case_insensitively_and_sorts():
    books = _books("python Cookbook", "Algorithms", "Fluent Python", "Databases")
    page = registered_listing(books, search="PYTHON")
    assert [b.title for b in page.items] == ["Fluent Python", "python Cookbook"]


def test_registered_listing_sorts_by_title():
    books = _books("Cherry", "apple", "Banana")
    page = registered_listing(books)
    assert [b.title for b in page.items] == ["apple", "Banana", "Cherry"]


def test_registered_listing_clamps_page_after_shrink():
    books = _books(*[f"Book {i:02d}" for i in range(21)])
    assert registered_listing(books, page=3, page_size=10).items[0].title == "Book 20"

    # One book removed: page 3 no longer exists, last page is shown instead
    shrunk = registered_listing(books[:20], page=3, page_size=10)
    assert shrunk.page == 2
    assert len(shrunk.items) == 10


def test_registered_listing_empty():
    page = registered_listing([], page=4)
    assert page.items == []
    assert page.page == 1
    assert page.total_pages == 0


def test_never_checked_sorts_before_checked_yesterday():
    zebra, apple = Book("9784000000000", "Zebra"), Book("9784000000001", "Apple")
    checks = [_check("9784000000001", NOW - timedelta(days=1))]

    rows = inventory_listing([apple, zebra], checks, [])

    assert [r.book.title for r in rows] == ["Zebra", "Apple"]
    assert rows[0].last_check is None


def test_inventory_listing_orders_oldest_check_first_and_uses_newest_check():
    a, b, c = _books("A", "B", "C")
    checks = [
        _check(b.isbn, NOW, "b2"),
        _check(a.isbn, NOW - timedelta(days=1), "a2"),
        _check(b.isbn, NOW - timedelta(days=30), "b1"),
        _check(c.isbn, NOW - timedelta(days=5), "c1"),
        _check(a.isbn, NOW - timedelta(days=40), "a1"),
    ]
    rows = inventory_listing([a, b, c], checks, [])

    assert [r.book.title for r in rows] == ["C", "A", "B"]
    assert [r.last_check.id for r in rows] == ["c1", "a2", "b2"]


def test_inventory_listing_keeps_order_for_unchecked_books():
    books = _books("B", "A", "C")
    rows = inventory_listing(books, [], [])
    assert [r.book.title for r in rows] == ["B", "A", "C"]


def test_inventory_listing_attaches_current_rental_only_for_rented_books():
    rented = Book("9784000000000", "Rented", is_rented=True, rented_by="Taro")
    free = Book("9784000000001", "Free")
    records = [
        RentalRecord(id="1", isbn=rented.isbn, rental_date=NOW - timedelta(days=3), renter_name="Taro"),
        RentalRecord(id="2", isbn=free.isbn, rental_date=NOW, renter_name="Stale"),
    ]
    rows = {r.book.title: r for r in inventory_listing([rented, free], [], records)}

    assert rows["Rented"].current_rental.id == "1"
    assert rows["Free"].current_rental is None


def test_inventory_page():
    books = _books(*"ABCDEFGHIJKL")
    page = inventory_page(books, [], [], page=2, page_size=10)
    assert [r.book.title for r in page.items] == ["K", "L"]


def test_rented_listing_uses_latest_open_record_and_sorts():
    b1 = Book("9784000000000", "Zeta", is_rented=True, rented_by="Jiro")
    b2 = Book("9784000000001", "Alpha", is_rented=True, rented_by="Hanako")
    b3 = Book("9784000000002", "Beta")
    records = [
        RentalRecord(id="1", isbn=b1.isbn, rental_date=NOW - timedelta(days=9), renter_name="Taro",
                     return_date=NOW - timedelta(days=8)),
        RentalRecord(id="2", isbn=b1.isbn, rental_date=NOW - timedelta(days=2), renter_name="Jiro"),
    ]

    rows = rented_listing([b1, b2, b3], records)

    assert [r.book.title for r in rows] == ["Alpha", "Zeta"]
    assert rows[0].rental_date is None
    assert rows[0].renter_name == "Hanako"
    assert rows[1].rental_date == NOW - timedelta(days=2)
    assert rows[1].renter_name == "Jiro"


def test_rented_listing_matches_hyphenated_record_ids():
    book = Book("9784000000000", "A", is_rented=True, rented_by="Taro")
    record = RentalRecord(id="1", isbn="978-4-00-000000-0", rental_date=NOW, renter_name="Taro")
    assert rented_listing([book], [record])[0].rental_date == NOW
