from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from book_lending.identifiers import normalize


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the API. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        # JavaScript istemcileri sona 'Z' ekler
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class Book:
    """Kütüphanedeki tek bir kitabı veya dergiyi temsil eder."""

    def __init__(self, isbn: str, title: str, author: str = "", publisher: str = "",
                 is_rented: bool = False, rented_by: str | None = None) -> None:
        self.isbn = normalize(isbn)
        self.title = (title or "").strip()
        self.author = (author or "").strip()
        self.publisher = (publisher or "").strip()
        self.is_rented = bool(is_rented)
        self.rented_by = rented_by

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ISBN: {self.isbn})"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Book(isbn={self.isbn!r}, title={self.title!r}, is_rented={self.is_rented!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> dict:
        return {
            "isbn": self.isbn,
            "title": self.title,
            "author": self.author,
            "publisher": self.publisher,
            "isRented": self.is_rented,
            "rentedBy": self.rented_by,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            isbn=data["isbn"],
            title=data.get("title", ""),
            author=data.get("author", ""),
            publisher=data.get("publisher", ""),
            is_rented=data.get("isRented", False),
            rented_by=data.get("rentedBy"),
        )


@dataclass
class RentalRecord:
    """One checkout of a book. ``return_date`` is None while the loan is open."""
    id: str
    isbn: str
    rental_date: datetime
    renter_name: str
    return_date: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.return_date is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "isbn": self.isbn,
            "rentalDate": format_timestamp(self.rental_date),
            "returnDate": format_timestamp(self.return_date),
            "renterName": self.renter_name,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "RentalRecord":
        return RentalRecord(
            id=str(data["id"]),
            isbn=normalize(data["isbn"]),
            rental_date=parse_timestamp(data["rentalDate"]),
            return_date=parse_timestamp(data.get("returnDate")),
            renter_name=data.get("renterName", ""),
        )


@dataclass
class InventoryCheckRecord:
    """Bir kitap için tek bir envanter kontrolü kaydı."""
    id: str
    isbn: str
    check_date: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "isbn": self.isbn,
            "checkDate": format_timestamp(self.check_date),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "InventoryCheckRecord":
        return InventoryCheckRecord(
            id=str(data["id"]),
            isbn=normalize(data["isbn"]),
            check_date=parse_timestamp(data["checkDate"]),
        )
