import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from book_lending.book import Book, InventoryCheckRecord, RentalRecord, utc_now
from book_lending.exceptions import (
    DanglingReferenceAnomaly,
    DuplicateBookError,
    InvalidIdentifierError,
    RemoteOperationError,
)
from book_lending.identifiers import normalize
from book_lending.services.remote_store import CascadeReport, RemoteStoreClient

logger = logging.getLogger(__name__)


@dataclass
class ReturnResult:
    """Outcome of returning a book."""
    book: Book
    closed_record: Optional[RentalRecord] = None
    anomaly: Optional[DanglingReferenceAnomaly] = None


def latest_open_record(records, isbn: str) -> Optional[RentalRecord]:
    """Open record for ``isbn`` with the latest rental date.

    Ties go to the record that appears last in ``records``.
    """
    norm = normalize(isbn)
    best: Optional[RentalRecord] = None
    for record in records:
        if normalize(record.isbn) != norm or not record.is_open:
            continue
        if best is None or record.rental_date >= best.rental_date:
            best = record
    return best


class LendingLibrary:
    """In-memory owner of books, rental records and inventory checks.

    Local state only changes after the matching remote call has completed.
    """

    def __init__(self, remote: Optional[RemoteStoreClient] = None,
                 clock: Optional[Callable[[], datetime]] = None) -> None:
        self.remote = remote or RemoteStoreClient()
        self._clock = clock or utc_now
        self._books: List[Book] = []
        self._rental_records: List[RentalRecord] = []
        # En yeni önce
        self._inventory_checks: List[InventoryCheckRecord] = []
        self.loading = False
        self.load_error: Optional[Exception] = None

    # ------------------------- Salt okunur durum ------------------------- #
    @property
    def books(self) -> Tuple[Book, ...]:
        return tuple(self._books)

    @property
    def rental_records(self) -> Tuple[RentalRecord, ...]:
        return tuple(self._rental_records)

    @property
    def inventory_checks(self) -> Tuple[InventoryCheckRecord, ...]:
        return tuple(self._inventory_checks)

    @property
    def load_failed(self) -> bool:
        return self.load_error is not None

    # ------------------------- Yükleme ------------------------- #
    async def initialize(self) -> None:
        """Üç koleksiyonu birlikte getir. Herhangi bir hata depoyu boş bırakır."""
        self.loading = True
        try:
            books, records, checks = await asyncio.gather(
                self.remote.list_books(),
                self.remote.list_rental_records(),
                self.remote.list_inventory_checks(),
            )
        except Exception as exc:
            logger.error("Failed to load lending data: %s", exc)
            self._books, self._rental_records, self._inventory_checks = [], [], []
            self.load_error = exc
        else:
            self._books = list(books)
            self._rental_records = list(records)
            self._inventory_checks = sorted(checks, key=lambda c: c.check_date, reverse=True)
            self.load_error = None
            logger.info("Loaded %d books, %d rental records, %d inventory checks",
                        len(self._books), len(self._rental_records), len(self._inventory_checks))
        finally:
            self.loading = False

    # ------------------------- Çekirdek işlemler ------------------------- #
    async def add_book(self, book: Book) -> Book:
        """Önceden oluşturulmuş bir Kitap ekleyin. Boş ve yinelenen ISBN'ler ağ çağrısından önce reddedilir."""
        book.isbn = normalize(book.isbn)
        if not book.isbn:
            raise InvalidIdentifierError()
        if self.find_book(book.isbn):
            raise DuplicateBookError(book.isbn)

        created = await self.remote.create_book(book)
        self._books.append(created)
        logger.info("Registered book %s (%s)", created.isbn, created.title)
        return created

    async def remove_book(self, isbn: str) -> CascadeReport:
        """Delete a book and drop it and its histories from local state.

        Local records are dropped even when some remote history deletes
        failed; the returned report lists those failures.
        """
        norm = normalize(isbn)
        report = await self.remote.delete_book(norm)

        self._books = [b for b in self._books if normalize(b.isbn) != norm]
        self._rental_records = [r for r in self._rental_records if normalize(r.isbn) != norm]
        self._inventory_checks = [c for c in self._inventory_checks if normalize(c.isbn) != norm]

        if report.ok:
            logger.info("Removed book %s", norm)
        else:
            logger.warning("Removed book %s locally but %d history delete(s) failed on the server",
                           norm, len(report.failures))
        return report

    async def rent_book(self, isbn: str, renter_name: str) -> RentalRecord:
        """Önce bir kiralama kaydı aç, ardından kitabı kiralanmış olarak işaretle.

        Kitabın işaretlenmesi başarısız olursa yeni kayıt sunucuda yeniden
        kapatılır ve asıl hata tekrar fırlatılır. Bozuk bir yanıt gövdesi de
        RemoteOperationError olarak gelir.
        """
        norm = normalize(isbn)
        record = await self.remote.create_rental_record(
            isbn=norm,
            renter_name=renter_name,
            rental_date=self._clock(),
            return_date=None,
        )

        try:
            updated = await self.remote.update_book(norm, is_rented=True, rented_by=renter_name)
        except RemoteOperationError:
            await self._close_orphaned_record(record)
            raise

        self._replace_book(updated)
        self._rental_records.append(record)
        logger.info("Rented book %s to %s", norm, renter_name)
        return record

    async def _close_orphaned_record(self, record: RentalRecord) -> None:
        try:
            await self.remote.update_rental_record(record.id, return_date=self._clock())
        except RemoteOperationError as exc:
            logger.error("Could not close orphaned rental record %s for ISBN %s: %s",
                         record.id, record.isbn, exc)
        else:
            logger.warning("Closed orphaned rental record %s for ISBN %s after the book update failed",
                           record.id, record.isbn)

    async def return_book(self, isbn: str) -> ReturnResult:
        """Mark the book available, then close its open rental record."""
        norm = normalize(isbn)
        open_record = self.open_record_for_book(norm)

        updated = await self.remote.update_book(norm, is_rented=False, rented_by=None)
        self._replace_book(updated)

        if open_record is None:
            anomaly = DanglingReferenceAnomaly(norm)
            logger.warning(anomaly.message)
            return ReturnResult(book=updated, anomaly=anomaly)

        closed = await self.remote.update_rental_record(open_record.id, return_date=self._clock())
        self._rental_records = [closed if r.id == open_record.id else r for r in self._rental_records]
        logger.info("Returned book %s", norm)
        return ReturnResult(book=updated, closed_record=closed)

    async def add_inventory_check(self, isbn: str) -> InventoryCheckRecord:
        norm = normalize(isbn)
        check = await self.remote.create_inventory_check(isbn=norm, check_date=self._clock())
        self._inventory_checks.insert(0, check)
        logger.info("Recorded inventory check for %s", norm)
        return check

    # ------------------------- Sorgular ------------------------- #
    def find_book(self, isbn: str) -> Optional[Book]:
        norm = normalize(isbn)
        for book in self._books:
            if normalize(book.isbn) == norm:
                return book
        return None

    def history_for_book(self, isbn: str) -> List[RentalRecord]:
        """Bir kitabın kiralama kayıtları, en yeni kiralama önce."""
        norm = normalize(isbn)
        records = [r for r in self._rental_records if normalize(r.isbn) == norm]
        return sorted(records, key=lambda r: r.rental_date, reverse=True)

    def open_record_for_book(self, isbn: str) -> Optional[RentalRecord]:
        return latest_open_record(self._rental_records, isbn)

    def last_check_for_book(self, isbn: str) -> Optional[InventoryCheckRecord]:
        norm = normalize(isbn)
        for check in self._inventory_checks:
            if normalize(check.isbn) == norm:
                return check
        return None

    # ------------------------- Yardımcılar ------------------------- #
    def _replace_book(self, updated: Book) -> None:
        norm = normalize(updated.isbn)
        self._books = [updated if normalize(b.isbn) == norm else b for b in self._books]

    async def close(self) -> None:
        await self.remote.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
