"""Client for the lending REST API.

Three collections live on the server: books, rental histories and
inventory check histories. Every call returns the server's canonical
representation of the entity it touched.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote

import httpx

from book_lending.book import Book, InventoryCheckRecord, RentalRecord, format_timestamp
from book_lending.config import settings
from book_lending.exceptions import RemoteOperationError
from book_lending.identifiers import normalize
from book_lending.services.http_client import LendingHTTPClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

BOOKS = "books"
RENTAL_HISTORIES = "rentalHistorys"
INVENTORY_CHECK_HISTORIES = "inventoryCheckHistorys"
# The server routes cascade deletes of checks under a lower-case 'h'
INVENTORY_CHECK_CASCADE = "inventoryCheckhistorys"

_WIRE_NAMES = {
    "is_rented": "isRented",
    "rented_by": "rentedBy",
    "rental_date": "rentalDate",
    "return_date": "returnDate",
    "renter_name": "renterName",
    "check_date": "checkDate",
}


def to_wire(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Translate snake_case update fields into the API's camelCase body."""
    body = {}
    for name, value in fields.items():
        if isinstance(value, datetime):
            value = format_timestamp(value)
        body[_WIRE_NAMES.get(name, name)] = value
    return body


@dataclass
class CascadeReport:
    """Outcome of the dependent-record deletes issued after a book is removed."""
    isbn: str
    failures: List[RemoteOperationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class RemoteStoreClient:
    """CRUD calls against the lending API."""

    def __init__(self, base_url: Optional[str] = None, http_client: Optional[LendingHTTPClient] = None):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or LendingHTTPClient()

    def _url(self, resource: str, item_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/{resource}"
        if item_id is not None:
            url += "/" + quote(str(item_id), safe="")
        return url

    async def _send(self, verb: str, resource: str, item_id: Optional[str] = None,
                    body: Optional[Dict[str, Any]] = None) -> Any:
        kwargs: Dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body
            kwargs["headers"] = {"Content-Type": "application/json"}

        try:
            response = await self._http.request(verb, self._url(resource, item_id), **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteOperationError(resource, verb, detail=str(exc)) from exc

        if not response.is_success:
            raise RemoteOperationError(resource, verb, status_code=response.status_code,
                                       detail=response.text or None)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteOperationError(resource, verb, status_code=response.status_code,
                                       detail="response body is not valid JSON") from exc

    @staticmethod
    def _parse(parse: Callable[[Dict[str, Any]], T], data: Any, resource: str, verb: str) -> T:
        """Build an entity from a response item; malformed items become RemoteOperationError."""
        try:
            return parse(data)
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            raise RemoteOperationError(resource, verb, detail=f"malformed entity ({exc!r})") from exc

    async def _send_entity(self, parse: Callable[[Dict[str, Any]], T], verb: str, resource: str,
                           item_id: Optional[str] = None, body: Optional[Dict[str, Any]] = None) -> T:
        data = await self._send(verb, resource, item_id, body)
        if not isinstance(data, dict):
            raise RemoteOperationError(resource, verb, detail="expected an entity in the response body")
        return self._parse(parse, data, resource, verb)

    async def _send_collection(self, parse: Callable[[Dict[str, Any]], T], resource: str) -> List[T]:
        data = await self._send("GET", resource)
        if data is None:
            return []
        if not isinstance(data, list):
            raise RemoteOperationError(resource, "GET", detail="expected a list in the response body")
        return [self._parse(parse, item, resource, "GET") for item in data]

    # ------------------------- Books ------------------------- #
    async def list_books(self) -> List[Book]:
        return await self._send_collection(Book.from_dict, BOOKS)

    async def create_book(self, book: Book) -> Book:
        return await self._send_entity(Book.from_dict, "POST", BOOKS, body=book.to_dict())

    async def update_book(self, isbn: str, **fields) -> Book:
        return await self._send_entity(Book.from_dict, "PUT", BOOKS, normalize(isbn), body=to_wire(fields))

    async def delete_book(self, isbn: str) -> CascadeReport:
        """Delete a book, then its check and rental histories.

        A failure of the book delete itself raises. Failures of the history
        deletes are collected in the returned report.
        """
        isbn = normalize(isbn)
        await self._send("DELETE", BOOKS, isbn)

        report = CascadeReport(isbn=isbn)
        for resource in (INVENTORY_CHECK_CASCADE, RENTAL_HISTORIES):
            try:
                await self._send("DELETE", resource, isbn)
            except RemoteOperationError as exc:
                logger.warning("Cascade delete of %s for ISBN %s failed: %s", resource, isbn, exc)
                report.failures.append(exc)
        return report

    # ------------------------- Rental histories ------------------------- #
    async def list_rental_records(self) -> List[RentalRecord]:
        return await self._send_collection(RentalRecord.from_dict, RENTAL_HISTORIES)

    async def create_rental_record(self, isbn: str, renter_name: str, rental_date: datetime,
                                   return_date: Optional[datetime] = None) -> RentalRecord:
        body = to_wire({
            "isbn": normalize(isbn),
            "rental_date": rental_date,
            "return_date": return_date,
            "renter_name": renter_name,
        })
        return await self._send_entity(RentalRecord.from_dict, "POST", RENTAL_HISTORIES, body=body)

    async def update_rental_record(self, record_id: str, **fields) -> RentalRecord:
        return await self._send_entity(RentalRecord.from_dict, "PUT", RENTAL_HISTORIES, record_id,
                                       body=to_wire(fields))

    # ------------------------- Inventory checks ------------------------- #
    async def list_inventory_checks(self) -> List[InventoryCheckRecord]:
        return await self._send_collection(InventoryCheckRecord.from_dict, INVENTORY_CHECK_HISTORIES)

    async def create_inventory_check(self, isbn: str, check_date: datetime) -> InventoryCheckRecord:
        body = to_wire({"isbn": normalize(isbn), "check_date": check_date})
        return await self._send_entity(InventoryCheckRecord.from_dict, "POST", INVENTORY_CHECK_HISTORIES,
                                       body=body)

    async def close(self) -> None:
        if self._owns_client:
            await self._http.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
