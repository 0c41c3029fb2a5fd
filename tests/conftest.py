import json
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import httpx
import pytest

from book_lending.library import LendingLibrary
from book_lending.services.http_client import LendingHTTPClient
from book_lending.services.remote_store import RemoteStoreClient

BASE_URL = "http://lending.test/api"
START = datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Returns a new timestamp one minute later on every call."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


class FakeLendingServer:
    """In-memory stand-in for the lending REST API."""

    def __init__(self):
        self.books: List[dict] = []
        self.rentals: List[dict] = []
        self.checks: List[dict] = []
        self.requests: List[Tuple[str, str]] = []
        self.failures: Dict[Tuple[str, str], int] = {}
        self.canned: Dict[Tuple[str, str], object] = {}
        self._next_id = 1

    def fail(self, method: str, resource: str, status: int = 500) -> None:
        self.failures[(method, resource)] = status

    def respond_with(self, method: str, resource: str, body) -> None:
        """Answer every matching request with 200 and ``body`` instead of handling it."""
        self.canned[(method, resource)] = body

    def calls(self, method: Optional[str] = None, resource: Optional[str] = None) -> List[Tuple[str, str]]:
        return [
            (m, r) for m, r in self.requests
            if (method is None or m == method) and (resource is None or r == resource)
        ]

    def _new_id(self) -> str:
        value = str(self._next_id)
        self._next_id += 1
        return value

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        assert path.startswith("/api/"), path
        parts = path[len("/api/"):].split("/")
        resource = parts[0]
        item_id = parts[1] if len(parts) > 1 else None
        method = request.method
        self.requests.append((method, resource))

        if (method, resource) in self.failures:
            return httpx.Response(self.failures[(method, resource)], json={"detail": "boom"})
        if (method, resource) in self.canned:
            return httpx.Response(200, json=self.canned[(method, resource)])

        body = json.loads(request.content) if request.content else None

        if resource == "books":
            return self._books(method, item_id, body)
        if resource == "rentalHistorys":
            return self._rentals(method, item_id, body)
        if resource in ("inventoryCheckHistorys", "inventoryCheckhistorys"):
            return self._checks(method, item_id, body)
        return httpx.Response(404, json={"detail": "unknown resource"})

    def _books(self, method, isbn, body):
        if method == "GET":
            return httpx.Response(200, json=self.books)
        if method == "POST":
            book = dict(body)
            self.books.append(book)
            return httpx.Response(201, json=book)
        book = next((b for b in self.books if b["isbn"] == isbn), None)
        if book is None:
            return httpx.Response(404, json={"detail": "not found"})
        if method == "PUT":
            book.update(body)
            return httpx.Response(200, json=book)
        if method == "DELETE":
            self.books.remove(book)
            return httpx.Response(200, json=book)
        return httpx.Response(405)

    def _rentals(self, method, item_id, body):
        if method == "GET":
            return httpx.Response(200, json=self.rentals)
        if method == "POST":
            record = dict(body, id=self._new_id())
            self.rentals.append(record)
            return httpx.Response(201, json=record)
        if method == "PUT":
            record = next((r for r in self.rentals if r["id"] == item_id), None)
            if record is None:
                return httpx.Response(404, json={"detail": "not found"})
            record.update(body)
            return httpx.Response(200, json=record)
        if method == "DELETE":
            self.rentals = [r for r in self.rentals if r["isbn"] != item_id]
            return httpx.Response(204)
        return httpx.Response(405)

    def _checks(self, method, item_id, body):
        if method == "GET":
            return httpx.Response(200, json=self.checks)
        if method == "POST":
            check = dict(body, id=self._new_id())
            self.checks.append(check)
            return httpx.Response(201, json=check)
        if method == "DELETE":
            self.checks = [c for c in self.checks if c["isbn"] != item_id]
            return httpx.Response(204)
        return httpx.Response(405)


@pytest.fixture
def server():
    return FakeLendingServer()


@pytest.fixture
def remote(server):
    http_client = LendingHTTPClient(transport=httpx.MockTransport(server.handle))
    return RemoteStoreClient(base_url=BASE_URL, http_client=http_client)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lib(remote, clock):
    return LendingLibrary(remote=remote, clock=clock)
