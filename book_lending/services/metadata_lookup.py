"""Title/author/publisher lookup for codes typed or scanned at registration.

Standard ISBNs are looked up on Google Books. Magazine JAN codes are not
indexed there, so they go to a Hugging Face text-generation model
instead. "Not found" is always ``None``, never an exception.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from book_lending.book import Book
from book_lending.config import settings
from book_lending.exceptions import LookupServiceError
from book_lending.identifiers import is_magazine_code, normalize
from book_lending.services.http_client import LendingHTTPClient

logger = logging.getLogger(__name__)

NOT_FOUND_MARKER = "NOT FOUND"

MAGAZINE_PROMPT = """Look up the Japanese magazine with JAN code "{jan}" using the Japan Magazine Publishers Association code search or other public sources.
Answer with exactly these lines:

Title: (official magazine title)
Publisher: (publisher name)
Issue: (issue, e.g. 'August 2024')

If nothing can be found, answer only with the text "NOT FOUND"."""


@dataclass
class Candidate:
    """Metadata proposed for a code before the book is registered."""
    isbn: str
    title: str
    author: str = ""
    publisher: str = ""

    def to_book(self) -> Book:
        return Book(isbn=self.isbn, title=self.title, author=self.author, publisher=self.publisher)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isbn": self.isbn,
            "title": self.title,
            "author": self.author,
            "publisher": self.publisher,
        }


def parse_magazine_answer(text: str, jan: str) -> Optional[Candidate]:
    """Parse the 'Title:/Publisher:/Issue:' answer of the model."""
    text = (text or "").strip()
    if not text or NOT_FOUND_MARKER in text.upper():
        return None

    fields: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            fields[key.strip().lower()] = value.strip()

    title = fields.get("title")
    publisher = fields.get("publisher")
    issue = fields.get("issue")
    if not title or not publisher or not issue:
        logger.warning("Magazine answer is missing fields: %r", text)
        return None

    # The issue is kept in the author slot
    return Candidate(isbn=jan, title=title, author=issue, publisher=publisher)


class MetadataLookupService:
    """Routes a code to Google Books or the magazine model."""

    def __init__(self, http_client: Optional[LendingHTTPClient] = None,
                 google_books_api_key: Optional[str] = None,
                 hugging_face_api_key: Optional[str] = None):
        self.google_books_base_url = settings.google_books_base_url.rstrip("/")
        self.google_books_api_key = google_books_api_key or settings.google_books_api_key
        self.hugging_face_base_url = settings.hugging_face_base_url.rstrip("/")
        self.hugging_face_api_key = hugging_face_api_key or settings.hugging_face_api_key
        self.magazine_model = settings.hugging_face_model
        self._owns_client = http_client is None
        self._http = http_client or LendingHTTPClient(timeout=settings.google_books_timeout)

    def is_available(self) -> bool:
        return settings.enable_metadata_lookup

    async def lookup(self, code: str) -> Optional[Candidate]:
        """Return a candidate for ``code`` or None when nothing was found."""
        norm = normalize(code)
        if not norm or not self.is_available():
            return None
        try:
            if is_magazine_code(norm):
                return await self.fetch_magazine_by_jan(norm)
            return await self.fetch_book_by_isbn(norm)
        except LookupServiceError as exc:
            logger.error("Metadata lookup for %s failed: %s", norm, exc)
            return None

    # ------------------------- Google Books ------------------------- #
    async def _make_api_request(self, url: str, **kwargs) -> Any:
        start_time = time.time()
        try:
            response = await self._http.request(kwargs.pop("method", "GET"), url, **kwargs)
        except httpx.HTTPError as exc:
            raise LookupServiceError(f"request to {url} failed: {exc}") from exc

        response_time_ms = int((time.time() - start_time) * 1000)
        logger.info("Lookup request %s -> %s in %dms", url, response.status_code, response_time_ms)

        if response.status_code == 429:
            raise LookupServiceError("rate limit exceeded")
        if not response.is_success:
            raise LookupServiceError(f"{url} returned {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise LookupServiceError(f"{url} returned invalid JSON") from exc

    async def fetch_book_by_isbn(self, isbn: str) -> Optional[Candidate]:
        params = {"q": f"isbn:{isbn}"}
        if self.google_books_api_key:
            params["key"] = self.google_books_api_key

        data = await self._make_api_request(f"{self.google_books_base_url}/volumes", params=params)
        items = data.get("items") or []
        if data.get("totalItems", 0) == 0 or not items:
            logger.warning("Google Books has no volume for ISBN %s", isbn)
            return None

        volume_info = items[0].get("volumeInfo", {})
        title = volume_info.get("title", "")
        if not title:
            logger.warning("Google Books volume for ISBN %s has no title", isbn)
            return None

        return Candidate(
            isbn=isbn,
            title=title,
            author=", ".join(volume_info.get("authors", []) or []),
            publisher=volume_info.get("publisher", "") or "",
        )

    # ------------------------- Magazines ------------------------- #
    async def fetch_magazine_by_jan(self, jan: str) -> Optional[Candidate]:
        if not self.hugging_face_api_key:
            logger.info("No Hugging Face API key configured; magazine lookup skipped for %s", jan)
            return None

        payload = {
            "inputs": MAGAZINE_PROMPT.format(jan=jan),
            "parameters": {"max_new_tokens": 120, "return_full_text": False},
        }
        headers = {"Authorization": f"Bearer {self.hugging_face_api_key}"}
        data = await self._make_api_request(
            f"{self.hugging_face_base_url}/models/{self.magazine_model}",
            method="POST",
            json=payload,
            headers=headers,
            timeout=settings.hugging_face_timeout,
        )

        if isinstance(data, list) and data:
            text = data[0].get("generated_text", "")
        elif isinstance(data, dict):
            text = data.get("generated_text", "")
        else:
            text = ""
        return parse_magazine_answer(text, jan)

    async def close(self) -> None:
        if self._owns_client:
            await self._http.close()
