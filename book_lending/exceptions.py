from typing import Optional


class BookLendingError(Exception):
    """Base class for all errors raised by the lending tracker."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class RemoteOperationError(BookLendingError):
    """Raised when a call to the lending API fails or returns a non-success status."""

    def __init__(self, resource: str, verb: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        self.resource = resource
        self.verb = verb
        self.status_code = status_code
        self.detail = detail
        message = f"{verb} {resource} failed"
        if status_code is not None:
            message += f" with status {status_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class DuplicateBookError(BookLendingError):
    """Raised when a book with the same normalized identifier is already registered."""

    def __init__(self, isbn: str):
        self.isbn = isbn
        super().__init__(f"Book with ISBN {isbn} already exists.")


class InvalidIdentifierError(BookLendingError):
    """Raised when an identifier is empty after normalization."""

    def __init__(self):
        super().__init__("ISBN cannot be empty.")


class DanglingReferenceAnomaly(BookLendingError):
    """No open rental record was found while returning a book.

    Recorded and logged, never raised by the store.
    """

    def __init__(self, isbn: str):
        self.isbn = isbn
        super().__init__(f"No open rental record found for ISBN {isbn}; only the book state was updated.")


class LookupServiceError(BookLendingError):
    """Metadata lookup backend failed. Never escapes MetadataLookupService.lookup."""
    pass
