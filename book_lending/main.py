import asyncio
import locale
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from book_lending.book import Book
from book_lending.config import settings
from book_lending.exceptions import DuplicateBookError, InvalidIdentifierError, RemoteOperationError
from book_lending.identifiers import normalize
from book_lending.library import LendingLibrary
from book_lending.services.metadata_lookup import MetadataLookupService
from book_lending.ui_helpers import (
    print_book_detail,
    print_book_page,
    print_candidate,
    print_inventory_result,
    print_rented_result,
    set_output_mode,
)
from book_lending import views

APP_NAME = "Book Lending CLI"

logger = logging.getLogger(__name__)

T = TypeVar("T")

app = typer.Typer(help=APP_NAME)


def build_library() -> LendingLibrary:
    return LendingLibrary()


def build_lookup() -> MetadataLookupService:
    return MetadataLookupService()


async def _with_library(action: Callable[[LendingLibrary], Awaitable[T]]) -> T:
    """Load the store, run ``action`` against it and close it again."""
    async with build_library() as lib:
        await lib.initialize()
        if lib.load_failed:
            print(f"Error: could not load lending data: {lib.load_error}")
            raise typer.Exit(code=1)
        try:
            return await action(lib)
        except RemoteOperationError as e:
            print(f"Error: {e}")
            raise typer.Exit(code=1)


def _run(action: Callable[[LendingLibrary], Awaitable[T]]) -> T:
    return asyncio.run(_with_library(action))


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (output mode, logging)."""
    logging.basicConfig(level=settings.log_level.upper())
    try:
        # Title sorting follows the user's collation
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.debug("Could not apply user locale: %s", e)
    if output:
        set_output_mode(output)


@app.command("list")
def cli_list(
    search: str = typer.Option("", "--search", "-s", help="Filter by title"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
):
    """List registered books sorted by title."""
    async def action(lib: LendingLibrary):
        print_book_page(views.registered_listing(lib.books, search=search, page=page,
                                                 page_size=settings.page_size))
    _run(action)


@app.command("add")
def cli_add(
    isbn: str,
    title: Optional[str] = typer.Option(None, "--title", help="Title (skips the metadata lookup)"),
    author: str = typer.Option("", "--author"),
    publisher: str = typer.Option("", "--publisher"),
):
    """Register a book by ISBN or magazine JAN code."""
    if not normalize(isbn):
        print("Error: ISBN cannot be empty.")
        raise typer.Exit(code=1)

    async def action(lib: LendingLibrary):
        if lib.find_book(isbn):
            print(f"Error: Book with ISBN {normalize(isbn)} already exists.")
            return

        if title:
            book = Book(isbn=isbn, title=title, author=author, publisher=publisher)
        else:
            lookup = build_lookup()
            try:
                candidate = await lookup.lookup(isbn)
            finally:
                await lookup.close()
            if candidate is None:
                print(f"No information found for {normalize(isbn)}. "
                      "Register it manually with --title, --author and --publisher.")
                return
            book = candidate.to_book()

        try:
            created = await lib.add_book(book)
        except (DuplicateBookError, InvalidIdentifierError) as e:
            print(f"Error: {e}")
            return
        print(f"Successfully added: {created.title} by {created.author}")
    _run(action)


@app.command("remove")
def cli_remove(isbn: str):
    """Remove a book and its rental and inventory history."""
    async def action(lib: LendingLibrary):
        book = lib.find_book(isbn)
        if not book:
            print(f"Book with ISBN {normalize(isbn)} not found.")
            return
        report = await lib.remove_book(isbn)
        print(f"Book with ISBN {book.isbn} has been removed.")
        for failure in report.failures:
            print(f"Warning: history cleanup failed: {failure}")
    _run(action)


@app.command("rent")
def cli_rent(isbn: str, renter: str):
    """Lend a book to someone."""
    async def action(lib: LendingLibrary):
        book = lib.find_book(isbn)
        if not book:
            print(f"Book with ISBN {normalize(isbn)} not found.")
            return
        if book.is_rented:
            print(f"'{book.title}' is already rented to {book.rented_by}.")
            return
        renter_name = renter.strip()
        if not renter_name:
            print("Renter name cannot be empty.")
            return
        await lib.rent_book(isbn, renter_name)
        print(f"Rented '{book.title}' to {renter_name}.")
    _run(action)


@app.command("return")
def cli_return(isbn: str):
    """Take a rented book back."""
    async def action(lib: LendingLibrary):
        book = lib.find_book(isbn)
        if not book:
            print(f"Book with ISBN {normalize(isbn)} not found.")
            return
        if not book.is_rented:
            print(f"'{book.title}' is not rented.")
            return
        result = await lib.return_book(isbn)
        print(f"Returned '{result.book.title}'.")
        if result.anomaly:
            print(f"Warning: {result.anomaly}")
    _run(action)


@app.command("check")
def cli_check(isbn: str):
    """Record an inventory check for a registered book."""
    async def action(lib: LendingLibrary):
        book = lib.find_book(isbn)
        if not book:
            print(f"Book with ISBN {normalize(isbn)} is not registered.")
            return
        await lib.add_inventory_check(isbn)
        print(f"Inventory check recorded for '{book.title}' (ISBN: {book.isbn}).")
    _run(action)


@app.command("rented")
def cli_rented():
    """List books currently on loan."""
    async def action(lib: LendingLibrary):
        print_rented_result(views.rented_listing(lib.books, lib.rental_records))
    _run(action)


@app.command("inventory")
def cli_inventory(page: int = typer.Option(1, "--page", "-p", help="Page number")):
    """List books by last inventory check, never-checked first."""
    async def action(lib: LendingLibrary):
        print_inventory_result(views.inventory_page(lib.books, lib.inventory_checks, lib.rental_records,
                                                    page=page, page_size=settings.page_size))
    _run(action)


@app.command("history")
def cli_history(isbn: str):
    """Show a book and its rental history."""
    async def action(lib: LendingLibrary):
        book = lib.find_book(isbn)
        if not book:
            print(f"Book with ISBN {normalize(isbn)} not found.")
            return
        print_book_detail(book, lib.history_for_book(isbn))
    _run(action)


@app.command("lookup")
def cli_lookup(code: str):
    """Look up metadata for an ISBN or magazine JAN code without registering it."""
    async def action():
        lookup = build_lookup()
        try:
            return await lookup.lookup(code)
        finally:
            await lookup.close()

    candidate = asyncio.run(action())
    if candidate is None:
        print(f"No information found for {normalize(code)}.")
        return
    print_candidate(candidate.to_dict())


if __name__ == "__main__":
    app()
