import json
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from book_lending.book import Book, RentalRecord
from book_lending.views import InventoryRow, Page, RentedRow

# Environment variable to control CLI output mode
# İzin verilen değerler: 'plain' (varsayılan), 'json', 'rich'
OUTPUT_MODE_ENV = "LENDING_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def format_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def print_book_page(page: Page) -> None:
    """Print one page of registered books.
    - plain: 'ISBN - Title by Author' lines plus a page footer, or 'No books in library.'
    - json: object with page info and items
    - rich: Rich table
    """
    mode = get_output_mode()

    if not page.items:
        print("No books in library.")
        return

    if mode == "json":
        _print_json({
            "page": page.page,
            "total_pages": page.total_pages,
            "total_items": page.total_items,
            "items": [b.to_dict() for b in page.items],
        })
    elif mode == "rich":
        table = Table(title=f"📚 Books (page {page.page}/{page.total_pages})", show_lines=True, header_style="bold cyan")
        table.add_column("ISBN", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Publisher", style="white")
        table.add_column("Status")
        for b in page.items:
            status = f"[red]Rented ({b.rented_by})[/]" if b.is_rented else "[green]Available[/]"
            table.add_row(b.isbn, b.title, b.author, b.publisher, status)
        _console.print(table)
    else:
        for b in page.items:
            print(f"{b.isbn} - {b.title} by {b.author}")
        print(f"Page {page.page} of {page.total_pages}")


def print_book_detail(book: Book, history: List[RentalRecord]) -> None:
    mode = get_output_mode()

    if mode == "json":
        _print_json({"book": book.to_dict(), "history": [r.to_dict() for r in history]})
        return

    lines = [
        f"Title: {book.title}",
        f"Author: {book.author}",
        f"Publisher: {book.publisher}",
        f"ISBN: {book.isbn}",
        f"Status: {'Rented to ' + (book.rented_by or '?') if book.is_rented else 'Available'}",
    ]
    for r in history:
        returned = format_date(r.return_date) if r.return_date else "not returned"
        lines.append(f"Rented: {format_date(r.rental_date)} by {r.renter_name} | Returned: {returned}")

    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title="📖 Book", border_style="blue"))
    else:
        for line in lines:
            print(line)


def print_rented_result(rows: List[RentedRow]) -> None:
    mode = get_output_mode()

    if not rows:
        print("No books are currently rented.")
        return

    if mode == "json":
        _print_json([
            {
                "isbn": r.book.isbn,
                "title": r.book.title,
                "renter": r.renter_name,
                "rental_date": r.rental_date.isoformat() if r.rental_date else None,
            }
            for r in rows
        ])
    elif mode == "rich":
        table = Table(title="📕 Rented books", header_style="bold cyan")
        table.add_column("ISBN", style="magenta", no_wrap=True)
        table.add_column("Title")
        table.add_column("Renter")
        table.add_column("Since")
        for r in rows:
            table.add_row(r.book.isbn, r.book.title, r.renter_name or "", format_date(r.rental_date))
        _console.print(table)
    else:
        for r in rows:
            print(f"{r.book.isbn} - {r.book.title} | {r.renter_name or ''} since {format_date(r.rental_date)}")


def print_inventory_result(page: Page) -> None:
    mode = get_output_mode()
    rows: List[InventoryRow] = page.items

    if not rows:
        print("No books in library.")
        return

    if mode == "json":
        _print_json({
            "page": page.page,
            "total_pages": page.total_pages,
            "items": [
                {
                    "isbn": r.book.isbn,
                    "title": r.book.title,
                    "last_check": r.last_check_date.isoformat() if r.last_check_date else None,
                    "renter": r.current_rental.renter_name if r.current_rental else None,
                }
                for r in rows
            ],
        })
    elif mode == "rich":
        table = Table(title=f"🗂️ Inventory (page {page.page}/{page.total_pages})", header_style="bold cyan")
        table.add_column("ISBN", style="magenta", no_wrap=True)
        table.add_column("Title")
        table.add_column("Last check")
        table.add_column("Rented to")
        for r in rows:
            renter = r.current_rental.renter_name if r.current_rental else ""
            table.add_row(r.book.isbn, r.book.title, format_date(r.last_check_date) if r.last_check else "never", renter)
        _console.print(table)
    else:
        for r in rows:
            last = format_date(r.last_check_date) if r.last_check else "never"
            line = f"{r.book.isbn} - {r.book.title} | last check: {last}"
            if r.current_rental:
                line += f" | rented to {r.current_rental.renter_name}"
            print(line)
        print(f"Page {page.page} of {page.total_pages}")


def print_candidate(candidate: Dict[str, Any]) -> None:
    if get_output_mode() == "json":
        _print_json(candidate)
        return
    print(f"Title: {candidate['title']}")
    print(f"Author: {candidate['author']}")
    print(f"Publisher: {candidate['publisher']}")
    print(f"ISBN: {candidate['isbn']}")
