import os
import json
from typing import List, Any
from rich.console import Console
from rich.table import Table

from catalog.book import due_back_formatted

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "CATALOG_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def print_books_result(books: List[Any]) -> None:
    """Print the book list in the current output mode.
    - plain: 'ID - Title by Author' lines, or 'No books in catalog.'
    - json: array of id, title, author, isbn
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in catalog.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        for b in books:
            table.add_row(b.id, b.title, b.author or "")
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author or 'Unknown'}")

def print_copies_result(copies: List[Any]) -> None:
    """Print book copies in the current output mode.
    - plain: 'ID - Title : Imprint [Status] (due Mar 1, 2024)' lines
    - json: array of stored fields plus the book title
    - rich: Rich table
    """
    mode = get_output_mode()

    if not copies:
        print("No book copies in catalog.")
        return

    def _title(copy) -> str:
        return copy.book.title if copy.book else "Unknown book"

    if mode == "json":
        payload = [dict(c.to_dict(), book_title=_title(c)) for c in copies]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📖 Book copies", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Book", style="white")
        table.add_column("Imprint", style="white")
        table.add_column("Status", style="green")
        table.add_column("Due back", style="yellow")
        for c in copies:
            table.add_row(c.id, _title(c), c.imprint, c.status, due_back_formatted(c))
        _console.print(table)
    else:
        for c in copies:
            line = f"{c.id} - {_title(c)} : {c.imprint} [{c.status}]"
            if c.due_back:
                line += f" (due {due_back_formatted(c)})"
            print(line)

def print_field_errors(errors: List[Any]) -> None:
    if get_output_mode() == "json":
        print(json.dumps([{"field": e.field, "message": e.message} for e in errors], ensure_ascii=False))
        return
    for e in errors:
        print(f"{e.field}: {e.message}")
