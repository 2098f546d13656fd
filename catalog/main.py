import logging
import os
import subprocess
import sys
import webbrowser
from typing import Optional

import typer

from catalog.book import Book
from catalog.config import settings
from catalog.library import Library, NotFoundError, StoreError
from catalog.ui_helpers import (
    print_books_result,
    print_copies_result,
    print_field_errors,
    set_output_mode,
)
from catalog.validators import validate_book_instance

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

APP_NAME = "Catalog CLI"

app = typer.Typer(help=APP_NAME)


def _library(ctx: typer.Context) -> Library:
    """Open the catalog the global --db option points at."""
    return Library(db_file=ctx.obj["db_file"])


@app.callback()
def _global_options(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    db_file: str = typer.Option(settings.data_file, "--db", help="SQLite database file"),
):
    """Global CLI options (output mode, database file)."""
    ctx.obj = {"db_file": db_file}
    if output:
        set_output_mode(output)


@app.command("books")
def cli_books(ctx: typer.Context):
    """List all books."""
    print_books_result(_library(ctx).list_books())


@app.command("add-book")
def cli_add_book(
    ctx: typer.Context,
    title: str,
    author: Optional[str] = typer.Option(None, "--author", "-a"),
    isbn: Optional[str] = typer.Option(None, "--isbn"),
):
    """Add a book so copies can reference it."""
    try:
        book = _library(ctx).add_book(Book(title=title, author=author, isbn=isbn))
    except ValueError as e:
        print(f"Error: {e}")
        return
    print(f"Added book {book.id}: {book.title}")


@app.command("copies")
def cli_copies(ctx: typer.Context):
    """List all book copies with their book titles."""
    print_copies_result(_library(ctx).list_book_instances())


@app.command("add-copy")
def cli_add_copy(
    ctx: typer.Context,
    book_id: str,
    imprint: str,
    status: str = typer.Option("", "--status", "-s", help="Available | Maintenance | Loaned | Reserved"),
    due_back: str = typer.Option("", "--due-back", "-d", help="Due date as YYYY-MM-DD"),
):
    """Add a copy of a book, validated like the web form."""
    result = validate_book_instance(
        {"book": book_id, "imprint": imprint, "status": status, "due_back": due_back}
    )
    if not result.is_valid:
        print_field_errors(result.errors)
        raise typer.Exit(code=1)
    copy = _library(ctx).create_book_instance(result.fields)
    print(f"Added copy {copy.id}")


@app.command("remove-copy")
def cli_remove_copy(ctx: typer.Context, copy_id: str):
    """Remove a book copy by id."""
    try:
        _library(ctx).delete_book_instance(copy_id)
    except NotFoundError:
        print(f"Book copy {copy_id} not found.")
        return
    print(f"Book copy {copy_id} has been removed.")


@app.command("import-json")
def cli_import_json(ctx: typer.Context, file_path: str):
    """Seed books and their copies from a JSON file."""
    if not os.path.exists(file_path):
        print(f"File not found: {file_path}")
        return
    try:
        counts = _library(ctx).import_json(file_path)
    except ValueError as e:
        print(f"Error: {e}")
        return
    print(f"Imported {counts['books']} books and {counts['copies']} copies ({counts['skipped']} skipped)")


@app.command("serve")
def cli_serve(timeout: int = typer.Option(0, "--timeout", help="Seconds to run before exiting (0 = no timeout)")):
    """Start the web UI with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}{settings.catalog_prefix}/bookinstances"
    print(f"Starting web UI on {url}")
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        logger.warning("Could not open a web browser automatically.")

    args = [
        sys.executable,
        "-m", "uvicorn",
        "catalog.api:app",
        "--host", host,
        "--port", str(port),
    ]
    if timeout and timeout > 0:
        proc = subprocess.Popen(args, start_new_session=os.name != "nt")
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.terminate()
            proc.wait()
    else:
        subprocess.run(args)


def main() -> None:
    try:
        app()
    except StoreError as e:
        print(f"Catalog database error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
