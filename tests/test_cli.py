import json
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from catalog.book import Book
from catalog.library import Library, NotFoundError
from catalog.main import app
from catalog.ui_helpers import OUTPUT_MODE_ENV

runner = CliRunner()


@pytest.fixture(autouse=True)
def plain_output(monkeypatch):
    # --output writes the mode into the environment; restore it after each test
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")


def _invoke(lib, *args):
    return runner.invoke(app, ["--db", lib.db_file, *args])


def test_books_empty(lib):
    result = _invoke(lib, "books")
    assert result.exit_code == 0
    assert "No books in catalog." in result.stdout


def test_add_book_and_list(lib):
    result = _invoke(lib, "add-book", "Dune", "--author", "Frank Herbert")
    assert result.exit_code == 0
    assert "Added book" in result.stdout

    result = _invoke(lib, "books")
    assert "Dune by Frank Herbert" in result.stdout


def test_add_copy_and_list(lib):
    book = lib.add_book(Book("Emma", "Jane Austen"))

    result = _invoke(lib, "add-copy", book.id, "Penguin 2003", "--status", "Loaned", "--due-back", "2024-03-01")
    assert result.exit_code == 0
    assert "Added copy" in result.stdout

    copies = lib.list_book_instances()
    assert len(copies) == 1
    assert copies[0].due_back == date(2024, 3, 1)

    result = _invoke(lib, "copies")
    assert "Emma : Penguin 2003 [Loaned] (due Mar 1, 2024)" in result.stdout


def test_add_copy_rejects_invalid_input(lib):
    result = _invoke(lib, "add-copy", "B1", "   ", "--due-back", "soon")
    assert result.exit_code == 1
    assert "imprint: Imprint must be specified" in result.stdout
    assert "due_back: Invalid date" in result.stdout
    assert lib.list_book_instances() == []


def test_copies_json_output(lib):
    book = lib.add_book(Book("Dune"))
    lib.create_book_instance({"book": book.id, "imprint": "Ace", "status": "Available", "due_back": None})

    result = runner.invoke(app, ["--output", "json", "--db", lib.db_file, "copies"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload[0]["book_title"] == "Dune"
    assert payload[0]["imprint"] == "Ace"
    assert payload[0]["due_back"] is None


def test_remove_copy(lib):
    created = lib.create_book_instance({"book": "B1", "imprint": "X", "status": "", "due_back": None})
    result = _invoke(lib, "remove-copy", created.id)
    assert result.exit_code == 0
    assert f"Book copy {created.id} has been removed." in result.stdout


def test_remove_copy_not_found(lib, monkeypatch):
    rm_mock = MagicMock(side_effect=NotFoundError("missing"))
    monkeypatch.setattr(Library, "delete_book_instance", rm_mock)

    result = _invoke(lib, "remove-copy", "nonexistent")
    assert result.exit_code == 0
    assert "Book copy nonexistent not found." in result.stdout
    rm_mock.assert_called_once_with("nonexistent")


def test_import_json(lib, tmp_path):
    seed = tmp_path / "seed.json"
    seed.write_text(json.dumps({"books": [{"title": "Dune", "copies": [{"imprint": "Ace"}]}]}), encoding="utf-8")

    result = _invoke(lib, "import-json", str(seed))
    assert result.exit_code == 0
    assert "Imported 1 books and 1 copies (0 skipped)" in result.stdout


def test_import_json_missing_file(lib, tmp_path):
    result = _invoke(lib, "import-json", str(tmp_path / "nope.json"))
    assert "File not found" in result.stdout


@patch("catalog.main.subprocess.run")
@patch("catalog.main.webbrowser.open")
def test_serve_command(mock_webbrowser_open, mock_subprocess_run):
    result = runner.invoke(app, ["serve"])
    assert result.exit_code == 0
    assert "Starting web UI on" in result.stdout
    mock_webbrowser_open.assert_called_once()
    mock_subprocess_run.assert_called_once()
    args = mock_subprocess_run.call_args[0][0]
    assert "uvicorn" in args
    assert "catalog.api:app" in args
    assert "--host" in args
    assert "--port" in args
