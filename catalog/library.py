import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

from catalog.book import Book, BookInstance
from catalog.config import settings
from catalog.database import get_db_connection, initialize_database
from catalog.validators import validate_book_instance

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    pass


class NotFoundError(CatalogError, LookupError):
    """The requested record does not exist."""


class StoreError(CatalogError):
    """The database could not be reached or rejected the operation."""


StoreUnavailable = StoreError

_COPY_COLUMNS = "bi.id, bi.book_id, bi.imprint, bi.status, bi.due_back"
_POPULATED_COPY_QUERY = f"""
    SELECT {_COPY_COLUMNS},
           b.title AS book_title, b.author AS book_author, b.isbn AS book_isbn
    FROM book_instances bi
    LEFT JOIN books b ON b.id = bi.book_id
"""


class Library:
    """Stores books and their copies in a SQLite database."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or settings.data_file
        try:
            initialize_database(self.db_file)
        except sqlite3.Error as e:
            logger.error(f"Could not initialize catalog database {self.db_file}: {e}")
            raise StoreError(f"Catalog database unavailable: {e}") from e

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection for one operation and commit it on success."""
        try:
            conn = get_db_connection(self.db_file)
        except sqlite3.Error as e:
            logger.error(f"Could not connect to {self.db_file}: {e}")
            raise StoreError(f"Catalog database unavailable: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Database operation failed on {self.db_file}: {e}")
            raise StoreError(f"Catalog database error: {e}") from e
        finally:
            conn.close()

    def close(self) -> None:
        """Connections are opened per operation, so there is nothing to release."""
        return None

    # ------------------------- Books ------------------------- #
    def add_book(self, book: Book) -> Book:
        if not book.title:
            raise ValueError("Book title cannot be empty.")
        if not book.id:
            book.id = uuid.uuid4().hex
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO books (id, title, author, isbn) VALUES (?, ?, ?, ?)",
                (book.id, book.title, book.author, book.isbn),
            )
        logger.info(f"Added book {book.id}: {book.title}")
        return book

    def find_book(self, book_id: str) -> Optional[Book]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, title, author, isbn, created_at FROM books WHERE id = ?",
                (book_id,),
            ).fetchone()
        return Book.from_dict(dict(row)) if row else None

    def list_books(self) -> List[Book]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT id, title, author, isbn, created_at FROM books ORDER BY title"
            ).fetchall()
        return [Book.from_dict(dict(row)) for row in rows]

    def list_books_for_selection(self) -> List[Dict[str, str]]:
        """Id and title of every book, ordered by title, for select controls."""
        with self._connection() as conn:
            rows = conn.execute("SELECT id, title FROM books ORDER BY title").fetchall()
        return [{"id": row["id"], "title": row["title"]} for row in rows]

    # ------------------------- Book copies ------------------------- #
    def create_book_instance(self, fields: Mapping[str, Any]) -> BookInstance:
        copy = BookInstance(
            id=uuid.uuid4().hex,
            book_id=fields["book"],
            imprint=fields["imprint"],
            status=fields.get("status") or settings.default_copy_status,
            due_back=fields.get("due_back"),
        )
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO book_instances (id, book_id, imprint, status, due_back) VALUES (?, ?, ?, ?, ?)",
                (copy.id, copy.book_id, copy.imprint, copy.status, copy.to_dict()["due_back"]),
            )
        logger.info(f"Created book copy {copy.id} of book {copy.book_id}")
        return copy

    def find_book_instance(self, copy_id: str, populate: bool = False) -> BookInstance:
        with self._connection() as conn:
            if populate:
                row = conn.execute(_POPULATED_COPY_QUERY + " WHERE bi.id = ?", (copy_id,)).fetchone()
            else:
                row = conn.execute(
                    f"SELECT {_COPY_COLUMNS} FROM book_instances bi WHERE bi.id = ?",
                    (copy_id,),
                ).fetchone()
        if row is None:
            raise NotFoundError(f"Book copy {copy_id} not found")
        return BookInstance.from_dict(dict(row))

    def list_book_instances(self) -> List[BookInstance]:
        """Every copy with its book populated."""
        with self._connection() as conn:
            rows = conn.execute(_POPULATED_COPY_QUERY + " ORDER BY b.title, bi.imprint").fetchall()
        return [BookInstance.from_dict(dict(row)) for row in rows]

    def count_books(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM books").fetchone()[0]

    def count_book_instances(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM book_instances").fetchone()[0]

    def update_book_instance(self, copy_id: str, fields: Mapping[str, Any]) -> BookInstance:
        """Replace every field of an existing copy. The id never changes."""
        copy = BookInstance(
            id=copy_id,
            book_id=fields["book"],
            imprint=fields["imprint"],
            status=fields.get("status") or settings.default_copy_status,
            due_back=fields.get("due_back"),
        )
        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE book_instances SET book_id = ?, imprint = ?, status = ?, due_back = ? WHERE id = ?",
                (copy.book_id, copy.imprint, copy.status, copy.to_dict()["due_back"], copy_id),
            )
            updated = cursor.rowcount
        if updated == 0:
            raise NotFoundError(f"Book copy {copy_id} not found")
        logger.info(f"Updated book copy {copy_id}")
        return copy

    def delete_book_instance(self, copy_id: str) -> None:
        with self._connection() as conn:
            deleted = conn.execute("DELETE FROM book_instances WHERE id = ?", (copy_id,)).rowcount
        if deleted == 0:
            raise NotFoundError(f"Book copy {copy_id} not found")
        logger.info(f"Deleted book copy {copy_id}")

    # ------------------------- Seeding ------------------------- #
    def import_json(self, json_file: str) -> Dict[str, int]:
        """Load books, each with optional nested copies, from a JSON seed file.

        Expected shape::

            {"books": [{"title": "...", "author": "...", "isbn": "...",
                        "copies": [{"imprint": "...", "status": "...", "due_back": "..."}]}]}

        Copies go through the same validation as the web form; invalid ones are
        skipped and counted.
        """
        try:
            with open(json_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ValueError(f"Error reading or parsing {json_file}: {e}") from e

        counts = {"books": 0, "copies": 0, "skipped": 0}
        for item in data.get("books", []):
            if not item.get("title"):
                counts["skipped"] += 1
                continue
            book = self.add_book(Book(
                title=item["title"],
                author=item.get("author"),
                isbn=item.get("isbn"),
                id=item.get("id"),
            ))
            counts["books"] += 1

            for raw_copy in item.get("copies", []):
                result = validate_book_instance({**raw_copy, "book": book.id})
                if not result.is_valid:
                    logger.warning(
                        f"Skipping copy of {book.title}: "
                        + "; ".join(e.message for e in result.errors)
                    )
                    counts["skipped"] += 1
                    continue
                self.create_book_instance(result.fields)
                counts["copies"] += 1
        return counts
