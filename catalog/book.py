from __future__ import annotations

from datetime import date
from enum import Enum

from catalog.config import settings


class BookInstanceStatus(str, Enum):
    """Statuses offered by the copy form."""
    AVAILABLE = "Available"
    MAINTENANCE = "Maintenance"
    LOANED = "Loaned"
    RESERVED = "Reserved"


class Book:
    """Represents a single title in the catalog."""

    def __init__(self, title: str, author: str | None = None, isbn: str | None = None,
                 id: str | None = None, created_at: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip() if author else None
        self.isbn = isbn.strip() if isbn else None
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author or 'Unknown'} ({self.id})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            title=data["title"],
            author=data.get("author"),
            isbn=data.get("isbn"),
            id=data.get("id"),
            created_at=data.get("created_at"),
        )


class BookInstance:
    """A physical copy of a book.

    ``book_id`` is the stored reference. ``book`` holds the referenced Book only
    when the copy was loaded with its book populated, and stays None otherwise
    (or when the reference dangles).
    """

    def __init__(self, book_id: str, imprint: str, status: str | None = None,
                 due_back: date | None = None, id: str | None = None,
                 book: Book | None = None) -> None:
        self.id = id
        self.book_id = book_id
        self.imprint = imprint
        self.status = status
        self.due_back = due_back
        self.book = book

    def __repr__(self) -> str:  # pragma: no cover
        return f"BookInstance(id={self.id!r}, book_id={self.book_id!r}, imprint={self.imprint!r})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book": self.book_id,
            "imprint": self.imprint,
            "status": self.status,
            "due_back": self.due_back.isoformat() if self.due_back else None,
        }

    @staticmethod
    def from_dict(data: dict) -> "BookInstance":
        due_back = data.get("due_back")
        if isinstance(due_back, str):
            due_back = date.fromisoformat(due_back) if due_back else None

        # Joined rows carry the book's columns with a book_ prefix
        book = None
        if data.get("book_title") is not None:
            book = Book(
                title=data["book_title"],
                author=data.get("book_author"),
                isbn=data.get("book_isbn"),
                id=data.get("book_id"),
            )

        return BookInstance(
            book_id=data["book_id"],
            imprint=data["imprint"],
            status=data.get("status"),
            due_back=due_back,
            id=data.get("id"),
            book=book,
        )


# ------------------------- Presentation helpers ------------------------- #

def bookinstance_url(copy: BookInstance) -> str:
    return f"{settings.catalog_prefix}/bookinstance/{copy.id}"


def due_back_formatted(copy: BookInstance) -> str:
    """Human readable due date, e.g. 'Mar 1, 2024'. Empty when there is none."""
    if not copy.due_back:
        return ""
    return f"{copy.due_back.strftime('%b')} {copy.due_back.day}, {copy.due_back.year}"


def due_back_iso(copy: BookInstance) -> str:
    """Due date as YYYY-MM-DD for <input type="date">."""
    return copy.due_back.isoformat() if copy.due_back else ""


def status_css_class(copy: BookInstance) -> str:
    if copy.status == BookInstanceStatus.AVAILABLE.value:
        return "text-success"
    if copy.status == BookInstanceStatus.MAINTENANCE.value:
        return "text-danger"
    return "text-warning"
