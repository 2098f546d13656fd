"""Validation and sanitization of submitted book copy forms.

Every rule is a plain function taking the raw form mapping and returning either
a FieldError or None. All rules run, so a form with several problems reports all
of them at once, in rule order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from markupsafe import escape


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str
    value: str = ""


@dataclass
class ValidationResult:
    fields: Dict[str, Any] = field(default_factory=dict)
    errors: List[FieldError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def errors_for(self, name: str) -> List[FieldError]:
        return [e for e in self.errors if e.field == name]


def _raw_text(raw: Mapping[str, Any], name: str) -> str:
    value = raw.get(name)
    if value is None:
        return ""
    return str(value).strip()


def sanitize_text(text: Optional[str]) -> str:
    """Escape markup so the value can be rendered verbatim inside HTML."""
    if not text:
        return ""
    return str(escape(text))


def parse_iso_date(value: str) -> Optional[date]:
    """Parse an ISO-8601 date (or datetime, reduced to its date). None if it doesn't parse."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


# ------------------------- Rules ------------------------- #

def validate_book(raw: Mapping[str, Any]) -> Optional[FieldError]:
    if not _raw_text(raw, "book"):
        return FieldError("book", "Book must be specified")
    return None


def validate_imprint(raw: Mapping[str, Any]) -> Optional[FieldError]:
    if not _raw_text(raw, "imprint"):
        return FieldError("imprint", "Imprint must be specified")
    return None


def validate_due_back(raw: Mapping[str, Any]) -> Optional[FieldError]:
    value = _raw_text(raw, "due_back")
    # Blank means "no due date", which is fine
    if not value:
        return None
    if parse_iso_date(value) is None:
        return FieldError("due_back", "Invalid date", sanitize_text(value))
    return None


def validate_status(raw: Mapping[str, Any]) -> Optional[FieldError]:
    # Any status string is accepted; it is only trimmed and escaped.
    return None


BOOK_INSTANCE_RULES: tuple[Callable[[Mapping[str, Any]], Optional[FieldError]], ...] = (
    validate_book,
    validate_imprint,
    validate_due_back,
    validate_status,
)


def normalize_book_instance(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Trimmed, escaped field values. An unparseable due date becomes None."""
    due_back = _raw_text(raw, "due_back")
    return {
        "book": sanitize_text(_raw_text(raw, "book")),
        "imprint": sanitize_text(_raw_text(raw, "imprint")),
        "status": sanitize_text(_raw_text(raw, "status")),
        "due_back": parse_iso_date(due_back) if due_back else None,
    }


def validate_book_instance(raw: Mapping[str, Any]) -> ValidationResult:
    errors = [error for rule in BOOK_INSTANCE_RULES if (error := rule(raw)) is not None]
    return ValidationResult(fields=normalize_book_instance(raw), errors=errors)
