from datetime import date

import pytest

from catalog.validators import (
    BOOK_INSTANCE_RULES,
    FieldError,
    sanitize_text,
    validate_book_instance,
    validate_due_back,
)


def _form(**overrides):
    data = {"book": "B1", "imprint": "First Edition", "status": "Available", "due_back": ""}
    data.update(overrides)
    return data


def test_valid_form_is_trimmed():
    result = validate_book_instance(_form(book="  B1 ", imprint="  First Edition  ", status=" Loaned "))
    assert result.is_valid
    assert result.errors == []
    assert result.fields == {
        "book": "B1",
        "imprint": "First Edition",
        "status": "Loaned",
        "due_back": None,
    }


@pytest.mark.parametrize("value", ["", "   ", "\t\n", None])
def test_blank_book_is_rejected(value):
    result = validate_book_instance(_form(book=value))
    assert result.errors == [FieldError("book", "Book must be specified")]


@pytest.mark.parametrize("value", ["", "    ", None])
def test_blank_imprint_is_rejected(value):
    result = validate_book_instance(_form(imprint=value))
    assert [e.field for e in result.errors] == ["imprint"]


def test_all_errors_are_collected_in_rule_order():
    result = validate_book_instance({"due_back": "not a date"})
    assert [e.field for e in result.errors] == ["book", "imprint", "due_back"]
    assert not result.is_valid


@pytest.mark.parametrize("value", ["2024-13-01", "2024-02-30", "yesterday", "01/03/2024"])
def test_invalid_due_back(value):
    result = validate_book_instance(_form(due_back=value))
    assert result.errors_for("due_back") == [FieldError("due_back", "Invalid date", value)]
    assert result.fields["due_back"] is None


@pytest.mark.parametrize("raw", [{}, {"due_back": ""}, {"due_back": "   "}, {"due_back": None}])
def test_blank_due_back_means_no_date(raw):
    assert validate_due_back(raw) is None
    assert validate_book_instance({**_form(), **raw}).fields["due_back"] is None


def test_due_back_is_parsed_to_a_date():
    assert validate_book_instance(_form(due_back="2024-03-01")).fields["due_back"] == date(2024, 3, 1)
    # A full ISO-8601 timestamp is reduced to its calendar date
    assert validate_book_instance(_form(due_back="2024-03-01T10:30:00")).fields["due_back"] == date(2024, 3, 1)
    assert validate_book_instance(_form(due_back="20240301")).fields["due_back"] == date(2024, 3, 1)


def test_any_status_is_accepted():
    result = validate_book_instance(_form(status="  Lost in the basement "))
    assert result.is_valid
    assert result.fields["status"] == "Lost in the basement"

    result = validate_book_instance(_form(status=""))
    assert result.is_valid
    assert result.fields["status"] == ""


def test_markup_is_escaped():
    result = validate_book_instance(_form(
        imprint="<script>alert('x')</script>",
        status='"Loaned" & <b>late</b>',
    ))
    assert result.is_valid
    assert result.fields["imprint"] == "&lt;script&gt;alert(&#39;x&#39;)&lt;/script&gt;"
    for key in ("book", "imprint", "status"):
        value = result.fields[key]
        assert not any(ch in value for ch in "<>\"'")
    assert "&amp;" in result.fields["status"]


def test_sanitize_text_handles_empty_values():
    assert sanitize_text(None) == ""
    assert sanitize_text("") == ""
    assert sanitize_text("Penguin") == "Penguin"


def test_every_rule_returns_error_or_none():
    for rule in BOOK_INSTANCE_RULES:
        outcome = rule({})
        assert outcome is None or isinstance(outcome, FieldError)
