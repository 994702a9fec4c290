"""Tests for ISBN handling, the booklist gateway and the Librarian service."""

import pytest

from classify import Classification
from errors import ClassificationNotFound, DuplicateBook, ValidationError
from library import check_key, clean_username, lookup_key, normalize_isbn
from models import Book
from tests.conftest import CORALINE_ISBN, HOBBIT_ISBN, ODYSSEY_ISBN


@pytest.mark.parametrize("raw", [
    "9780380807345",
    "978-0-380-80734-5",
    "0380807343",
    "0-380-80734-3",
    " 0380807343 ",
])
def test_normalize_isbn_to_isbn13(raw):
    assert normalize_isbn(raw) == CORALINE_ISBN


@pytest.mark.parametrize("raw", ["", None, "   ", "12345", "9780380807346", "not an isbn"])
def test_normalize_isbn_rejects(raw):
    with pytest.raises(ValidationError):
        normalize_isbn(raw)


def test_lookup_key_accepts_isbns_and_work_ids():
    assert lookup_key("0-380-80734-3") == CORALINE_ISBN
    assert lookup_key(" 70766981 ") == "70766981"
    with pytest.raises(ValidationError):
        lookup_key("  ")
    with pytest.raises(ValidationError):
        lookup_key("9" * 17)


def test_check_key():
    assert check_key("1" * 16) == "1" * 16
    with pytest.raises(ValidationError):
        check_key("1" * 17)


def test_clean_username():
    assert clean_username("  Isaac ") == "Isaac"
    assert clean_username("") is None
    assert clean_username(None) is None
    with pytest.raises(ValidationError):
        clean_username("x" * 65)


def test_add_book_truncates_to_column_widths(app, librarian, classifier):
    classifier.results[HOBBIT_ISBN] = Classification(
        title="T" * 200, author="A" * 80, call_no="C" * 60
    )
    with app.app_context():
        book = librarian.add_book(username="Isaac", isbn=HOBBIT_ISBN)
        assert len(book.title) == 150
        assert len(book.author) == 50
        assert len(book.call_no) == 40


def test_add_book_rejects_overlong_work_id(app, librarian, classifier, rows):
    classifier.results["owi"] = Classification(
        title="Dune", author="Herbert", call_no="PS3558", work_id="12345678901234567"
    )
    with app.app_context():
        with pytest.raises(ValidationError, match="at most 16"):
            librarian.add_book(wi="owi")
    assert rows() == []


def test_add_book_requires_a_key(app, librarian):
    with app.app_context():
        with pytest.raises(ValidationError, match="No values provided"):
            librarian.add_book(username="Isaac")


def test_add_book_without_work_id_for_title_lookup(app, librarian, classifier, rows):
    classifier.results[("Dune", None)] = Classification(title="Dune", author="Herbert", call_no="PS3558")
    with app.app_context():
        with pytest.raises(ClassificationNotFound):
            librarian.add_book(title="Dune")
    assert rows() == []


def test_duplicate_insert(app, librarian, rows):
    with app.app_context():
        librarian.add_book(username="Isaac", isbn=CORALINE_ISBN)
    with app.app_context():
        with pytest.raises(DuplicateBook) as exc:
            librarian.add_book(username="Maya", isbn=CORALINE_ISBN)
    assert exc.value.status_code == 409
    assert rows()[0]["username"] == "Isaac"


def test_list_books_ordered_by_call_number(app, librarian, add_rows):
    add_rows(
        {"isbn": "1", "title": "b", "call_no": "QA76.73", "username": "u"},
        {"isbn": "2", "title": "a", "call_no": "PA4025", "username": "u"},
        {"isbn": "3", "title": "c", "call_no": "QA76.73", "username": "v"},
    )
    with app.app_context():
        assert [b.isbn for b in librarian.list_books()] == ["2", "1", "3"]
        assert [b.isbn for b in librarian.list_books("u")] == ["2", "1"]


def test_delete_by_username_leaves_other_users(app, librarian, add_rows, rows):
    add_rows(
        {"isbn": CORALINE_ISBN, "title": "Coraline", "username": "Isaac"},
        {"isbn": HOBBIT_ISBN, "title": "The Hobbit", "username": "Isaac"},
        {"isbn": ODYSSEY_ISBN, "title": "The Odyssey", "username": "Maya"},
        {"isbn": "70766981", "title": "Untagged", "username": None},
    )
    before = rows()

    with app.app_context():
        assert librarian.remove_books(username="Isaac") == 2

    assert rows() == [r for r in before if r["username"] != "Isaac"]


def test_delete_needs_a_filter(app, librarian):
    with app.app_context():
        with pytest.raises(ValidationError):
            librarian.books.delete()


def test_bootstrap_is_idempotent(app, librarian, add_rows, rows):
    add_rows({"isbn": CORALINE_ISBN, "title": "Coraline"})
    assert librarian.bootstrap() is True
    assert len(rows()) == 1


def test_close_releases_classifier(app, classifier):
    app.extensions["librarian"].close()
    assert classifier.closed is True


def test_book_repr():
    assert repr(Book(isbn=CORALINE_ISBN, call_no="PZ7")) == f"<Book {CORALINE_ISBN} PZ7>"
