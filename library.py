from contextlib import contextmanager

import isbnlib
from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import ClassificationNotFound, DuplicateBook, StorageError, ValidationError
from models import (
    AUTHOR_LENGTH, CALL_NO_LENGTH, ISBN_LENGTH, TITLE_LENGTH, USERNAME_LENGTH, Book
)


# ------------------- ISBN -------------------
def normalize_isbn(raw):
    """Return the ISBN-13 form of an ISBN-10 or ISBN-13, hyphens and spaces allowed."""
    if not raw or not str(raw).strip():
        raise ValidationError("An ISBN is required")

    isbn = isbnlib.canonical(str(raw))
    if isbnlib.is_isbn10(isbn):
        return isbnlib.to_isbn13(isbn)
    if isbnlib.is_isbn13(isbn):
        return isbn
    raise ValidationError("Invalid ISBN", detail=str(raw))


def check_key(key):
    """Work ids share the isbn column, so they must fit it untruncated."""
    if len(key) > ISBN_LENGTH:
        raise ValidationError(f"Book key must be at most {ISBN_LENGTH} characters", detail=key)
    return key


def lookup_key(raw):
    """An ISBN in its ISBN-13 form, otherwise the stored work id as given."""
    try:
        return normalize_isbn(raw)
    except ValidationError:
        if not raw or not str(raw).strip():
            raise
        return check_key(str(raw).strip())


def clean_username(raw):
    if raw is None:
        return None
    username = str(raw).strip()
    if not username:
        return None
    if len(username) > USERNAME_LENGTH:
        raise ValidationError(f"Username must be at most {USERNAME_LENGTH} characters")
    return username


# ------------------- Persistence -------------------
class BookList:
    """Statements against the booklist table."""

    def __init__(self, db):
        self.db = db

    @contextmanager
    def session_scope(self, commit=True):
        # The connection goes back to the pool at app-context teardown
        session = self.db.session
        try:
            yield session
            if commit:
                session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise

    def insert(self, book):
        try:
            with self.session_scope() as session:
                session.add(book)
        except IntegrityError as e:
            logger.warning(f"Duplicate insert for {book.isbn}: {e.orig}")
            raise DuplicateBook(book.isbn, detail=str(e.orig)) from e
        except SQLAlchemyError as e:
            logger.error(f"Insert failed for {book.isbn}: {e}")
            raise StorageError(str(e)) from e

        logger.info(f"Inserted {book.isbn} ({book.call_no}) for {book.username!r}")
        return book

    def list(self, username=None):
        stmt = select(Book)
        if username is not None:
            stmt = stmt.where(Book.username == username)
        stmt = stmt.order_by(Book.call_no, Book.isbn)

        try:
            with self.session_scope(commit=False) as session:
                return list(session.scalars(stmt))
        except SQLAlchemyError as e:
            logger.error(f"Listing books for {username!r} failed: {e}")
            raise StorageError(str(e)) from e

    def delete(self, username=None, isbn=None):
        if username is None and isbn is None:
            raise ValidationError("A username or an ISBN is required")

        stmt = delete(Book)
        if username is not None:
            stmt = stmt.where(Book.username == username)
        if isbn is not None:
            stmt = stmt.where(Book.isbn == isbn)

        try:
            with self.session_scope() as session:
                removed = session.execute(stmt).rowcount
        except SQLAlchemyError as e:
            logger.error(f"Delete failed for username={username!r} isbn={isbn!r}: {e}")
            raise StorageError(str(e)) from e

        logger.info(f"Removed {removed} book(s) for username={username!r} isbn={isbn!r}")
        return removed


# ------------------- Service -------------------
class Librarian:
    """
    Owns the connection pool and the classification client for one app.

    ``open`` bootstraps the table; ``close`` releases the classifier session
    and every pooled connection.
    """

    def __init__(self, db, classifier):
        self.db = db
        self.classifier = classifier
        self.books = BookList(db)
        self.app = None

    def open(self, app):
        self.app = app
        self.bootstrap()
        return self

    def bootstrap(self):
        try:
            with self.app.app_context():
                self.db.create_all()
        except SQLAlchemyError as e:
            logger.error(f"Could not create the booklist table: {e}")
            return False
        logger.info("booklist table ready")
        return True

    def close(self):
        self.classifier.close()
        if self.app is not None:
            with self.app.app_context():
                self.db.engine.dispose()
        logger.info("Librarian closed")

    def add_book(self, username=None, isbn=None, wi=None, title=None, author=None):
        """Classify a book and store it. Returns the stored Book."""
        username = clean_username(username)

        if isbn:
            key = normalize_isbn(isbn)
            result = self.classifier.classify(isbn=key)
        elif wi:
            result = self.classifier.classify(wi=str(wi).strip())
            key = result.work_id or str(wi).strip()
        elif title or author:
            result = self.classifier.classify(title=title, author=author)
            key = result.work_id
        else:
            raise ValidationError("No values provided")

        if not result.title:
            logger.warning(f"Classifier returned no title for {key}")
            raise ClassificationNotFound(f"empty title for {key}")
        if not key:
            raise ClassificationNotFound("classification has no work id")

        book = Book(
            isbn=check_key(key),
            author=(result.author or "")[:AUTHOR_LENGTH],
            title=result.title[:TITLE_LENGTH],
            call_no=(result.call_no or "")[:CALL_NO_LENGTH],
            username=username,
        )
        return self.books.insert(book)

    def list_books(self, username=None):
        return self.books.list(clean_username(username))

    def remove_books(self, username=None, isbn=None):
        username = clean_username(username)
        if isbn:
            isbn = lookup_key(isbn)
        return self.books.delete(username=username, isbn=isbn or None)
