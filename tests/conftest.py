"""
Pytest configuration and fixtures for RouteFinder tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import create_app
from classify import Classification
from errors import ClassificationNotFound
from models import Book, db

CORALINE_ISBN = "9780380807345"
HOBBIT_ISBN = "9780261103344"
ODYSSEY_ISBN = "9780140449136"


class FakeClassifier:
    """Stands in for ClassifyClient; answers from a dict keyed by lookup value."""

    def __init__(self):
        self.results = {}
        self.calls = []
        self.error = None
        self.closed = False

    def classify(self, isbn=None, wi=None, title=None, author=None):
        self.calls.append({"isbn": isbn, "wi": wi, "title": title, "author": author})
        if self.error is not None:
            raise self.error
        key = isbn or wi or (title, author)
        if key not in self.results:
            raise ClassificationNotFound(f"no fake result for {key}")
        return self.results[key]

    def close(self):
        self.closed = True


@pytest.fixture
def classifier():
    fake = FakeClassifier()
    fake.results[CORALINE_ISBN] = Classification(
        title="Coraline",
        author="Gaiman, Neil",
        call_no="PZ7.G1273 Co 2002",
        work_id="70766981",
    )
    return fake


@pytest.fixture
def app(classifier):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "LOG_LEVEL": "WARNING",
        },
        classifier=classifier,
    )
    yield app
    with app.app_context():
        db.drop_all()
    app.extensions["librarian"].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def librarian(app):
    return app.extensions["librarian"]


@pytest.fixture
def add_rows(app):
    """Insert Book rows directly, bypassing classification."""

    def _add(*rows):
        with app.app_context():
            for row in rows:
                db.session.add(Book(**row))
            db.session.commit()

    return _add


@pytest.fixture
def rows(app):
    """Return every stored row as a dict, ordered by isbn."""

    def _rows(**filters):
        with app.app_context():
            stmt = db.select(Book).filter_by(**filters).order_by(Book.isbn)
            return [b.to_dict() for b in db.session.scalars(stmt)]

    return _rows
