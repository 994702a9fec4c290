"""
Error taxonomy for RouteFinder.

Every failure a request can hit maps to one of these, each carrying a stable
code and the HTTP status the API answers with. The message is safe to show
to a client; details stay in the server log.
"""


class RouteFinderError(Exception):
    """Base exception for RouteFinder errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, detail: str = None):
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_dict(self):
        return {"status": "failure", "error": self.message, "code": self.code}


class ValidationError(RouteFinderError):
    """Request input was missing or malformed."""

    code = "VALIDATION_ERROR"
    status_code = 400


class ClassificationError(RouteFinderError):
    """Base for classification gateway failures."""

    code = "CLASSIFY_ERROR"
    status_code = 502


class ClassificationNotFound(ClassificationError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, detail: str = None):
        super().__init__("No classification found for that book", detail)


class ClassificationUnavailable(ClassificationError):
    code = "CLASSIFY_UNAVAILABLE"
    status_code = 502

    def __init__(self, detail: str = None):
        super().__init__("Classification service unavailable", detail)


class StorageError(RouteFinderError):
    code = "STORAGE_ERROR"
    status_code = 500

    def __init__(self, detail: str = None):
        super().__init__("Database error", detail)


class DuplicateBook(StorageError):
    code = "DUPLICATE"
    status_code = 409

    def __init__(self, isbn: str, detail: str = None):
        RouteFinderError.__init__(self, f"Book {isbn} is already on the list", detail)
        self.isbn = isbn
