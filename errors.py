"""
Error taxonomy for the resource catalog.

These are carried inside an Outcome (below) rather than raised
across the public API. The HTTP layer maps them onto status codes.
"""


class CatalogError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """Missing or malformed input."""
    status_code = 400


class AuthenticationError(ValidationError):
    status_code = 401


class NotFoundError(CatalogError):
    status_code = 404


class DuplicateError(CatalogError):
    """Registration email collision."""
    status_code = 400


class StorageCapacityError(CatalogError):
    """The persistent write failed (quota exceeded or driver error)."""
    status_code = 507


class Outcome:
    """Result of a catalog operation: success flag, value, or the error that stopped it."""

    __slots__ = ("ok", "value", "error", "message")

    def __init__(self, ok, value=None, error=None, message=""):
        self.ok = ok
        self.value = value
        self.error = error
        self.message = message

    @classmethod
    def success(cls, value=None, message=""):
        return cls(True, value=value, message=message)

    @classmethod
    def failure(cls, error: CatalogError):
        return cls(False, error=error, message=error.message)

    def __bool__(self):
        return self.ok

    def __repr__(self):
        state = "ok" if self.ok else type(self.error).__name__
        return f"<Outcome {state}: {self.message!r}>"
