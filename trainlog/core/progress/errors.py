"""
Domain errors for the progress engine.

Each error maps to one way a request can fail. The API layer translates
them to HTTP responses; the core never knows about status codes.
"""

from typing import Optional


class ProgressError(Exception):
    """Base class for all progress engine errors."""
    pass


class ValidationError(ProgressError):
    """
    Caller-correctable input problem.

    Carries the offending field so clients can point the user at it.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class AuthError(ProgressError):
    """Missing or invalid credential. Never says which."""
    pass


class EntryNotFoundError(ProgressError):
    """
    Raised when an entry doesn't exist for the requesting owner.

    Absence and foreign ownership look the same from the outside.
    """
    pass


class StoreUnavailableError(ProgressError):
    """Raised when the entry store cannot be reached or a query fails."""
    pass
