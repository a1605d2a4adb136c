"""Services package.

Service classes are imported from their own modules; this package only
re-exports the error types so callers can catch them from one place.
"""

from noteweave.services.exceptions import (
    ConflictError,
    NoteweaveError,
    NotFoundError,
    TransactionAbortError,
    ValidationError,
)

__all__ = [
    "ConflictError",
    "NoteweaveError",
    "NotFoundError",
    "TransactionAbortError",
    "ValidationError",
]
