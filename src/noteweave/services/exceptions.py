class NoteweaveError(Exception):
    """Base class for errors raised by noteweave services."""

    pass


class NotFoundError(NoteweaveError):
    """Raised when a node, parent, card, task or tag reference does not exist"""

    pass


class ConflictError(NoteweaveError):
    """Raised when a path or id collision cannot be resolved automatically"""

    pass


class ValidationError(NoteweaveError, ValueError):
    """Raised when input is missing or malformed"""

    pass


class TransactionAbortError(NoteweaveError):
    """Raised when the database fails to commit a transaction.

    Nothing from the aborted transaction is visible afterwards. The caller
    should resubmit the whole operation.
    """

    pass
