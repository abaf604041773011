"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so callers can catch
storage problems with a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all client store errors."""

    pass


class StorageReadError(PersistenceError):
    """Raised when the backing document or table cannot be read or parsed.

    ClientStore recovers from this on load by starting empty and
    re-initializing the medium; it never reaches store callers.
    """

    def __init__(self, message: str, location: str = None):
        self.location = location
        super().__init__(message)


class StorageWriteError(PersistenceError):
    """Raised when a flush to the backing medium fails.

    Examples:
    - Disk full or permission denied on the JSON document
    - SQL transaction failure
    """

    def __init__(self, message: str, location: str = None):
        self.location = location
        super().__init__(message)


class StorageVerificationError(StorageWriteError):
    """Raised when the document read back after a write differs from what was written."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when the SQL backend cannot create or validate its engine.

    Examples:
    - Invalid database URL
    - Database file not accessible
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when an operation requires a client record that does not exist.

    Lookups that are allowed to miss return None instead.
    """

    pass
