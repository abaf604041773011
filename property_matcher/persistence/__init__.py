"""Client record persistence.

ClientStore is the only component that touches the backing medium; the
backends below are interchangeable behind it.
"""

from .backends import (
    ClientBackend,
    InMemoryBackend,
    JSONFileBackend,
    SQLClientBackend,
    create_backend,
)
from .exceptions import (
    DatabaseConnectionError,
    PersistenceError,
    RecordNotFoundError,
    StorageReadError,
    StorageVerificationError,
    StorageWriteError,
)
from .store import ActiveRequest, ClientStore, RequestUpsertResult

__all__ = [
    # Store
    "ClientStore",
    "ActiveRequest",
    "RequestUpsertResult",
    # Backends
    "ClientBackend",
    "JSONFileBackend",
    "InMemoryBackend",
    "SQLClientBackend",
    "create_backend",
    # Exceptions
    "PersistenceError",
    "StorageReadError",
    "StorageWriteError",
    "StorageVerificationError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
]
