"""
Storage Services Package

Provides the abstract record store interface and an in-memory
implementation. Hosts plug in their own backend behind the interface.
"""

from splitbook.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)
from splitbook.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStoreInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
]
