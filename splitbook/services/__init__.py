"""Services package."""

from splitbook.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    "NotFoundError",
    "RecordStoreInterface",
    "StorageError",
]
