"""Services package."""

from freelancer_tax.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "StorageError",
]
