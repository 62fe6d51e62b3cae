"""
Storage Services Package

Provides the keyed document store interface and its implementations.
Google Sheets is the remote backend; the in-memory store backs tests
and offline mode.
"""

from freelancer_tax.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)
from freelancer_tax.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
]
