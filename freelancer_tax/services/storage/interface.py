"""
Abstract Storage Interface

DESIGN DECISION: The remote store is a capability, not a dependency.
The ledger only needs a keyed document store addressed as
(owner, ledger_kind, key) -> document. This allows us to:
1. Use Google Sheets today
2. Use in-memory storage for testing and offline mode
3. Swap in a real database later without touching the ledger

Documents are plain JSON-friendly dicts (see Entry.to_document()).
"""

from abc import ABC, abstractmethod
from typing import Optional

from freelancer_tax.models.audit import AuditEvent
from freelancer_tax.models.entry import LedgerKind


class LedgerStorageInterface(ABC):
    """
    Abstract keyed document store for ledger entries.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def get(
        self,
        owner: str,
        ledger_kind: LedgerKind,
        key: str,
    ) -> Optional[dict]:
        """
        Retrieve one document.

        Returns:
            The document if found, None otherwise

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def put(
        self,
        owner: str,
        ledger_kind: LedgerKind,
        key: str,
        document: dict,
    ) -> bool:
        """
        Insert or replace the document stored under key.

        Returns:
            True if written successfully

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(
        self,
        owner: str,
        ledger_kind: LedgerKind,
        key: str,
    ) -> bool:
        """
        Delete the document stored under key.

        Returns:
            True if a document was deleted, False if none existed
        """
        pass

    @abstractmethod
    async def query(
        self,
        owner: str,
        ledger_kind: LedgerKind,
        order_by: str,
        descending: bool = True,
    ) -> list[dict]:
        """
        List every document under (owner, ledger_kind).

        Args:
            owner: Owner handle
            ledger_kind: monthly or daily
            order_by: Document field to sort on
            descending: Sort direction

        Returns:
            Documents sorted on order_by
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        owner: Optional[str] = None,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events
            owner: Only events for this owner (all owners if None)

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
