"""
In-Memory Storage Implementation

Used by the test-suite and as the offline fallback when Google Sheets
is not configured. Nothing survives a restart.
"""

import copy
from typing import Optional

from freelancer_tax.models.audit import AuditEvent
from freelancer_tax.models.entry import LedgerKind
from freelancer_tax.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
)


def sort_documents(documents: list[dict], order_by: str, descending: bool) -> list[dict]:
    """Sort documents on a field; documents missing the field sort last."""
    present = [d for d in documents if d.get(order_by) not in (None, "")]
    missing = [d for d in documents if d.get(order_by) in (None, "")]
    present.sort(key=lambda d: str(d[order_by]), reverse=descending)
    return present + missing


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed keyed document store."""

    def __init__(self):
        self._documents: dict[tuple[str, str, str], dict] = {}

    def _address(self, owner: str, ledger_kind: LedgerKind, key: str) -> tuple[str, str, str]:
        return owner, LedgerKind(ledger_kind).value, key

    async def get(self, owner: str, ledger_kind: LedgerKind, key: str) -> Optional[dict]:
        document = self._documents.get(self._address(owner, ledger_kind, key))
        return copy.deepcopy(document) if document is not None else None

    async def put(self, owner: str, ledger_kind: LedgerKind, key: str, document: dict) -> bool:
        self._documents[self._address(owner, ledger_kind, key)] = copy.deepcopy(document)
        return True

    async def delete(self, owner: str, ledger_kind: LedgerKind, key: str) -> bool:
        return self._documents.pop(self._address(owner, ledger_kind, key), None) is not None

    async def query(
        self,
        owner: str,
        ledger_kind: LedgerKind,
        order_by: str,
        descending: bool = True,
    ) -> list[dict]:
        kind = LedgerKind(ledger_kind).value
        documents = [
            copy.deepcopy(document)
            for (doc_owner, doc_kind, _), document in self._documents.items()
            if doc_owner == owner and doc_kind == kind
        ]
        return sort_documents(documents, order_by, descending)


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed append-only audit log."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100, owner: Optional[str] = None) -> list[AuditEvent]:
        events = [e for e in self.events if owner is None or e.owner == owner]
        return sorted(events, key=lambda e: e.timestamp, reverse=True)[:limit]
