"""
Data Models Package

This package contains all Pydantic models used by the ledger engine.
All data flowing through the system must conform to these schemas.
"""

from freelancer_tax.models.entry import (
    CommitOutcome,
    CommitStatus,
    Entry,
    EntryDraft,
    LedgerKind,
    LedgerSummary,
    Period,
    PeriodTotals,
    RateRegime,
    REGIME_RATES,
    TaxBreakdown,
    ValidationIssue,
    ValidationResult,
)
from freelancer_tax.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CommitOutcome",
    "CommitStatus",
    "Entry",
    "EntryDraft",
    "LedgerKind",
    "LedgerSummary",
    "Period",
    "PeriodTotals",
    "RateRegime",
    "REGIME_RATES",
    "TaxBreakdown",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
