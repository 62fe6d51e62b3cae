"""
Audit Models for Freelancer Tax Ledger

Every ledger mutation and every remote failure is logged for audit purposes.
This provides:
1. Traceability of all commits, overwrites and deletions
2. Debugging information when local and remote state diverge
3. Ability to reconstruct history after a failed remote write

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from freelancer_tax.models.entry import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Commits
    ENTRY_SAVED = "entry_saved"
    ENTRY_OVERWRITTEN = "entry_overwritten"
    COMMIT_CONFLICT = "commit_conflict"
    COMMIT_REJECTED = "commit_rejected"
    INCOME_ADJUSTED = "income_adjusted"

    # Removal
    ENTRY_REMOVED = "entry_removed"
    LEDGER_CLEARED = "ledger_cleared"

    # Session
    IDENTITY_CHANGED = "identity_changed"
    LEDGER_RELOADED = "ledger_reloaded"
    STALE_RESULT_DISCARDED = "stale_result_discarded"

    # Output
    EXPORT_GENERATED = "export_generated"

    # System events
    REMOTE_WRITE_FAILED = "remote_write_failed"
    REMOTE_READ_FAILED = "remote_read_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant ledger action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - whose ledger, which entry?
    owner: Optional[str] = Field(
        default=None,
        description="Owner whose ledger the event relates to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'ledger', 'export')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Key of the entity this event relates to"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner": self.owner,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner, entity_type,
         entity_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner or "",
            self.entity_type or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_saved(owner, key, period, "1000000")
        event = AuditEventBuilder.remote_write_failed(owner, key, "timeout")
    """

    @staticmethod
    def entry_saved(
        owner: str,
        key: str,
        period: str,
        gross_income: str,
        overwritten: bool = False,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.ENTRY_OVERWRITTEN if overwritten else AuditEventType.ENTRY_SAVED
        )
        verb = "overwritten" if overwritten else "saved"
        return AuditEvent(
            event_type=event_type,
            owner=owner,
            entity_type="entry",
            entity_id=key,
            description=f"Entry {verb}: {period} - {gross_income}",
            details={
                "period": period,
                "gross_income": gross_income,
            },
            is_user_action=True,
        )

    @staticmethod
    def commit_conflict(owner: str, key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_CONFLICT,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="entry",
            entity_id=key,
            description=f"Entry {key} already exists, overwrite needs confirmation",
            is_user_action=True,
        )

    @staticmethod
    def commit_rejected(
        owner: Optional[str],
        reason: str,
        issues: Optional[list[dict]] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_REJECTED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="entry",
            description=f"Commit rejected: {reason}",
            details={
                "reason": reason,
                "issues": issues or [],
            },
            is_user_action=True,
        )

    @staticmethod
    def income_adjusted(
        owner: str,
        key: str,
        delta: str,
        recomputed: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_ADJUSTED,
            owner=owner,
            entity_type="entry",
            entity_id=key,
            description=f"Income adjusted by {delta}",
            details={
                "delta": delta,
                "tax_recomputed": recomputed,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_removed(owner: str, key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REMOVED,
            owner=owner,
            entity_type="entry",
            entity_id=key,
            description=f"Entry removed: {key}",
            is_user_action=True,
        )

    @staticmethod
    def ledger_cleared(owner: str, removed: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CLEARED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="ledger",
            description=f"Ledger cleared ({removed} entries)",
            details={"removed": removed},
            is_user_action=True,
        )

    @staticmethod
    def identity_changed(owner: Optional[str], generation: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_CHANGED,
            owner=owner,
            entity_type="session",
            description="Signed in" if owner else "Signed out",
            details={"generation": generation},
        )

    @staticmethod
    def ledger_reloaded(owner: str, ledger_kind: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RELOADED,
            owner=owner,
            entity_type="ledger",
            description=f"Loaded {count} {ledger_kind} entries",
            details={
                "ledger_kind": ledger_kind,
                "count": count,
            },
        )

    @staticmethod
    def stale_result_discarded(
        owner: Optional[str],
        operation: str,
        generation: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESULT_DISCARDED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="session",
            description=f"Discarded stale {operation} result",
            details={
                "operation": operation,
                "generation": generation,
            },
        )

    @staticmethod
    def export_generated(owner: Optional[str], rows: int, year: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_GENERATED,
            owner=owner,
            entity_type="export",
            description=f"Exported {rows} rows",
            details={
                "rows": rows,
                "year": year,
            },
            is_user_action=True,
        )

    @staticmethod
    def remote_failure(
        owner: Optional[str],
        operation: str,
        error_message: str,
        key: Optional[str] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.REMOTE_READ_FAILED
            if operation == "query"
            else AuditEventType.REMOTE_WRITE_FAILED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR,
            owner=owner,
            entity_type="entry" if key else "ledger",
            entity_id=key,
            description=f"Remote {operation} failed",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        owner: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            owner=owner,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
