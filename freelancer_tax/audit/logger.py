"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Complete traceability of commits, overwrites and deletions
2. A record of every failed remote write (local and remote have diverged)
3. Debugging capability for stale reloads

The audit logger:
- Is async so it fits the coordinator's flow
- Gracefully handles failures (doesn't crash the app if logging fails)
"""

from typing import Optional

import structlog

from freelancer_tax.config import get_settings
from freelancer_tax.models.audit import AuditEvent, AuditEventBuilder
from freelancer_tax.services.storage import AuditStorageInterface, StorageError


def configure_logging(debug: bool = False) -> None:
    """
    Configure structlog for local logging.

    JSON lines by default; human-readable console output in debug mode.
    """
    renderer = (
        structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings().app.debug_mode)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when configured (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("freelancer_tax.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def recent_events(
        self,
        owner: Optional[str] = None,
        limit: int = 20,
    ) -> list[AuditEvent]:
        """
        Most recent persisted events, newest first.

        Empty when no storage is configured or the read fails.
        """
        if not self._storage:
            return []
        try:
            return await self._storage.get_recent_events(limit=limit, owner=owner)
        except StorageError as e:
            self._logger.error("audit_read_failed", error=str(e))
            return []

    async def log_entry_saved(
        self,
        owner: str,
        key: str,
        period: str,
        gross_income: str,
        overwritten: bool = False,
    ) -> None:
        await self.log(AuditEventBuilder.entry_saved(
            owner=owner,
            key=key,
            period=period,
            gross_income=gross_income,
            overwritten=overwritten,
        ))

    async def log_commit_conflict(self, owner: str, key: str) -> None:
        await self.log(AuditEventBuilder.commit_conflict(owner=owner, key=key))

    async def log_commit_rejected(
        self,
        owner: Optional[str],
        reason: str,
        issues: Optional[list[dict]] = None,
    ) -> None:
        await self.log(AuditEventBuilder.commit_rejected(
            owner=owner,
            reason=reason,
            issues=issues,
        ))

    async def log_income_adjusted(
        self,
        owner: str,
        key: str,
        delta: str,
        recomputed: bool,
    ) -> None:
        await self.log(AuditEventBuilder.income_adjusted(
            owner=owner,
            key=key,
            delta=delta,
            recomputed=recomputed,
        ))

    async def log_entry_removed(self, owner: str, key: str) -> None:
        await self.log(AuditEventBuilder.entry_removed(owner=owner, key=key))

    async def log_ledger_cleared(self, owner: str, removed: int) -> None:
        await self.log(AuditEventBuilder.ledger_cleared(owner=owner, removed=removed))

    async def log_identity_changed(self, owner: Optional[str], generation: int) -> None:
        await self.log(AuditEventBuilder.identity_changed(owner=owner, generation=generation))

    async def log_ledger_reloaded(self, owner: str, ledger_kind: str, count: int) -> None:
        await self.log(AuditEventBuilder.ledger_reloaded(
            owner=owner,
            ledger_kind=ledger_kind,
            count=count,
        ))

    async def log_stale_result(
        self,
        owner: Optional[str],
        operation: str,
        generation: int,
    ) -> None:
        """Log an async result dropped because the identity changed meanwhile."""
        await self.log(AuditEventBuilder.stale_result_discarded(
            owner=owner,
            operation=operation,
            generation=generation,
        ))

    async def log_export(self, owner: Optional[str], rows: int, year: Optional[str]) -> None:
        await self.log(AuditEventBuilder.export_generated(owner=owner, rows=rows, year=year))

    async def log_remote_failure(
        self,
        owner: Optional[str],
        operation: str,
        error_message: str,
        key: Optional[str] = None,
    ) -> None:
        """Log a failed remote read/write. Local state stays as it is."""
        await self.log(AuditEventBuilder.remote_failure(
            owner=owner,
            operation=operation,
            error_message=error_message,
            key=key,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        owner: Optional[str] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            owner=owner,
        ))
