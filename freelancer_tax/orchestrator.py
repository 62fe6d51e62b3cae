"""
Main Orchestrator for Freelancer Tax Ledger

This module ties the components together and defines the ledger
commands the front-end calls:
1. Identity change → reload (or clear) the in-memory ledger
2. Commit → validate → confirm overwrite → write remote → upsert local
3. Remove / clear / adjust
4. Views: filtered entries, summaries, year list, export

DESIGN DECISION: The orchestrator enforces the boundaries:
- No overwrite of a recorded month without explicit confirmation
- No commit without a signed-in owner
- Every command returns a CommitOutcome; expected failures never raise

CONSISTENCY MODEL: remote writes are best-effort. When a remote write
fails it is logged and reported (remote_persisted=False), but the local
optimistic update still happens. Local and remote then diverge until
the next full reload; the last writer wins. This is a known, accepted
weak-consistency trade-off for a single-user ledger.
"""

import asyncio
import time
from typing import Callable, Optional, Sequence

import structlog
from pydantic import ValidationError

from freelancer_tax.audit import AuditLogger
from freelancer_tax.config import get_settings
from freelancer_tax.ledger import (
    EntryStore,
    ExportSerializer,
    FilteredEntries,
    default_columns,
    distinct_years,
    summarize,
    year_filter,
)
from freelancer_tax.models.audit import AuditEvent
from freelancer_tax.models.entry import (
    CommitOutcome,
    CommitStatus,
    Entry,
    EntryDraft,
    LedgerKind,
    LedgerSummary,
    RateRegime,
    TaxBreakdown,
    ValidationResult,
)
from freelancer_tax.services.storage import (
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from freelancer_tax.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)
from freelancer_tax.session import IdentityProvider, SessionContext, SessionToken
from freelancer_tax.tax import TaxCalculator, parse_amount
from freelancer_tax.validation import DraftValidator


logger = structlog.get_logger("freelancer_tax.orchestrator")


class TimestampKeyFactory:
    """
    Mints owner-scoped transaction keys from the wall clock.

    Keys are strictly increasing even when two commits land in the
    same nanosecond tick.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns):
        self._clock = clock
        self._last = 0

    def __call__(self, owner: str) -> str:
        stamp = max(self._clock(), self._last + 1)
        self._last = stamp
        return f"{owner}-{stamp}"


class SyncCoordinator:
    """
    Keeps the in-memory EntryStore in step with the remote keyed store.

    Commands:
        on_identity_change(owner)       sign-in / sign-out / switch
        reload()                        full refresh from remote
        check_conflict(key)             would a commit overwrite?
        commit(draft, confirmed)        save an entry
        remove(key), clear(confirmed)   delete one / all
        adjust_income(key, delta)       named "+100" style bump

    Reload and the write commands are serialised on one asyncio lock,
    so a commit can never be overwritten by an in-flight reload.
    Sign-out does not wait for the lock: it clears at once and bumps
    the session generation, which makes any in-flight result stale.
    """

    def __init__(
        self,
        storage: Optional[LedgerStorageInterface] = None,
        ledger_kind: LedgerKind = LedgerKind.MONTHLY,
        store: Optional[EntryStore] = None,
        calculator: Optional[TaxCalculator] = None,
        validator: Optional[DraftValidator] = None,
        serializer: Optional[ExportSerializer] = None,
        audit_logger: Optional[AuditLogger] = None,
        session: Optional[SessionContext] = None,
        key_factory: Optional[Callable[[str], str]] = None,
    ):
        self._storage = storage
        self._kind = LedgerKind(ledger_kind)
        self._calculator = calculator or TaxCalculator()
        self._store = store or EntryStore(self._calculator)
        self._validator = validator or DraftValidator(self._kind)
        self._serializer = serializer or ExportSerializer()
        self._audit_logger = audit_logger or AuditLogger()
        self._session = session or SessionContext()
        self._key_factory = key_factory or TimestampKeyFactory()
        self._lock = asyncio.Lock()

    @property
    def ledger_kind(self) -> LedgerKind:
        return self._kind

    @property
    def store(self) -> EntryStore:
        return self._store

    @property
    def session(self) -> SessionContext:
        return self._session

    @property
    def owner(self) -> Optional[str]:
        return self._session.owner

    # -------------------------------------------------------------------------
    # Identity & reload
    # -------------------------------------------------------------------------

    def attach(self, identity: IdentityProvider) -> Callable[[], None]:
        """Follow an identity provider. Returns the unsubscribe function."""
        return identity.subscribe(self.on_identity_change)

    async def on_identity_change(self, owner: Optional[str]) -> bool:
        """
        React to sign-in, sign-out or account switch.

        The previous owner's entries are discarded immediately. With a
        new owner the ledger is then reloaded from remote.

        Returns:
            True if the ledger now reflects the new identity
        """
        token = self._session.switch(owner)
        self._store.clear()
        await self._audit_logger.log_identity_changed(owner, token.generation)

        if owner is None:
            return True
        return await self._reload(token)

    async def reload(self) -> bool:
        """
        Replace the local ledger with the remote one for the current owner.

        Returns:
            True if the reload was applied
        """
        if not self._session.is_authenticated:
            self._store.clear()
            return False
        return await self._reload(self._session.token())

    async def _reload(self, token: SessionToken) -> bool:
        async with self._lock:
            if not self._session.is_current(token):
                await self._audit_logger.log_stale_result(token.owner, "reload", token.generation)
                return False

            if self._storage is None:
                return True

            try:
                documents = await self._storage.query(
                    token.owner,
                    self._kind,
                    order_by=self._kind.grouping_field,
                    descending=True,
                )
            except StorageError as e:
                await self._audit_logger.log_remote_failure(token.owner, "query", str(e))
                return False

            entries = []
            for document in documents:
                try:
                    entries.append(Entry.from_document(document))
                except ValidationError as e:
                    # Skip malformed rows rather than losing the whole ledger
                    await self._audit_logger.log_error(
                        "malformed_document",
                        str(e),
                        details={"key": document.get("key")},
                        owner=token.owner,
                    )

            if not self._session.is_current(token):
                await self._audit_logger.log_stale_result(token.owner, "reload", token.generation)
                return False

            self._store.replace_all(entries)
            await self._audit_logger.log_ledger_reloaded(token.owner, self._kind.value, len(entries))
            return True

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    def preview(
        self,
        gross_income,
        expense_rate_percent,
        regime: RateRegime = RateRegime.WITHHOLDING,
    ) -> TaxBreakdown:
        """Live preview while the user types. Never raises on bad numbers."""
        return self._calculator.compute(gross_income, expense_rate_percent, regime)

    def validate(self, draft: EntryDraft) -> ValidationResult:
        return self._validator.validate(draft)

    def check_conflict(self, key: str) -> bool:
        """
        Would committing key overwrite a recorded entry?

        Only month ledgers replace on duplicate; transaction ledgers
        always append under a fresh key.
        """
        return self._kind.replaces_on_duplicate and self._store.exists(key)

    async def commit(self, draft: EntryDraft, confirmed: bool = False) -> CommitOutcome:
        """
        Save a draft as a ledger entry.

        Month ledger: the key is the period. If that period is already
        recorded and confirmed is False, nothing is written and a
        CONFLICT outcome asks the caller to confirm.

        Transaction ledger: every commit writes a new key.

        Returns:
            CommitOutcome describing what happened
        """
        token = self._session.token()
        if token.owner is None:
            await self._audit_logger.log_commit_rejected(None, "not signed in")
            return self._unauthenticated()

        result = self._validator.validate(draft)
        if not result.is_valid:
            await self._audit_logger.log_commit_rejected(
                token.owner,
                "invalid input",
                issues=[issue.model_dump() for issue in result.issues],
            )
            return CommitOutcome(
                status=CommitStatus.INVALID_INPUT,
                success=False,
                message=self._validator.get_user_friendly_summary(result),
            )

        async with self._lock:
            if not self._session.is_current(token):
                return self._stale_outcome()

            if self._kind.replaces_on_duplicate:
                key = result.resolved_period
                existed = self._store.exists(key)
                if existed and not confirmed:
                    await self._audit_logger.log_commit_conflict(token.owner, key)
                    return CommitOutcome(
                        status=CommitStatus.CONFLICT,
                        success=False,
                        key=key,
                        message=f"{key} is already recorded. Overwrite it?",
                    )
            else:
                key = self._key_factory(token.owner)
                existed = False

            try:
                entry = self._build_entry(key, draft, result)
            except ValidationError as e:
                await self._audit_logger.log_commit_rejected(token.owner, str(e))
                return CommitOutcome(
                    status=CommitStatus.INVALID_INPUT,
                    success=False,
                    key=key,
                    message="These amounts cannot be saved. Check the expense rate.",
                )

            remote_ok = await self._write_remote(token, entry)
            if not self._session.is_current(token):
                await self._audit_logger.log_stale_result(token.owner, "commit", token.generation)
                return self._stale_outcome()

            self._store.upsert(entry)
            await self._audit_logger.log_entry_saved(
                owner=token.owner,
                key=entry.key,
                period=entry.period,
                gross_income=str(entry.gross_income),
                overwritten=existed,
            )

            return CommitOutcome(
                status=CommitStatus.OVERWRITTEN if existed else CommitStatus.SAVED,
                success=True,
                key=entry.key,
                entry=entry,
                remote_persisted=remote_ok,
                message=self._saved_message(remote_ok),
            )

    def _build_entry(self, key: str, draft: EntryDraft, result: ValidationResult) -> Entry:
        breakdown = self._calculator.compute(
            result.resolved_income,
            result.resolved_expense_rate,
            draft.regime,
        )
        return Entry(
            key=key,
            period=result.resolved_period,
            occurred_on=result.resolved_date,
            gross_income=result.resolved_income,
            tax_amount=breakdown.tax_amount,
            net_income=breakdown.net_income,
            description=draft.description or None,
            regime=draft.regime,
            expense_rate=result.resolved_expense_rate,
        )

    async def _write_remote(self, token: SessionToken, entry: Entry) -> bool:
        if self._storage is None:
            return False
        try:
            return await self._storage.put(token.owner, self._kind, entry.key, entry.to_document())
        except StorageError as e:
            await self._audit_logger.log_remote_failure(token.owner, "put", str(e), key=entry.key)
            return False

    @staticmethod
    def _saved_message(remote_ok: bool) -> str:
        if remote_ok:
            return "Saved."
        return "Saved on this device only. It will sync after the next reload."

    @staticmethod
    def _stale_outcome() -> CommitOutcome:
        return CommitOutcome(
            status=CommitStatus.STALE,
            success=False,
            message="You were signed out before this finished. Nothing was saved.",
        )

    @staticmethod
    def _unauthenticated() -> CommitOutcome:
        return CommitOutcome(
            status=CommitStatus.UNAUTHENTICATED,
            success=False,
            message="Please sign in first.",
        )

    # -------------------------------------------------------------------------
    # Remove / clear / adjust
    # -------------------------------------------------------------------------

    async def remove(self, key: str) -> CommitOutcome:
        """Delete one entry. An unknown key is reported, not raised."""
        token = self._session.token()
        if token.owner is None:
            return self._unauthenticated()

        async with self._lock:
            if not self._store.exists(key):
                return CommitOutcome(
                    status=CommitStatus.NOT_FOUND,
                    success=True,
                    key=key,
                    message="Nothing to remove.",
                )

            remote_ok = False
            if self._storage is not None:
                try:
                    await self._storage.delete(token.owner, self._kind, key)
                    remote_ok = True
                except StorageError as e:
                    await self._audit_logger.log_remote_failure(token.owner, "delete", str(e), key=key)

            if not self._session.is_current(token):
                return self._stale_outcome()

            self._store.delete(key)
            await self._audit_logger.log_entry_removed(token.owner, key)
            return CommitOutcome(
                status=CommitStatus.REMOVED,
                success=True,
                key=key,
                remote_persisted=remote_ok,
                message="Removed.",
            )

    async def clear(self, confirmed: bool = False) -> CommitOutcome:
        """
        Delete every entry of the current owner's ledger.

        Refuses unless confirmed is True.
        """
        token = self._session.token()
        if token.owner is None:
            return self._unauthenticated()

        if not confirmed:
            return CommitOutcome(
                status=CommitStatus.CONFIRMATION_REQUIRED,
                success=False,
                message=f"Delete all {len(self._store)} entries?",
            )

        async with self._lock:
            keys = [entry.key for entry in self._store.ordered()]
            remote_ok = self._storage is not None
            if self._storage is not None:
                for key in keys:
                    try:
                        await self._storage.delete(token.owner, self._kind, key)
                    except StorageError as e:
                        remote_ok = False
                        await self._audit_logger.log_remote_failure(
                            token.owner, "delete", str(e), key=key
                        )

            if not self._session.is_current(token):
                return self._stale_outcome()

            self._store.clear()
            await self._audit_logger.log_ledger_cleared(token.owner, len(keys))
            return CommitOutcome(
                status=CommitStatus.CLEARED,
                success=True,
                remote_persisted=remote_ok,
                message=f"Removed {len(keys)} entries.",
            )

    async def adjust_income(
        self,
        key: str,
        delta,
        recompute: bool = False,
    ) -> CommitOutcome:
        """
        Bump one entry's gross income (the "+100" button).

        Tax and net stay as they were unless recompute is True.
        """
        token = self._session.token()
        if token.owner is None:
            return self._unauthenticated()

        amount = parse_amount(delta)
        if amount is None:
            return CommitOutcome(
                status=CommitStatus.INVALID_INPUT,
                success=False,
                key=key,
                message=f"'{delta}' is not a number.",
            )

        async with self._lock:
            if not self._store.exists(key):
                return CommitOutcome(
                    status=CommitStatus.NOT_FOUND,
                    success=False,
                    key=key,
                    message="That entry no longer exists.",
                )

            try:
                entry = self._store.adjust_income(key, amount, recompute=recompute)
            except ValueError as e:
                return CommitOutcome(
                    status=CommitStatus.INVALID_INPUT,
                    success=False,
                    key=key,
                    message=str(e),
                )

            remote_ok = await self._write_remote(token, entry)
            if not self._session.is_current(token):
                await self._audit_logger.log_stale_result(token.owner, "adjust_income", token.generation)
                return self._stale_outcome()

            await self._audit_logger.log_income_adjusted(
                token.owner, key, str(amount), recomputed=recompute
            )
            return CommitOutcome(
                status=CommitStatus.SAVED,
                success=True,
                key=key,
                entry=entry,
                remote_persisted=remote_ok,
                message=self._saved_message(remote_ok),
            )

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def entries(self, year: Optional[str] = None) -> FilteredEntries:
        """Entries most recent first, optionally limited to one year."""
        return self._store.list_filtered(year_filter(year) if year else None)

    def summary(self, year: Optional[str] = None) -> LedgerSummary:
        return summarize(self.entries(year))

    def distinct_years(self) -> list[str]:
        """Years present in the whole ledger, for the year filter."""
        return distinct_years(self._store.ordered())

    async def export(
        self,
        year: Optional[str] = None,
        columns: Optional[Sequence[str]] = None,
    ) -> str:
        """CSV text of the currently visible entries."""
        visible = list(self.entries(year))
        text = self._serializer.serialize(visible, columns or default_columns(self._kind))
        await self._audit_logger.log_export(self.owner, len(visible), year)
        return text

    async def recent_activity(self, limit: int = 20) -> list[AuditEvent]:
        """Latest audit events for the signed-in owner, newest first."""
        if self.owner is None:
            return []
        return await self._audit_logger.recent_events(owner=self.owner, limit=limit)


def create_app_components(
    use_storage: bool = True,
    ledger_kind: Optional[LedgerKind] = None,
) -> tuple[SyncCoordinator, IdentityProvider, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Falls back to in-memory storage when False or
                    when Sheets is not configured.
        ledger_kind: Overrides the LEDGER_KIND setting

    Returns:
        (coordinator, identity_provider, sheets_client)
    """
    settings = get_settings()
    kind = ledger_kind or settings.ledger.kind

    sheets_client = None
    storage: LedgerStorageInterface = InMemoryLedgerStorage()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage and settings.app.use_remote_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("remote_storage_unavailable", error=str(e))
            sheets_client = None

    coordinator = SyncCoordinator(
        storage=storage,
        ledger_kind=kind,
        audit_logger=audit_logger,
    )
    identity = IdentityProvider()
    coordinator.attach(identity)

    return coordinator, identity, sheets_client
