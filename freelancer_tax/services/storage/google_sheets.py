"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the remote store because:
1. Freelancers can open their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to hand over to an accountant

TRADEOFFS:
- Not suitable for high-volume data (fine for one person's income)
- No transactions (a failed write is retried, then reported)
- Limited query capabilities (we filter and sort in Python)

All owners and both ledger kinds share one worksheet; the
(owner, ledger_kind, key) triple in the first three columns is the
document address.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from freelancer_tax.config import get_settings
from freelancer_tax.models.audit import AuditEvent, AuditEventType, AuditSeverity
from freelancer_tax.models.entry import LedgerKind
from freelancer_tax.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)
from freelancer_tax.services.storage.memory import sort_documents


# Column mappings for Ledger sheet
LEDGER_COLUMNS = [
    "owner",
    "ledger_kind",
    "key",
    "period",
    "occurred_on",
    "gross_income",
    "tax_amount",
    "net_income",
    "description",
    "regime",
    "expense_rate",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Everything from "key" onwards is the document itself
DOCUMENT_FIELDS = LEDGER_COLUMNS[2:]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_ledger_sheet(self) -> gspread.Worksheet:
        """Get or create the Ledger worksheet."""
        return self._get_or_create(self._settings.ledger_sheet_name, LEDGER_COLUMNS, 1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


def document_to_row(owner: str, ledger_kind: LedgerKind, key: str, document: dict) -> list:
    """Convert a ledger document to a spreadsheet row."""
    row = [owner, LedgerKind(ledger_kind).value, key]
    for field in DOCUMENT_FIELDS[1:]:
        value = document.get(field)
        row.append("" if value is None else str(value))
    return row


def row_to_document(row: list) -> dict:
    """Convert a spreadsheet row back to a ledger document."""
    # Handle missing columns gracefully
    def safe_get(index: int) -> Optional[str]:
        try:
            return row[index] if row[index] else None
        except IndexError:
            return None

    return {
        field: safe_get(index)
        for index, field in enumerate(DOCUMENT_FIELDS, start=2)
    }


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of the keyed ledger store.

    One document per row. Amounts are stored as plain decimal strings
    so Sheets never reformats them.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(
        self,
        all_rows: list[list],
        owner: str,
        ledger_kind: LedgerKind,
        key: str,
    ) -> Optional[int]:
        """1-based sheet row index of the addressed document, if any."""
        kind = LedgerKind(ledger_kind).value
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if len(row) >= 3 and row[0] == owner and row[1] == kind and row[2] == key:
                return idx
        return None

    async def get(self, owner: str, ledger_kind: LedgerKind, key: str) -> Optional[dict]:
        """Retrieve one document."""
        try:
            sheet = self._client.get_ledger_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, owner, ledger_kind, key)
            return row_to_document(all_rows[idx - 1]) if idx else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get entry: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def put(self, owner: str, ledger_kind: LedgerKind, key: str, document: dict) -> bool:
        """Insert or replace a document."""
        try:
            sheet = self._client.get_ledger_sheet()
            all_rows = sheet.get_all_values()
            row = document_to_row(owner, ledger_kind, key, document)
            idx = self._find_row(all_rows, owner, ledger_kind, key)

            if idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(
                    [row],
                    f"A{idx}",
                    value_input_option="RAW",
                )
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save entry: {e}")

    async def delete(self, owner: str, ledger_kind: LedgerKind, key: str) -> bool:
        """Delete a document."""
        try:
            sheet = self._client.get_ledger_sheet()
            idx = self._find_row(sheet.get_all_values(), owner, ledger_kind, key)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete entry: {e}")

    async def query(
        self,
        owner: str,
        ledger_kind: LedgerKind,
        order_by: str,
        descending: bool = True,
    ) -> list[dict]:
        """List documents for one owner and ledger kind."""
        try:
            sheet = self._client.get_ledger_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
            kind = LedgerKind(ledger_kind).value

            documents = [
                row_to_document(row)
                for row in all_rows
                if len(row) >= 3 and row[0] == owner and row[1] == kind
            ]
            return sort_documents(documents, order_by, descending)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            owner=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
        owner: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Get recent events, optionally for one owner only."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]

            events = []
            for row in all_rows:
                if row and row[0] and (owner is None or (len(row) > 4 and row[4] == owner)):
                    try:
                        events.append(self._row_to_event(row))
                    except ValueError:
                        continue  # Skip malformed rows

            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
