"""
Ledger Export

Renders entries as comma-separated text for spreadsheets and accountants.

Values are written in their native representation (plain decimals, ISO
dates) with no currency symbols or locale separators, so the artifact
stays machine-readable. Fields containing a comma, quote or newline are
quoted by the csv module; row structure can never be corrupted by a
description.

The serializer does not prepend a byte-order mark. Whoever writes the
text to a file decides on encoding.
"""

import csv
import io
from typing import Callable, Iterable, Optional, Sequence

from freelancer_tax.models.entry import Entry, LedgerKind


def _plain(value) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


COLUMN_GETTERS: dict[str, Callable[[Entry], object]] = {
    "key": lambda e: e.key,
    "period": lambda e: e.period,
    "date": lambda e: e.occurred_on,
    "gross_income": lambda e: e.gross_income,
    "taxable_income": lambda e: e.taxable_income,
    "tax_amount": lambda e: e.tax_amount,
    "net_income": lambda e: e.net_income,
    "regime": lambda e: e.regime,
    "expense_rate": lambda e: e.expense_rate,
    "description": lambda e: e.description,
}


def default_columns(kind: LedgerKind, include_description: bool = True) -> list[str]:
    """Fixed export order: period|date, gross, tax, net[, description]."""
    first = "period" if kind is LedgerKind.MONTHLY else "date"
    columns = [first, "gross_income", "tax_amount", "net_income"]
    if include_description:
        columns.append("description")
    return columns


class ExportSerializer:
    """Serializes the currently visible entries to CSV text."""

    def __init__(self, delimiter: str = ","):
        self._delimiter = delimiter

    def serialize(
        self,
        entries: Iterable[Entry],
        columns: Optional[Sequence[str]] = None,
    ) -> str:
        """
        Render entries in the order given.

        Args:
            entries: The filtered view to export (not the full ledger)
            columns: Column names; defaults to the monthly layout

        Returns:
            Header line followed by one line per entry

        Raises:
            ValueError: If a column name is unknown
        """
        columns = list(columns or default_columns(LedgerKind.MONTHLY))
        unknown = [c for c in columns if c not in COLUMN_GETTERS]
        if unknown:
            raise ValueError(f"Unknown export columns: {', '.join(unknown)}")

        buffer = io.StringIO()
        writer = csv.writer(
            buffer,
            delimiter=self._delimiter,
            lineterminator="\n",
            quoting=csv.QUOTE_MINIMAL,
        )
        writer.writerow(columns)
        for entry in entries:
            writer.writerow([_plain(COLUMN_GETTERS[c](entry)) for c in columns])

        return buffer.getvalue()
