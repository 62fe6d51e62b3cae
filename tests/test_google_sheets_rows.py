"""Tests for the Google Sheets row mapping (no network)."""

import pytest
from datetime import date
from decimal import Decimal

from freelancer_tax.models.entry import Entry, LedgerKind, RateRegime
from freelancer_tax.services.storage.google_sheets import (
    LEDGER_COLUMNS,
    document_to_row,
    row_to_document,
)


class TestRowMapping:
    """Tests for document_to_row / row_to_document."""

    def test_row_layout(self):
        entry = Entry(
            key="u1-17",
            period="2024-05",
            occurred_on=date(2024, 5, 3),
            gross_income=Decimal("150000"),
            tax_amount=Decimal("4950"),
            net_income=Decimal("145050"),
            regime=RateRegime.WITHHOLDING,
            expense_rate=Decimal("0"),
        )
        row = document_to_row("u1", LedgerKind.DAILY, entry.key, entry.to_document())

        assert len(row) == len(LEDGER_COLUMNS)
        assert row[:4] == ["u1", "daily", "u1-17", "2024-05"]
        assert row[4] == "2024-05-03"
        assert row[5] == "150000"
        assert row[8] == ""  # no description

    def test_row_back_to_entry(self):
        entry = Entry(
            key="2024-05",
            period="2024-05",
            gross_income=Decimal("1000000"),
            tax_amount=Decimal("33000"),
            net_income=Decimal("967000"),
            description="Retainer, May",
        )
        row = document_to_row("u1", LedgerKind.MONTHLY, entry.key, entry.to_document())
        restored = Entry.from_document(row_to_document(row))
        assert restored == entry

    def test_short_row_is_tolerated(self):
        document = row_to_document(["u1", "monthly", "2024-05", "2024-05"])
        assert document["key"] == "2024-05"
        assert document["gross_income"] is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
