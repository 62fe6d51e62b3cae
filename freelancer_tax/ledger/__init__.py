"""Ledger package: in-memory store, aggregation and export."""

from freelancer_tax.ledger.aggregator import distinct_years, summarize
from freelancer_tax.ledger.export import ExportSerializer, default_columns
from freelancer_tax.ledger.store import (
    EntryStore,
    FilteredEntries,
    period_filter,
    year_filter,
)

__all__ = [
    "EntryStore",
    "ExportSerializer",
    "FilteredEntries",
    "default_columns",
    "distinct_years",
    "period_filter",
    "summarize",
    "year_filter",
]
