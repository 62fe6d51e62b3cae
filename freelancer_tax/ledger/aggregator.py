"""
Ledger Aggregation

Derives daily, monthly and yearly totals from a snapshot of entries.

Summation is exact: amounts are Decimal and nothing is rounded along the
way. A group's tax is the sum of the already-rounded per-entry taxes, never
a recomputation from summed income, so the totals always agree with the
rows the user sees.
"""

from collections import defaultdict
from datetime import date
from typing import Iterable

from freelancer_tax.models.entry import Entry, LedgerSummary, PeriodTotals


def distinct_years(entries: Iterable[Entry]) -> list[str]:
    """Year prefixes present in entries, ascending. Feeds the year filter."""
    return sorted({entry.period_value.year() for entry in entries})


def summarize(entries: Iterable[Entry]) -> LedgerSummary:
    """
    Aggregate entries per period, per day and per year.

    Grouping is always by the entry's period, whatever the ledger kind.
    Daily totals only include entries that carry a transaction date.
    Empty input gives zero totals and empty mappings.
    """
    per_period: dict[str, PeriodTotals] = defaultdict(PeriodTotals)
    per_day: dict[date, PeriodTotals] = defaultdict(PeriodTotals)
    per_year: dict[str, PeriodTotals] = defaultdict(PeriodTotals)
    total = PeriodTotals()
    count = 0

    for entry in entries:
        count += 1
        total = total.including(entry)
        per_period[entry.period] = per_period[entry.period].including(entry)

        year = entry.period_value.year()
        per_year[year] = per_year[year].including(entry)

        if entry.occurred_on is not None:
            per_day[entry.occurred_on] = per_day[entry.occurred_on].including(entry)

    # Most recent first, matching the ledger table
    return LedgerSummary(
        per_period=dict(sorted(per_period.items(), reverse=True)),
        per_day=dict(sorted(per_day.items(), reverse=True)),
        per_year=dict(sorted(per_year.items(), reverse=True)),
        total=total,
        distinct_years=sorted(per_year),
        entry_count=count,
    )
