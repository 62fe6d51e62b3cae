"""
In-memory Entry Store

Holds the current owner's ledger entries, keyed by entry key.

DESIGN DECISION: The store is deliberately dumb about confirmation.
upsert() always replaces or inserts. Whether an overwrite was allowed
is decided one level up, by asking exists() BEFORE calling upsert().
Keeping the query and the write apart lets the coordinator turn an
"are you sure?" dialog into a plain boolean.
"""

from decimal import Decimal
from typing import Callable, Iterable, Iterator, Optional

from freelancer_tax.models.entry import Entry, utcnow
from freelancer_tax.tax.calculator import MAX_AMOUNT, TaxCalculator


EntryPredicate = Callable[[Entry], bool]


def year_filter(year: str) -> EntryPredicate:
    """Entries whose period falls in the given year."""
    return lambda entry: entry.period_value.year() == year


def period_filter(period: str) -> EntryPredicate:
    """Entries belonging to one period."""
    return lambda entry: entry.period == period


class FilteredEntries:
    """
    Lazy, restartable view over matching entries.

    Each iteration takes a fresh snapshot of the store, so the view
    reflects later mutations and can be walked any number of times.
    """

    def __init__(self, store: "EntryStore", predicate: Optional[EntryPredicate] = None):
        self._store = store
        self._predicate = predicate

    def __iter__(self) -> Iterator[Entry]:
        for entry in self._store.ordered():
            if self._predicate is None or self._predicate(entry):
                yield entry

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return any(True for _ in self)


class EntryStore:
    """
    In-memory collection of ledger entries with unique keys.

    Insertion order is preserved internally; readers get entries most
    recent first via ordered() and list_filtered().
    """

    def __init__(self, calculator: Optional[TaxCalculator] = None):
        self._entries: dict[str, Entry] = {}
        self._calculator = calculator or TaxCalculator()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def exists(self, key: str) -> bool:
        """Is an entry stored under this key? No side effects."""
        return key in self._entries

    def get(self, key: str) -> Optional[Entry]:
        return self._entries.get(key)

    def upsert(self, entry: Entry) -> list[Entry]:
        """
        Replace or insert unconditionally.

        Callers that need an overwrite confirmation must check exists()
        first.

        Returns:
            The resulting collection, most recent first

        Raises:
            ValueError: If the entry's amounts are invalid
        """
        self._calculator.validate_amounts(entry)
        self._entries[entry.key] = entry
        return self.ordered()

    def delete(self, key: str) -> bool:
        """Remove an entry. Absent keys are a no-op, not an error."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def replace_all(self, entries: Iterable[Entry]) -> None:
        """Swap the whole collection, e.g. after a reload."""
        fresh: dict[str, Entry] = {}
        for entry in entries:
            self._calculator.validate_amounts(entry)
            fresh[entry.key] = entry
        self._entries = fresh

    def adjust_income(
        self,
        key: str,
        delta: Decimal,
        recompute: bool = False,
    ) -> Optional[Entry]:
        """
        Bump an entry's gross income by delta.

        Tax and net are left untouched unless recompute is True, in
        which case they are derived again from the entry's stored
        regime and expense rate.

        Returns:
            The adjusted entry, or None if key is unknown

        Raises:
            ValueError: If the new income is negative or above MAX_AMOUNT
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        gross_income = entry.gross_income + delta
        if gross_income > MAX_AMOUNT:
            raise ValueError(f"Income exceeds the maximum of {MAX_AMOUNT:,} (entry {key})")

        adjusted = entry.model_copy(update={
            "gross_income": gross_income,
            "updated_at": utcnow(),
        })
        if recompute:
            adjusted = self._calculator.recompute(adjusted)

        self.upsert(adjusted)
        return adjusted

    def ordered(self) -> list[Entry]:
        """Snapshot of all entries, most recent first."""
        return sorted(self._entries.values(), key=lambda e: e.sort_key(), reverse=True)

    def list_filtered(self, predicate: Optional[EntryPredicate] = None) -> FilteredEntries:
        """Lazy view over entries matching predicate (all entries if None)."""
        return FilteredEntries(self, predicate)
