"""Tests for the in-memory store, aggregation and export."""

import pytest
from datetime import date
from decimal import Decimal

from freelancer_tax.ledger import (
    EntryStore,
    ExportSerializer,
    default_columns,
    distinct_years,
    period_filter,
    summarize,
    year_filter,
)
from freelancer_tax.models.entry import Entry, LedgerKind, RateRegime


def make_entry(key, period, gross, tax, net, occurred_on=None, description=None, **extra):
    return Entry(
        key=key,
        period=period,
        occurred_on=occurred_on,
        gross_income=Decimal(gross),
        tax_amount=Decimal(tax),
        net_income=Decimal(net),
        description=description,
        **extra,
    )


@pytest.fixture
def store():
    store = EntryStore()
    store.upsert(make_entry("2023-12", "2023-12", "500", "17", "483"))
    store.upsert(make_entry("2024-01", "2024-01", "100", "10", "90"))
    store.upsert(make_entry("2024-02", "2024-02", "200", "20", "180"))
    return store


class TestEntryStore:
    """Tests for EntryStore."""

    def test_upsert_returns_most_recent_first(self):
        store = EntryStore()
        store.upsert(make_entry("2024-01", "2024-01", "100", "10", "90"))
        result = store.upsert(make_entry("2024-03", "2024-03", "300", "30", "270"))
        assert [e.key for e in result] == ["2024-03", "2024-01"]

    def test_upsert_replaces_same_key(self, store):
        store.upsert(make_entry("2024-01", "2024-01", "999", "33", "966"))
        assert len(store) == 3
        assert store.get("2024-01").gross_income == Decimal("999")

    def test_upsert_rejects_negative_tax(self, store):
        entry = make_entry("2024-04", "2024-04", "100", "3", "97")
        broken = entry.model_copy(update={"tax_amount": Decimal("-3")})
        with pytest.raises(ValueError):
            store.upsert(broken)
        assert "2024-04" not in store

    def test_exists_has_no_side_effects(self, store):
        assert store.exists("2024-01") is True
        assert store.exists("2030-01") is False
        assert len(store) == 3

    def test_delete_absent_key_is_noop(self, store):
        assert store.delete("2030-01") is False
        assert len(store) == 3
        assert store.delete("2024-01") is True
        assert "2024-01" not in store

    def test_clear(self, store):
        store.clear()
        assert len(store) == 0
        assert store.ordered() == []

    def test_replace_all(self, store):
        store.replace_all([make_entry("2022-07", "2022-07", "1", "0", "1")])
        assert [e.key for e in store.ordered()] == ["2022-07"]

    def test_list_filtered_is_restartable(self, store):
        view = store.list_filtered(year_filter("2024"))
        first = [e.key for e in view]
        second = [e.key for e in view]
        assert first == second == ["2024-02", "2024-01"]

    def test_list_filtered_sees_later_mutations(self, store):
        view = store.list_filtered(year_filter("2024"))
        assert len(view) == 2
        store.upsert(make_entry("2024-05", "2024-05", "1", "0", "1"))
        assert len(view) == 3

    def test_period_filter(self, store):
        assert [e.key for e in store.list_filtered(period_filter("2023-12"))] == ["2023-12"]

    def test_empty_view_is_falsy(self):
        assert not EntryStore().list_filtered()

    def test_daily_entries_order_by_date(self):
        store = EntryStore()
        store.upsert(make_entry("k1", "2024-05", "1", "0", "1", occurred_on=date(2024, 5, 20)))
        store.upsert(make_entry("k2", "2024-05", "1", "0", "1", occurred_on=date(2024, 5, 2)))
        store.upsert(make_entry("k3", "2024-06", "1", "0", "1", occurred_on=date(2024, 6, 1)))
        assert [e.key for e in store.ordered()] == ["k3", "k1", "k2"]

    def test_adjust_income_keeps_tax(self, store):
        adjusted = store.adjust_income("2024-01", Decimal("100"))
        assert adjusted.gross_income == Decimal("200")
        assert adjusted.tax_amount == Decimal("10")
        assert store.get("2024-01").gross_income == Decimal("200")

    def test_adjust_income_with_recompute(self):
        store = EntryStore()
        store.upsert(make_entry(
            "2024-01", "2024-01", "1000", "100", "900",
            regime=RateRegime.SIMPLIFIED, expense_rate=Decimal("0"),
        ))
        adjusted = store.adjust_income("2024-01", Decimal("1000"), recompute=True)
        assert adjusted.gross_income == Decimal("2000")
        assert adjusted.tax_amount == Decimal("200")
        assert adjusted.net_income == Decimal("1800")

    def test_adjust_income_unknown_key(self, store):
        assert store.adjust_income("2030-01", Decimal("100")) is None

    def test_adjust_income_below_zero_rejected(self, store):
        with pytest.raises(ValueError):
            store.adjust_income("2024-01", Decimal("-1000"))
        assert store.get("2024-01").gross_income == Decimal("100")

    def test_adjust_income_above_maximum_rejected(self, store):
        with pytest.raises(ValueError, match="maximum"):
            store.adjust_income("2024-01", Decimal("1e30"))
        assert store.get("2024-01").gross_income == Decimal("100")


class TestAggregator:
    """Tests for summaries."""

    def test_empty_input(self):
        summary = summarize([])
        assert summary.entry_count == 0
        assert summary.total.income == 0
        assert summary.per_period == {}
        assert summary.distinct_years == []

    def test_totals_match_groups(self, store):
        summary = summarize(store.ordered())
        assert summary.entry_count == 3
        assert summary.total.income == Decimal("800")
        assert summary.total.tax == Decimal("47")
        assert summary.total.net == Decimal("753")
        assert sum(t.income for t in summary.per_period.values()) == summary.total.income
        assert list(summary.per_period) == ["2024-02", "2024-01", "2023-12"]
        assert summary.per_year["2024"].income == Decimal("300")
        assert summary.per_year["2023"].income == Decimal("500")
        assert summary.distinct_years == ["2023", "2024"]

    def test_per_day_only_for_dated_entries(self):
        entries = [
            make_entry("k1", "2024-05", "100", "3", "97", occurred_on=date(2024, 5, 3)),
            make_entry("k2", "2024-05", "50", "2", "48", occurred_on=date(2024, 5, 3)),
            make_entry("k3", "2024-05", "10", "0", "10"),
        ]
        summary = summarize(entries)
        assert summary.per_day[date(2024, 5, 3)].income == Decimal("150")
        assert len(summary.per_day) == 1
        assert summary.per_period["2024-05"].income == Decimal("160")

    def test_distinct_years(self, store):
        assert distinct_years(store.ordered()) == ["2023", "2024"]
        assert distinct_years([]) == []


class TestExport:
    """Tests for CSV export."""

    def test_two_entries(self):
        entries = [
            make_entry("2024-01", "2024-01", "100", "10", "90"),
            make_entry("2024-02", "2024-02", "200", "20", "180"),
        ]
        text = ExportSerializer().serialize(entries, default_columns(LedgerKind.MONTHLY, False))
        assert text == (
            "period,gross_income,tax_amount,net_income\n"
            "2024-01,100,10,90\n"
            "2024-02,200,20,180\n"
        )

    def test_empty_export_has_header(self):
        text = ExportSerializer().serialize([])
        assert text == "period,gross_income,tax_amount,net_income,description\n"

    def test_description_is_quoted(self):
        entries = [make_entry("2024-01", "2024-01", "100", "10", "90", description='Logo, "v2"\nfinal')]
        text = ExportSerializer().serialize(entries)
        assert text == (
            "period,gross_income,tax_amount,net_income,description\n"
            '2024-01,100,10,90,"Logo, ""v2""\nfinal"\n'
        )

    def test_daily_columns(self):
        entries = [make_entry("k1", "2024-05", "100", "3", "97", occurred_on=date(2024, 5, 3))]
        text = ExportSerializer().serialize(entries, default_columns(LedgerKind.DAILY))
        assert text.splitlines()[1] == "2024-05-03,100,3,97,"

    def test_unknown_column(self):
        with pytest.raises(ValueError, match="Unknown export columns"):
            ExportSerializer().serialize([], ["period", "bogus"])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
