"""Tests for the tax calculator."""

import pytest
from decimal import Decimal, localcontext

from freelancer_tax.models.entry import Entry, RateRegime
from freelancer_tax.tax import MAX_AMOUNT, TaxCalculator, parse_amount, plain_amount, round_tax


@pytest.fixture
def calculator():
    return TaxCalculator()


class TestParseAmount:
    """Tests for lenient number parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("3,000,000", Decimal("3000000")),
        (" 1500 ", Decimal("1500")),
        ("12.5", Decimal("12.5")),
        (100, Decimal("100")),
        (0.1, Decimal("0.1")),
        (Decimal("7"), Decimal("7")),
        ("-20", Decimal("-20")),
    ])
    def test_parses_numbers(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "1.2.3", "NaN", "inf", True, [1]])
    def test_rejects_non_numbers(self, raw):
        assert parse_amount(raw) is None


class TestTaxCalculator:
    """Tests for TaxCalculator.compute and friends."""

    def test_three_million_withholding(self, calculator):
        """3,000,000 at 20% expenses under withholding."""
        breakdown = calculator.compute("3,000,000", 20, RateRegime.WITHHOLDING)
        assert breakdown.taxable_income == Decimal("2400000")
        assert breakdown.tax_amount == Decimal("79200")
        assert breakdown.net_income == Decimal("2320800")

    @pytest.mark.parametrize("regime", list(RateRegime))
    @pytest.mark.parametrize("gross,rate", [
        ("1234567", "0"),
        ("999999", "17.5"),
        ("15", "3"),
        ("0", "50"),
    ])
    def test_tax_plus_net_equals_taxable(self, calculator, regime, gross, rate):
        breakdown = calculator.compute(gross, rate, regime)
        assert breakdown.tax_amount + breakdown.net_income == breakdown.taxable_income
        assert breakdown.tax_amount == breakdown.tax_amount.to_integral_value()

    @pytest.mark.parametrize("regime", list(RateRegime))
    @pytest.mark.parametrize("gross,rate", [
        ("999,999,999,999,999", "17.5"),
        ("1e15", "20"),
        ("1e30", "0"),
        (10**30, "20"),
        ("123456789012345678901234567890.75", "3"),
    ])
    def test_large_incomes_never_raise(self, calculator, regime, gross, rate):
        """Totals stay exact far beyond the default Decimal precision."""
        breakdown = calculator.compute(gross, rate, regime)
        with localcontext() as ctx:
            ctx.prec = 60
            assert breakdown.tax_amount + breakdown.net_income == breakdown.taxable_income
        assert breakdown.tax_amount > 0
        assert breakdown.tax_amount == breakdown.tax_amount.to_integral_value()

    def test_withholding_on_1e30(self, calculator):
        breakdown = calculator.compute("1e30", 0, RateRegime.WITHHOLDING)
        assert breakdown.tax_amount == Decimal("3.3E+28")

    def test_beyond_precision_previews_zero(self, calculator):
        breakdown = calculator.compute("1e100", 0, RateRegime.WITHHOLDING)
        assert breakdown.taxable_income == 0
        assert breakdown.tax_amount == 0
        assert breakdown.net_income == 0

    def test_amounts_have_no_trailing_zeros(self, calculator):
        """gross x 0.8 must not leak a .0 into stored or exported amounts."""
        breakdown = calculator.compute("3,000,000", 20, RateRegime.WITHHOLDING)
        assert str(breakdown.taxable_income) == "2400000"
        assert str(breakdown.tax_amount) == "79200"
        assert str(breakdown.net_income) == "2320800"

    @pytest.mark.parametrize("raw,expected", [
        ("2400000.0", "2400000"),
        ("14.550", "14.55"),
        ("1E+3", "1000"),
        ("0.00", "0"),
    ])
    def test_plain_amount(self, raw, expected):
        assert str(plain_amount(Decimal(raw))) == expected

    def test_regime_accepts_string_value(self, calculator):
        breakdown = calculator.compute(1000, 0, "simplified")
        assert breakdown.tax_amount == Decimal("100")

    def test_garbage_input_gives_zero(self, calculator):
        """A half-typed form still previews instead of failing."""
        breakdown = calculator.compute("12a", "x", RateRegime.GENERAL)
        assert breakdown.taxable_income == 0
        assert breakdown.tax_amount == 0
        assert breakdown.net_income == 0

    def test_empty_expense_rate_means_zero(self, calculator):
        breakdown = calculator.compute(1000, "", RateRegime.GENERAL)
        assert breakdown.taxable_income == Decimal("1000")
        assert breakdown.tax_amount == Decimal("60")

    def test_rate_over_hundred_is_not_clamped(self, calculator):
        breakdown = calculator.compute(1000, 150, RateRegime.GENERAL)
        assert breakdown.taxable_income == Decimal("-500")
        assert breakdown.tax_amount == Decimal("-30")

    def test_round_half_up(self):
        assert round_tax(Decimal("2.5")) == Decimal("3")
        assert round_tax(Decimal("3.5")) == Decimal("4")
        assert round_tax(Decimal("2.4999")) == Decimal("2")

    def test_half_unit_tax_rounds_up(self, calculator):
        """1500 × 0.033 = 49.5 → 50."""
        breakdown = calculator.compute(1500, 0, RateRegime.WITHHOLDING)
        assert breakdown.tax_amount == Decimal("50")
        assert breakdown.net_income == Decimal("1450")

    def test_is_committable(self, calculator):
        assert calculator.is_committable("1,000") is True
        assert calculator.is_committable(0) is True
        assert calculator.is_committable("-1") is False
        assert calculator.is_committable("") is False
        assert calculator.is_committable(MAX_AMOUNT) is True
        assert calculator.is_committable("1e30") is False

    def test_recompute_uses_stored_inputs(self, calculator):
        entry = Entry(
            key="2024-05",
            period="2024-05",
            gross_income=Decimal("2000"),
            tax_amount=Decimal("0"),
            net_income=Decimal("2000"),
            regime=RateRegime.SIMPLIFIED,
            expense_rate=Decimal("50"),
        )
        updated = calculator.recompute(entry)
        assert updated.tax_amount == Decimal("100")
        assert updated.net_income == Decimal("900")
        assert updated.key == entry.key

    def test_validate_amounts_rejects_negative_tax(self, calculator):
        entry = Entry(
            key="2024-05",
            period="2024-05",
            gross_income=Decimal("100"),
            tax_amount=Decimal("3"),
            net_income=Decimal("97"),
        )
        broken = entry.model_copy(update={"tax_amount": Decimal("-1")})
        with pytest.raises(ValueError, match="Tax amount"):
            calculator.validate_amounts(broken)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
