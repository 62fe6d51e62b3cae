"""
Tax Calculator

Converts (gross income, expense rate, regime) into taxable income,
withheld tax and net income.

    taxable = gross × (1 − expense_rate / 100)
    tax     = round_half_up(taxable × regime.rate)      whole currency unit
    net     = taxable − tax

Net is always derived from the ROUNDED tax, so taxable == tax + net holds
exactly for every input.

DESIGN DECISION: compute() never raises on bad numbers. Anything that is
not a finite number counts as zero, so a half-typed form still renders a
preview. Whether a draft is complete enough to save is a separate question
answered by is_committable().

Expense rates outside [0, 100] are NOT clamped. A rate above 100 gives a
negative taxable income; that is the caller's problem to flag, and the
draft validator reports it as a warning.

Arithmetic runs in a local Decimal context wide enough for any income up
to MAX_AMOUNT. Figures too large even for that preview as zero; the
validator refuses to commit anything above MAX_AMOUNT.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Optional, Union

from freelancer_tax.models.entry import (
    ZERO,
    Entry,
    RateRegime,
    TaxBreakdown,
)


WHOLE_UNIT = Decimal("1")
HUNDRED = Decimal("100")

# Largest gross income a ledger entry may carry
MAX_AMOUNT = Decimal("1000000000000000")

PRECISION = 60


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Leniently parse a user-typed number.

    Accepts Decimal, int, float and strings with thousands separators
    ("3,000,000"). Returns None for anything that is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "").replace("_", "").replace(" ", "")
        if not cleaned:
            return None
        try:
            number = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None

    if not number.is_finite():
        return None
    return number


def round_tax(amount: Decimal) -> Decimal:
    """Round to a whole currency unit, halves away from zero."""
    return amount.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def plain_amount(amount: Decimal) -> Decimal:
    """Drop trailing zeros (2400000.0 -> 2400000) without exponent notation."""
    if amount == amount.to_integral_value():
        return amount.quantize(WHOLE_UNIT)
    return amount.normalize()


class TaxCalculator:
    """Stateless tax computation under a fixed-rate regime."""

    def compute(
        self,
        gross_income: Any,
        expense_rate_percent: Any,
        regime: Union[RateRegime, str],
    ) -> TaxBreakdown:
        """
        Compute the tax breakdown for one income figure.

        Args:
            gross_income: Raw income (number or string). Unparseable → 0.
            expense_rate_percent: Expense rate in percent. Unparseable → 0.
            regime: Rate regime (enum or its string value)

        Returns:
            TaxBreakdown with taxable_income, tax_amount, net_income
        """
        regime = RateRegime(regime)
        gross = parse_amount(gross_income) or ZERO
        expense_rate = parse_amount(expense_rate_percent) or ZERO

        with localcontext() as ctx:
            ctx.prec = PRECISION
            try:
                taxable = plain_amount(gross * (1 - expense_rate / HUNDRED))
                tax = round_tax(taxable * regime.rate)
                net = taxable - tax
            except InvalidOperation:
                return TaxBreakdown()

        return TaxBreakdown(
            taxable_income=taxable,
            tax_amount=tax,
            net_income=net,
        )

    def is_committable(self, gross_income: Any) -> bool:
        """Is there enough input to save? A parseable income within [0, MAX_AMOUNT]."""
        amount = parse_amount(gross_income)
        return amount is not None and ZERO <= amount <= MAX_AMOUNT

    def recompute(
        self,
        entry: Entry,
        regime: Optional[RateRegime] = None,
        expense_rate_percent: Optional[Decimal] = None,
    ) -> Entry:
        """
        Return a copy of entry with derived amounts recomputed.

        Falls back to the regime and expense rate stored on the entry,
        then to withholding at 0%.
        """
        regime = regime or entry.regime or RateRegime.WITHHOLDING
        if expense_rate_percent is None:
            expense_rate_percent = entry.expense_rate or ZERO

        breakdown = self.compute(entry.gross_income, expense_rate_percent, regime)
        return entry.model_copy(update={
            "tax_amount": breakdown.tax_amount,
            "net_income": breakdown.net_income,
            "regime": regime,
            "expense_rate": expense_rate_percent,
        })

    def validate_amounts(self, entry: Entry) -> None:
        """
        Reject entries whose amounts break the ledger invariants.

        model_copy() skips pydantic validation, so entries mutated in
        place are checked again here before they reach the store.

        Raises:
            ValueError: If gross income or tax is negative
        """
        if entry.gross_income < 0:
            raise ValueError(f"Gross income must be >= 0 (entry {entry.key})")
        if entry.tax_amount < 0:
            raise ValueError(f"Tax amount must be >= 0 (entry {entry.key})")
