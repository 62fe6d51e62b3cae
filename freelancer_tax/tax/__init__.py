"""Tax computation package."""

from freelancer_tax.tax.calculator import (
    MAX_AMOUNT,
    TaxCalculator,
    parse_amount,
    plain_amount,
    round_tax,
)

__all__ = ["MAX_AMOUNT", "TaxCalculator", "parse_amount", "plain_amount", "round_tax"]
