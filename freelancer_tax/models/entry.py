"""
Core Data Models for Freelancer Tax Ledger

These models define the strict schemas for all data flowing through the engine.
They are designed to:
1. Enforce type safety at runtime
2. Keep amounts exact (Decimal everywhere, never float)
3. Be serializable as plain documents for the remote store
4. Support the audit trail

DESIGN DECISION: Raw user input (EntryDraft) and committed ledger records
(Entry) are separate models. A draft may hold garbage typed by the user;
an Entry is only ever built from a draft that passed validation.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

ZERO = Decimal("0")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RateRegime(str, Enum):
    """
    Named tax-rate policies.

    Each regime maps to one fixed multiplier. The regime is chosen per
    computation; switching it never touches entries already stored.
    """
    WITHHOLDING = "withholding"
    SIMPLIFIED = "simplified"
    GENERAL = "general"

    @property
    def rate(self) -> Decimal:
        return REGIME_RATES[self]


REGIME_RATES: dict[RateRegime, Decimal] = {
    RateRegime.WITHHOLDING: Decimal("0.033"),
    RateRegime.SIMPLIFIED: Decimal("0.10"),
    RateRegime.GENERAL: Decimal("0.06"),
}


class LedgerKind(str, Enum):
    """
    Ledger granularity.

    MONTHLY: one entry per period, keyed by the period itself.
             Saving an existing period replaces it (after confirmation).
    DAILY:   one entry per transaction, keyed by a freshly minted key.
             Several entries per period are expected.
    """
    MONTHLY = "monthly"
    DAILY = "daily"

    @property
    def replaces_on_duplicate(self) -> bool:
        return self is LedgerKind.MONTHLY

    @property
    def grouping_field(self) -> str:
        """Field the remote store orders documents by."""
        return "period" if self is LedgerKind.MONTHLY else "occurred_on"


class CommitStatus(str, Enum):
    """Outcome of a ledger command."""
    SAVED = "saved"
    OVERWRITTEN = "overwritten"
    CONFLICT = "conflict"                      # Month already recorded, confirmation needed
    CONFIRMATION_REQUIRED = "confirmation_required"
    INVALID_INPUT = "invalid_input"
    UNAUTHENTICATED = "unauthenticated"
    REMOVED = "removed"
    NOT_FOUND = "not_found"
    CLEARED = "cleared"
    STALE = "stale"                            # Identity changed while the command ran


# =============================================================================
# PERIOD VALUE
# =============================================================================

class Period(BaseModel):
    """
    A month-level grouping label in ``YYYY-MM`` format.

    Validated at construction so the rest of the engine never has to
    slice strings to find a year.
    """
    model_config = ConfigDict(frozen=True)

    label: str = Field(
        ...,
        pattern=PERIOD_PATTERN,
        description="Period in YYYY-MM format"
    )

    @classmethod
    def parse(cls, value: Union[str, "Period"]) -> "Period":
        if isinstance(value, Period):
            return value
        return cls(label=value.strip())

    @classmethod
    def from_date(cls, day: date) -> "Period":
        return cls(label=f"{day.year:04d}-{day.month:02d}")

    def year(self) -> str:
        return self.label[:4]

    def month(self) -> int:
        return int(self.label[5:7])

    def __str__(self) -> str:
        return self.label


# =============================================================================
# LEDGER ENTRY
# =============================================================================

class TaxBreakdown(BaseModel):
    """Derived amounts for one gross income figure."""
    model_config = ConfigDict(frozen=True)

    taxable_income: Decimal = ZERO
    tax_amount: Decimal = ZERO
    net_income: Decimal = ZERO


class Entry(BaseModel):
    """
    A committed ledger record.

    CRITICAL: Entries are only created on explicit user commit.
    ``key`` is unique within the owner's collection.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    key: str = Field(
        ...,
        min_length=1,
        description="Period key (monthly) or minted transaction key (daily)"
    )
    period: str = Field(
        ...,
        pattern=PERIOD_PATTERN,
        description="Grouping month, YYYY-MM"
    )
    occurred_on: Optional[date] = Field(
        default=None,
        description="Transaction date (daily ledgers only)"
    )

    gross_income: Decimal = Field(..., ge=0)
    tax_amount: Decimal = Field(..., ge=0)
    net_income: Decimal

    description: Optional[str] = Field(
        default=None,
        max_length=500,
    )

    # Inputs the derived amounts came from
    regime: Optional[RateRegime] = None
    expense_rate: Optional[Decimal] = None

    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_period_matches_date(self) -> 'Entry':
        if self.occurred_on is not None:
            expected = Period.from_date(self.occurred_on).label
            if self.period != expected:
                raise ValueError(
                    f"Period {self.period} does not match transaction date {self.occurred_on}"
                )
        return self

    @property
    def period_value(self) -> Period:
        return Period(label=self.period)

    @property
    def taxable_income(self) -> Decimal:
        return self.tax_amount + self.net_income

    def sort_key(self) -> tuple:
        """Most specific date first: transaction date, then period."""
        day = self.occurred_on.isoformat() if self.occurred_on else ""
        return (self.period, day, self.updated_at)

    def to_document(self) -> dict:
        """Plain JSON-friendly document for the keyed store."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: dict) -> "Entry":
        return cls.model_validate(document)


class EntryDraft(BaseModel):
    """
    Raw form input, exactly as typed.

    Nothing here is trusted. The validator decides whether a draft
    is complete enough to become an Entry.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    period: Optional[str] = None
    occurred_on: Optional[Union[date, str]] = None
    gross_income: Optional[Union[str, Decimal, int, float]] = None
    expense_rate: Optional[Union[str, Decimal, int, float]] = 0
    regime: RateRegime = RateRegime.WITHHOLDING
    description: Optional[str] = None


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class PeriodTotals(BaseModel):
    """Income, tax and net totals for a group of entries."""

    income: Decimal = ZERO
    tax: Decimal = ZERO
    net: Decimal = ZERO

    def including(self, entry: Entry) -> "PeriodTotals":
        return PeriodTotals(
            income=self.income + entry.gross_income,
            tax=self.tax + entry.tax_amount,
            net=self.net + entry.net_income,
        )

    def __add__(self, other: "PeriodTotals") -> "PeriodTotals":
        return PeriodTotals(
            income=self.income + other.income,
            tax=self.tax + other.tax,
            net=self.net + other.net,
        )


class LedgerSummary(BaseModel):
    """Aggregated view over a snapshot of entries."""

    per_period: dict[str, PeriodTotals] = Field(default_factory=dict)
    per_day: dict[date, PeriodTotals] = Field(default_factory=dict)
    per_year: dict[str, PeriodTotals] = Field(default_factory=dict)
    total: PeriodTotals = Field(default_factory=PeriodTotals)
    distinct_years: list[str] = Field(default_factory=list)
    entry_count: int = Field(default=0, ge=0)


# =============================================================================
# COMMAND OUTCOME
# =============================================================================

class CommitOutcome(BaseModel):
    """
    Result of a ledger command.

    Callers render feedback from this; the engine never surfaces a
    stack trace for an expected failure.
    """

    status: CommitStatus
    success: bool
    message: str
    key: Optional[str] = None
    entry: Optional[Entry] = None
    remote_persisted: bool = Field(
        default=False,
        description="False when the remote write failed or was never attempted"
    )

    @property
    def needs_confirmation(self) -> bool:
        return self.status in (CommitStatus.CONFLICT, CommitStatus.CONFIRMATION_REQUIRED)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a draft."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a draft.

    When is_valid is True the resolved_* fields hold the parsed values
    an Entry is built from.
    """

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    resolved_period: Optional[str] = None
    resolved_date: Optional[date] = None
    resolved_income: Optional[Decimal] = None
    resolved_expense_rate: Optional[Decimal] = None

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
