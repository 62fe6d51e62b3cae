"""
Draft Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - INPUT VALIDATION:
- Income present and numeric
- Expense rate numeric (empty means 0%)
- Period / transaction date present and well-formed for the ledger kind

STAGE 2 - SEMANTIC VALIDATION:
- Negative income, or income above MAX_AMOUNT
- Expense rate outside [0, 100] (accepted, flagged as a warning)
- Dates in the future
- Period inconsistent with the transaction date

IMPORTANT: Validation NEVER silently fixes issues and never raises.
A draft that fails is simply not committable; the caller decides how
to tell the user.
"""

from datetime import date
from typing import Optional

from pydantic import ValidationError

from freelancer_tax.models.entry import (
    ZERO,
    EntryDraft,
    LedgerKind,
    Period,
    ValidationIssue,
    ValidationResult,
)
from freelancer_tax.tax.calculator import MAX_AMOUNT, parse_amount


class DraftValidator:
    """
    Decides whether a draft is complete enough to become an Entry.

    The ledger kind is explicit: monthly ledgers need a period,
    daily ledgers need a transaction date.
    """

    def __init__(self, ledger_kind: LedgerKind = LedgerKind.MONTHLY):
        self._kind = ledger_kind

    def validate(
        self,
        draft: EntryDraft,
        today: Optional[date] = None,
    ) -> ValidationResult:
        today = today or date.today()
        issues: list[ValidationIssue] = []

        income = self._check_income(draft, issues)
        expense_rate = self._check_expense_rate(draft, issues)
        period, occurred_on = self._check_dates(draft, issues)

        # Stage 2 only makes sense on parsed values
        if period is not None:
            current = Period.from_date(today).label
            if period > current:
                issues.append(ValidationIssue(
                    field="period",
                    issue_type="future_date",
                    message=f"Period {period} is in the future",
                    severity="warning",
                ))
        if occurred_on is not None and occurred_on > today:
            issues.append(ValidationIssue(
                field="occurred_on",
                issue_type="future_date",
                message=f"Date {occurred_on} is in the future",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return ValidationResult(
            is_valid=is_valid,
            issues=issues,
            resolved_period=period if is_valid else None,
            resolved_date=occurred_on if is_valid else None,
            resolved_income=income if is_valid else None,
            resolved_expense_rate=expense_rate if is_valid else None,
        )

    def _check_income(self, draft: EntryDraft, issues: list[ValidationIssue]):
        if draft.gross_income is None or draft.gross_income == "":
            issues.append(ValidationIssue(
                field="gross_income",
                issue_type="missing",
                message="Income is required",
                severity="error",
            ))
            return None

        income = parse_amount(draft.gross_income)
        if income is None:
            issues.append(ValidationIssue(
                field="gross_income",
                issue_type="invalid_format",
                message=f"Income '{draft.gross_income}' is not a number",
                severity="error",
            ))
            return None

        if income < 0:
            issues.append(ValidationIssue(
                field="gross_income",
                issue_type="out_of_range",
                message="Income cannot be negative",
                severity="error",
            ))
        elif income > MAX_AMOUNT:
            issues.append(ValidationIssue(
                field="gross_income",
                issue_type="out_of_range",
                message=f"Income exceeds the maximum of {MAX_AMOUNT:,}",
                severity="error",
            ))
        return income

    def _check_expense_rate(self, draft: EntryDraft, issues: list[ValidationIssue]):
        if draft.expense_rate is None or draft.expense_rate == "":
            return ZERO

        rate = parse_amount(draft.expense_rate)
        if rate is None:
            issues.append(ValidationIssue(
                field="expense_rate",
                issue_type="invalid_format",
                message=f"Expense rate '{draft.expense_rate}' is not a number",
                severity="error",
            ))
            return None

        if rate < 0 or rate > 100:
            # Accepted as-is; computing with it is the caller's call
            issues.append(ValidationIssue(
                field="expense_rate",
                issue_type="out_of_range",
                message=f"Expense rate {rate}% is outside 0-100%",
                severity="warning",
            ))
        return rate

    def _check_dates(self, draft: EntryDraft, issues: list[ValidationIssue]):
        occurred_on = None
        if draft.occurred_on not in (None, ""):
            occurred_on = self._parse_date(draft.occurred_on)
            if occurred_on is None:
                issues.append(ValidationIssue(
                    field="occurred_on",
                    issue_type="invalid_format",
                    message=f"Date '{draft.occurred_on}' is not in YYYY-MM-DD format",
                    severity="error",
                ))

        period = None
        if draft.period:
            try:
                period = Period.parse(draft.period).label
            except ValidationError:
                issues.append(ValidationIssue(
                    field="period",
                    issue_type="invalid_format",
                    message=f"Period '{draft.period}' is not in YYYY-MM format",
                    severity="error",
                ))

        if occurred_on is not None:
            derived = Period.from_date(occurred_on).label
            if period is not None and period != derived:
                issues.append(ValidationIssue(
                    field="period",
                    issue_type="inconsistent",
                    message=f"Period {period} does not match date {occurred_on}",
                    severity="error",
                ))
            period = derived

        if self._kind is LedgerKind.DAILY:
            if occurred_on is None and not self._has_issue(issues, "occurred_on"):
                issues.append(ValidationIssue(
                    field="occurred_on",
                    issue_type="missing",
                    message="Date is required",
                    severity="error",
                ))
        else:
            # Monthly ledgers never carry a transaction date
            occurred_on = None
            if period is None and not self._has_issue(issues, "period"):
                issues.append(ValidationIssue(
                    field="period",
                    issue_type="missing",
                    message="Period is required",
                    severity="error",
                ))

        return period, occurred_on

    @staticmethod
    def _parse_date(value) -> Optional[date]:
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value).strip())
        except ValueError:
            return None

    @staticmethod
    def _has_issue(issues: list[ValidationIssue], field: str) -> bool:
        return any(issue.field == field for issue in issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        Designed for display in the UI next to the save button.
        """
        if result.is_valid and not result.issues:
            return "Ready to save."

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        warnings = [i for i in result.issues if i.severity == "warning"]

        if errors:
            lines.append("Cannot save yet:")
            lines.extend(f"- {issue.message}" for issue in errors)
        if warnings:
            lines.append("Please double-check:")
            lines.extend(f"- {issue.message}" for issue in warnings)

        return "\n".join(lines)
