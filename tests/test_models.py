"""
Tests for Freelancer Tax Ledger

Test strategy:
1. Unit tests for individual components (models, calculator, validator)
2. Integration tests for the coordinator (with in-memory storage)
3. No real Google Sheets calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal

from freelancer_tax.models.entry import (
    CommitOutcome,
    CommitStatus,
    Entry,
    LedgerKind,
    Period,
    RateRegime,
    ValidationIssue,
    ValidationResult,
)
from freelancer_tax.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestPeriod:
    """Tests for the Period value."""

    def test_period_parse(self):
        """Test that a well-formed label parses and exposes year and month."""
        period = Period.parse(" 2024-05 ")
        assert period.label == "2024-05"
        assert period.year() == "2024"
        assert period.month() == 5
        assert str(period) == "2024-05"

    @pytest.mark.parametrize("label", ["2024-13", "2024-00", "24-05", "2024/05", "2024-5", ""])
    def test_period_rejects_bad_labels(self, label):
        """Test that malformed labels are rejected at construction."""
        with pytest.raises(ValueError):
            Period(label=label)

    def test_period_from_date(self):
        assert Period.from_date(date(2023, 1, 31)).label == "2023-01"

    def test_period_is_frozen(self):
        period = Period(label="2024-05")
        with pytest.raises(ValueError):
            period.label = "2024-06"


class TestEntryModel:
    """Tests for the committed Entry model."""

    def test_entry_creation(self):
        """Test Entry model creation."""
        entry = Entry(
            key="2024-05",
            period="2024-05",
            gross_income=Decimal("1000000"),
            tax_amount=Decimal("33000"),
            net_income=Decimal("967000"),
        )
        assert entry.period_value.year() == "2024"
        assert entry.taxable_income == Decimal("1000000")
        assert entry.occurred_on is None

    def test_entry_rejects_negative_income(self):
        with pytest.raises(ValueError):
            Entry(
                key="2024-05",
                period="2024-05",
                gross_income=Decimal("-1"),
                tax_amount=Decimal("0"),
                net_income=Decimal("0"),
            )

    def test_entry_rejects_negative_tax(self):
        with pytest.raises(ValueError):
            Entry(
                key="2024-05",
                period="2024-05",
                gross_income=Decimal("100"),
                tax_amount=Decimal("-3"),
                net_income=Decimal("103"),
            )

    def test_entry_rejects_empty_key(self):
        with pytest.raises(ValueError):
            Entry(
                key="",
                period="2024-05",
                gross_income=Decimal("100"),
                tax_amount=Decimal("3"),
                net_income=Decimal("97"),
            )

    def test_entry_period_must_match_date(self):
        """Test that the period must be the month of the transaction date."""
        with pytest.raises(ValueError, match="does not match transaction date"):
            Entry(
                key="k1",
                period="2024-06",
                occurred_on=date(2024, 5, 3),
                gross_income=Decimal("100"),
                tax_amount=Decimal("3"),
                net_income=Decimal("97"),
            )

    def test_entry_document_round_trip(self):
        """Test that an entry survives the remote document format."""
        entry = Entry(
            key="u1-1",
            period="2024-05",
            occurred_on=date(2024, 5, 3),
            gross_income=Decimal("150000"),
            tax_amount=Decimal("4950"),
            net_income=Decimal("145050"),
            description="Logo design",
            regime=RateRegime.WITHHOLDING,
            expense_rate=Decimal("0"),
        )
        document = entry.to_document()
        assert document["occurred_on"] == "2024-05-03"
        assert document["regime"] == "withholding"
        assert Entry.from_document(document) == entry

    def test_sort_key_prefers_date_within_period(self):
        early = Entry(
            key="a", period="2024-05", occurred_on=date(2024, 5, 1),
            gross_income=Decimal("1"), tax_amount=Decimal("0"), net_income=Decimal("1"),
        )
        late = Entry(
            key="b", period="2024-05", occurred_on=date(2024, 5, 20),
            gross_income=Decimal("1"), tax_amount=Decimal("0"), net_income=Decimal("1"),
        )
        assert late.sort_key() > early.sort_key()


class TestEnums:
    """Tests for regime and ledger kind enums."""

    def test_regime_rates(self):
        assert RateRegime.WITHHOLDING.rate == Decimal("0.033")
        assert RateRegime.SIMPLIFIED.rate == Decimal("0.10")
        assert RateRegime.GENERAL.rate == Decimal("0.06")

    def test_ledger_kind_policy(self):
        assert LedgerKind.MONTHLY.replaces_on_duplicate is True
        assert LedgerKind.DAILY.replaces_on_duplicate is False
        assert LedgerKind.MONTHLY.grouping_field == "period"
        assert LedgerKind.DAILY.grouping_field == "occurred_on"

    def test_commit_outcome_needs_confirmation(self):
        outcome = CommitOutcome(status=CommitStatus.CONFLICT, success=False, message="?")
        assert outcome.needs_confirmation is True
        outcome = CommitOutcome(status=CommitStatus.SAVED, success=True, message="ok")
        assert outcome.needs_confirmation is False


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            description="Entry saved",
        )
        assert event.event_type == AuditEventType.ENTRY_SAVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            description="Entry saved",
            details={"period": "2024-05", "gross_income": "1000000"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "entry_saved"
        assert log_dict["details"]["period"] == "2024-05"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.LEDGER_CLEARED,
            owner="u1",
            description="Ledger cleared",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "ledger_cleared"  # event_type
        assert row[4] == "u1"  # owner
        assert row[10] == "True"  # is_user_action

    def test_audit_event_builder_entry_saved(self):
        """Test AuditEventBuilder.entry_saved."""
        event = AuditEventBuilder.entry_saved(
            owner="u1",
            key="2024-05",
            period="2024-05",
            gross_income="1000000",
            overwritten=True,
        )
        assert event.event_type == AuditEventType.ENTRY_OVERWRITTEN
        assert event.entity_id == "2024-05"
        assert event.is_user_action is True

    def test_audit_event_builder_remote_failure(self):
        """Reads and writes are told apart by operation."""
        read = AuditEventBuilder.remote_failure("u1", "query", "timeout")
        write = AuditEventBuilder.remote_failure("u1", "put", "timeout", key="2024-05")
        assert read.event_type == AuditEventType.REMOTE_READ_FAILED
        assert write.event_type == AuditEventType.REMOTE_WRITE_FAILED
        assert write.severity == AuditSeverity.ERROR
        assert write.error_message == "timeout"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="gross_income",
                    issue_type="missing",
                    message="Income is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="period",
                    issue_type="future_date",
                    message="Period in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.warnings == ["Period in future"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
