"""
Tests for the Voice Expense Tracker

Test strategy:
1. Unit tests for individual components (models, parser, validator)
2. Integration tests for flows (with fake model and in-memory storage)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from expense_tracker.models.expense import (
    CATEGORIES,
    Expense,
    ExpenseCandidate,
    ExpenseCategory,
    ExpenseCreateRequest,
    ExtractionRequest,
    ExtractionResult,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_candidate_defaults_to_empty_strings(self):
        """Test that a bare candidate has empty fields, never None."""
        candidate = ExpenseCandidate()
        assert candidate.model_dump() == {
            "amount": "",
            "category": "",
            "description": "",
            "date": "",
        }

    def test_candidate_none_becomes_empty(self):
        """Test that None values are stored as empty strings."""
        candidate = ExpenseCandidate(amount=None, date=None)
        assert candidate.amount == ""
        assert candidate.date == ""

    def test_candidate_numbers_become_strings(self):
        """Test that numeric amounts are kept as text."""
        candidate = ExpenseCandidate(amount=300)
        assert candidate.amount == "300"

    def test_extraction_request_defaults(self):
        """Test that language defaults to auto and transcript to empty."""
        request = ExtractionRequest(transcript=None, language="")
        assert request.transcript == ""
        assert request.language == "auto"

    def test_extraction_result_response_shape(self):
        """Test the flattened response includes detectedLanguage only when known."""
        candidate = ExpenseCandidate(amount="50", category="Food")
        with_language = ExtractionResult(candidate=candidate, detected_language="hi-IN")
        without_language = ExtractionResult(candidate=candidate)

        assert with_language.to_response()["detectedLanguage"] == "hi-IN"
        assert with_language.to_response()["amount"] == "50"
        assert "detectedLanguage" not in without_language.to_response()

    def test_expense_creation(self):
        """Test Expense model creation."""
        expense = Expense(
            username="asha",
            amount=Decimal("300.00"),
            category="Food",
            date=date(2024, 6, 14),
        )
        assert expense.username == "asha"
        assert expense.description is None
        assert expense.id is not None

    def test_expense_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            Expense(
                username="asha",
                amount=Decimal("0"),
                category="Food",
                date=date(2024, 6, 14),
            )

    def test_expense_json_amount_is_number(self):
        """Test amounts serialize as numbers in JSON mode."""
        expense = Expense(
            username="asha",
            amount=Decimal("12.50"),
            category="Food",
            date=date(2024, 6, 14),
        )
        data = expense.model_dump(mode="json")
        assert data["amount"] == 12.5
        assert data["date"] == "2024-06-14"

    def test_create_request_requires_username(self):
        """Test the API create body needs a username."""
        with pytest.raises(ValueError):
            ExpenseCreateRequest(amount="10", category="Food", username="")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSCRIPT_RECEIVED,
            description="Transcript received",
        )
        assert event.event_type == AuditEventType.TRANSCRIPT_RECEIVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            description="Expense saved",
            details={"category": "Food", "amount": "300"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "expense_saved"
        assert log_dict["details"]["category"] == "Food"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            description="User confirmed expense",
            username="asha",
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "user_confirmed"  # event_type
        assert row[10] == "asha"  # username

    def test_audit_event_builder_transcript_received(self):
        """Test AuditEventBuilder.transcript_received."""
        correlation_id = uuid4()

        event = AuditEventBuilder.transcript_received(
            transcript="spent 300 on food",
            language="auto",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.TRANSCRIPT_RECEIVED
        assert event.correlation_id == correlation_id
        assert event.details["transcript"] == "spent 300 on food"

    def test_audit_event_builder_extraction_failed_truncates_raw(self):
        """Test raw model output is capped in the audit details."""
        event = AuditEventBuilder.extraction_failed(
            error_type="parse_error",
            error_message="bad json",
            correlation_id=uuid4(),
            raw_response="x" * 5000,
        )
        assert event.severity == AuditSeverity.WARNING
        assert len(event.details["raw_response"]) == 1000

    def test_audit_event_builder_expense_saved(self):
        """Test AuditEventBuilder.expense_saved."""
        expense_id = uuid4()

        event = AuditEventBuilder.expense_saved(
            expense_id=expense_id,
            username="asha",
            amount="300.00",
            category="Food",
            source="voice",
            correlation_id=uuid4(),
        )

        assert event.event_type == AuditEventType.EXPENSE_SAVED
        assert event.entity_id == expense_id
        assert event.details["source"] == "voice"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.is_valid is False

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.warnings == ["Date in future"]

    def test_issue_severity_is_restricted(self):
        """Test that unknown severities are rejected."""
        with pytest.raises(ValueError):
            ValidationIssue(field="amount", issue_type="x", message="x", severity="fatal")


class TestExpenseCategories:
    """Tests for expense category enum."""

    def test_all_categories_exist(self):
        """Test that expected categories exist."""
        expected = [
            "Food", "Housing", "Transportation", "Entertainment", "Utilities",
            "Healthcare", "Shopping", "Education", "Personal", "Travel", "Other",
        ]
        assert CATEGORIES == expected

    def test_category_values(self):
        """Test category string values."""
        assert ExpenseCategory.FOOD.value == "Food"
        assert ExpenseCategory("Travel") is ExpenseCategory.TRAVEL


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
