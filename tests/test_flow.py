"""
Integration tests for ExpenseFlow with a fake model and in-memory storage.
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_tracker.audit import AuditLogger
from expense_tracker.extraction import (
    ExtractionNetworkError,
    ExtractionParseError,
    InvalidInputError,
)
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.expense import ExpenseCandidate, ExpenseSort, ExpenseUpdateRequest
from expense_tracker.orchestrator import ExpenseFlow, create_app_components
from expense_tracker.services.storage import InMemoryExpenseStorage, NotFoundError, StorageError
from expense_tracker.validation import ExpenseValidationError


def event_types(audit_storage):
    return [event.event_type for event in audit_storage.events]


def add(flow, amount="300", category="Food", day="2024-06-14", username="asha", source="manual"):
    candidate = ExpenseCandidate(amount=amount, category=category, description="", date=day)
    return asyncio.run(flow.create_expense(username, candidate, source=source))


class FailingStorage(InMemoryExpenseStorage):
    async def save_expense(self, expense):
        raise StorageError("sheet unavailable")


class TestExtractionFlow:
    """Tests for ExpenseFlow.extract."""

    def test_extract_is_audited(self, flow, audit_storage):
        """Test a successful extraction records transcript and result."""
        result = asyncio.run(flow.extract("I spent 300 on groceries", "auto"))

        assert result.candidate.amount == "300"
        assert event_types(audit_storage) == [
            AuditEventType.TRANSCRIPT_RECEIVED,
            AuditEventType.EXTRACTION_COMPLETED,
        ]
        assert audit_storage.events[0].correlation_id == audit_storage.events[1].correlation_id

    def test_blank_transcript_is_not_audited(self, flow, audit_storage, fake_model):
        """Test blank input is refused before anything happens."""
        with pytest.raises(InvalidInputError, match="Transcript is required"):
            asyncio.run(flow.extract("  ", "auto"))
        assert audit_storage.events == []
        assert fake_model.prompts == []

    def test_parse_failure_is_audited(self, flow, audit_storage, fake_model):
        """Test parse failures keep the raw response in the audit trail."""
        fake_model.text = "I cannot help with that."
        with pytest.raises(ExtractionParseError):
            asyncio.run(flow.extract("spent 10", "auto"))

        failed = audit_storage.events[-1]
        assert failed.event_type == AuditEventType.EXTRACTION_FAILED
        assert failed.details["raw_response"] == "I cannot help with that."

    def test_network_failure_is_audited(self, flow, audit_storage, fake_model):
        """Test model failures record an external service error."""
        fake_model.error = RuntimeError("503 from upstream")
        with pytest.raises(ExtractionNetworkError):
            asyncio.run(flow.extract("spent 10", "auto"))

        assert AuditEventType.EXTERNAL_SERVICE_ERROR in event_types(audit_storage)
        assert event_types(audit_storage)[-1] == AuditEventType.EXTRACTION_FAILED

    def test_reject_is_audited(self, flow, audit_storage):
        """Test discarding a proposal is recorded."""
        asyncio.run(flow.reject_extraction(username="asha", reason="Try again"))
        assert event_types(audit_storage) == [AuditEventType.USER_REJECTED]


class TestCreationFlow:
    """Tests for ExpenseFlow.create_expense."""

    def test_create_saves_and_audits(self, flow, expense_storage, audit_storage):
        """Test a valid manual entry is saved."""
        expense, result = add(flow)

        assert expense.amount == Decimal("300.00")
        assert expense.username == "asha"
        assert asyncio.run(expense_storage.get_expense(expense.id)) == expense
        assert event_types(audit_storage) == [AuditEventType.EXPENSE_SAVED]
        assert audit_storage.events[0].details["source"] == "manual"

    def test_voice_entry_records_confirmation(self, flow, audit_storage):
        """Test voice entries log the user's confirmation first."""
        add(flow, source="voice")
        assert event_types(audit_storage) == [
            AuditEventType.USER_CONFIRMED,
            AuditEventType.EXPENSE_SAVED,
        ]

    def test_invalid_entry_is_not_saved(self, flow, expense_storage, audit_storage):
        """Test validation errors raise and nothing is stored."""
        with pytest.raises(ExpenseValidationError) as exc_info:
            add(flow, amount="lots", category="Grocery")

        fields = {issue.field for issue in exc_info.value.result.issues}
        assert fields == {"amount", "category"}
        assert asyncio.run(expense_storage.list_expenses()) == []
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    def test_username_required(self, flow):
        """Test expenses need an owner."""
        with pytest.raises(ExpenseValidationError, match="Username is required"):
            add(flow, username="  ")

    def test_username_too_long(self, flow, expense_storage):
        """Test overlong usernames are validation errors, not crashes."""
        with pytest.raises(ExpenseValidationError) as exc_info:
            add(flow, username="u" * 101)

        errors = [i.field for i in exc_info.value.result.issues if i.severity == "error"]
        assert errors == ["username"]
        assert asyncio.run(expense_storage.list_expenses()) == []

    def test_warnings_do_not_block(self, flow):
        """Test suspicious values are saved with warnings."""
        expense, result = add(flow, day="2024-07-30")
        assert expense.date == date(2024, 7, 30)
        assert result.warnings

    def test_storage_failure_is_audited(self, agent, validator, audit_storage):
        """Test storage errors propagate after being recorded."""
        flow = ExpenseFlow(
            agent=agent,
            validator=validator,
            expense_storage=FailingStorage(),
            audit_logger=AuditLogger(audit_storage),
        )
        with pytest.raises(StorageError):
            add(flow)
        assert event_types(audit_storage) == [AuditEventType.EXTERNAL_SERVICE_ERROR]


class TestMaintenanceFlow:
    """Tests for update, delete, list and totals."""

    def test_partial_update(self, flow, audit_storage):
        """Test only changed fields are applied and audited."""
        expense, _ = add(flow)

        updated, _ = asyncio.run(flow.update_expense(expense.id, ExpenseUpdateRequest(amount="320")))

        assert updated.amount == Decimal("320.00")
        assert updated.category == "Food"
        assert updated.updated_at >= expense.updated_at
        assert audit_storage.events[-1].details["changed_fields"] == ["amount"]

    def test_update_missing(self, flow):
        """Test updating an unknown expense raises NotFoundError."""
        with pytest.raises(NotFoundError):
            asyncio.run(flow.update_expense(uuid4(), ExpenseUpdateRequest(amount="1")))

    def test_invalid_update_keeps_original(self, flow):
        """Test a rejected update leaves the stored expense alone."""
        expense, _ = add(flow)
        with pytest.raises(ExpenseValidationError):
            asyncio.run(flow.update_expense(expense.id, ExpenseUpdateRequest(amount="-1")))
        assert asyncio.run(flow.get_expense(expense.id)).amount == Decimal("300.00")

    def test_delete(self, flow, audit_storage):
        """Test delete reports whether something was removed."""
        expense, _ = add(flow)
        assert asyncio.run(flow.delete_expense(expense.id)) is True
        assert asyncio.run(flow.delete_expense(expense.id)) is False
        assert event_types(audit_storage).count(AuditEventType.EXPENSE_DELETED) == 1

    def test_list_and_totals_are_per_user(self, flow):
        """Test users only see their own expenses."""
        add(flow, amount="10", category="Food")
        add(flow, amount="50", category="Travel")
        add(flow, amount="99", category="Food", username="ravi")

        listed = asyncio.run(flow.list_expenses(username="asha", sort=ExpenseSort.AMOUNT_DESC))
        totals = asyncio.run(flow.category_totals(username="asha"))

        assert [e.amount for e in listed] == [Decimal("50.00"), Decimal("10.00")]
        assert [(t.category, t.total) for t in totals] == [
            ("Travel", Decimal("50.00")),
            ("Food", Decimal("10.00")),
        ]


class TestComponents:
    """Tests for create_app_components."""

    def test_in_memory_components(self):
        """Test the storage-free configuration."""
        flow, sheets_client = create_app_components(use_storage=False)
        assert sheets_client is None
        assert flow.audit_logger.storage is not None

    def test_agent_failure_is_network_error(self, validator, monkeypatch):
        """Test a missing model configuration surfaces as an extraction error."""
        def unconfigured(*args, **kwargs):
            raise RuntimeError("GEMINI_API_KEY missing")

        monkeypatch.setattr("expense_tracker.orchestrator.ExpenseExtractionAgent", unconfigured)
        flow = ExpenseFlow(validator=validator)
        with pytest.raises(ExtractionNetworkError, match="not configured"):
            asyncio.run(flow.extract("spent 10", "auto"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
