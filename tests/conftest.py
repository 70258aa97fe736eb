"""
Shared fixtures.

No test talks to Gemini, Google Sheets or a speech service: the model,
storage and voice devices are replaced with in-memory fakes.
"""

import pytest

from expense_tracker.agents import ExpenseExtractionAgent
from expense_tracker.audit import AuditLogger
from expense_tracker.config import AppSettings, GeminiSettings
from expense_tracker.orchestrator import ExpenseFlow
from expense_tracker.services.storage import InMemoryAuditStorage, InMemoryExpenseStorage
from expense_tracker.validation import ExpenseValidator

from tests.fakes import TODAY, FakeModel


@pytest.fixture
def fake_model():
    return FakeModel(
        text='{"amount": "300", "category": "Food", "description": "groceries", "date": "2024-06-14"}'
    )


@pytest.fixture
def agent(fake_model):
    return ExpenseExtractionAgent(
        settings=GeminiSettings(api_key="test-key"),
        model=fake_model,
        today=lambda: TODAY,
    )


@pytest.fixture
def validator():
    return ExpenseValidator(settings=AppSettings(), today=lambda: TODAY)


@pytest.fixture
def expense_storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def flow(agent, validator, expense_storage, audit_storage):
    return ExpenseFlow(
        agent=agent,
        validator=validator,
        expense_storage=expense_storage,
        audit_logger=AuditLogger(audit_storage),
    )
