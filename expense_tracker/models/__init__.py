"""
Data Models Package

This package contains all Pydantic models used in the Voice Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    CANDIDATE_FIELDS,
    CATEGORIES,
    CategoryTotal,
    Expense,
    ExpenseCandidate,
    ExpenseCategory,
    ExpenseCreateRequest,
    ExpenseSort,
    ExpenseUpdateRequest,
    ExtractionRequest,
    ExtractionResult,
    ValidatedExpense,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "CANDIDATE_FIELDS",
    "CATEGORIES",
    "CategoryTotal",
    "Expense",
    "ExpenseCandidate",
    "ExpenseCategory",
    "ExpenseCreateRequest",
    "ExpenseSort",
    "ExpenseUpdateRequest",
    "ExtractionRequest",
    "ExtractionResult",
    "ValidatedExpense",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
