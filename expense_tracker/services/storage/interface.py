"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for development and testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations the expense screens and the API need.

Backends without query support (Sheets, memory) share the filter, sort and
summary helpers at the bottom of this module, so every backend orders and
totals expenses identically.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.expense import CategoryTotal, Expense, ExpenseSort


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """
        Save a validated expense.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        """
        Retrieve an expense by its ID.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> bool:
        """
        Replace an existing expense.

        Raises:
            StorageError: If update fails
            NotFoundError: If the expense doesn't exist
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        """
        Delete an expense by ID.

        Returns:
            True if deleted, False if there was nothing to delete
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        username: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[str] = None,
        sort: ExpenseSort = ExpenseSort.DATE_DESC,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[Expense]:
        """
        List expenses with optional filters.

        Args:
            username: Only this user's expenses
            date_from: Expenses on or after this date
            date_to: Expenses on or before this date
            category: Exact category label
            sort: Ordering of the result
            limit: Maximum number of results
            offset: Number of results to skip
        """
        pass

    @abstractmethod
    async def totals_by_category(
        self,
        username: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[CategoryTotal]:
        """
        Sum expenses per category.

        Returns:
            One entry per category that has expenses, largest total first
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one voice attempt).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


# =============================================================================
# SHARED QUERY HELPERS
# =============================================================================

def filter_expenses(
    expenses: Iterable[Expense],
    username: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    category: Optional[str] = None,
) -> list[Expense]:
    """Apply the list filters in Python."""
    matched = []
    for expense in expenses:
        if username and expense.username != username:
            continue
        if date_from and expense.date < date_from:
            continue
        if date_to and expense.date > date_to:
            continue
        if category and expense.category != category:
            continue
        matched.append(expense)
    return matched


def sort_expenses(expenses: list[Expense], sort: ExpenseSort = ExpenseSort.DATE_DESC) -> list[Expense]:
    """
    Order expenses.

    Ties on date fall back to creation time so same-day entries stay stable.
    """
    sort = ExpenseSort(sort)
    if sort is ExpenseSort.AMOUNT_DESC:
        return sorted(expenses, key=lambda e: e.amount, reverse=True)
    if sort is ExpenseSort.AMOUNT_ASC:
        return sorted(expenses, key=lambda e: e.amount)
    if sort is ExpenseSort.DATE_ASC:
        return sorted(expenses, key=lambda e: (e.date, e.created_at))
    return sorted(expenses, key=lambda e: (e.date, e.created_at), reverse=True)


def summarize_by_category(expenses: Iterable[Expense]) -> list[CategoryTotal]:
    """Category totals, largest first."""
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for expense in expenses:
        totals[expense.category] += expense.amount
    return [
        CategoryTotal(category=category, total=total)
        for category, total in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]
