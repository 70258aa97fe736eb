"""
Tests for storage backends and the shared query helpers.

The Google Sheets backend runs against an in-memory worksheet double.
"""

import asyncio
import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.expense import Expense, ExpenseSort
from expense_tracker.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    NotFoundError,
    StorageError,
)
from expense_tracker.services.storage.google_sheets import AUDIT_COLUMNS, EXPENSE_COLUMNS
from expense_tracker.services.storage.interface import (
    filter_expenses,
    sort_expenses,
    summarize_by_category,
)


def make_expense(amount="100", category="Food", day=14, username="asha", minutes=0):
    return Expense(
        username=username,
        amount=Decimal(amount),
        category=category,
        description="test",
        date=date(2024, 6, day),
        created_at=datetime(2024, 6, 15, 12, 0) + timedelta(minutes=minutes),
    )


class FakeWorksheet:
    def __init__(self, header):
        self.rows = [list(header)]
        self.fail = False

    def get_all_values(self):
        if self.fail:
            raise RuntimeError("quota exceeded")
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        if self.fail:
            raise RuntimeError("quota exceeded")
        self.rows.append(list(row))

    def update(self, range_name=None, values=None, value_input_option=None):
        index = int(re.match(r"A(\d+):", range_name).group(1))
        self.rows[index - 1] = list(values[0])

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.expenses = FakeWorksheet(EXPENSE_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_expenses_sheet(self):
        return self.expenses

    def get_audit_sheet(self):
        return self.audit


class TestQueryHelpers:
    """Tests for filter, sort and summary helpers."""

    def test_filter_by_user_date_and_category(self):
        """Test every filter narrows the result."""
        expenses = [
            make_expense(day=10),
            make_expense(day=12, category="Travel"),
            make_expense(day=14, username="ravi"),
        ]
        matched = filter_expenses(
            expenses,
            username="asha",
            date_from=date(2024, 6, 11),
            date_to=date(2024, 6, 14),
            category="Travel",
        )
        assert [e.date.day for e in matched] == [12]

    def test_sort_orders(self):
        """Test all four orderings."""
        small = make_expense(amount="10", day=12)
        large = make_expense(amount="90", day=10)
        expenses = [small, large]

        assert sort_expenses(expenses, ExpenseSort.DATE_DESC) == [small, large]
        assert sort_expenses(expenses, ExpenseSort.DATE_ASC) == [large, small]
        assert sort_expenses(expenses, ExpenseSort.AMOUNT_DESC) == [large, small]
        assert sort_expenses(expenses, "amount-asc") == [small, large]

    def test_same_day_ties_use_creation_time(self):
        """Test same-day entries are ordered by when they were created."""
        first = make_expense(minutes=0)
        second = make_expense(minutes=5)
        assert sort_expenses([first, second], ExpenseSort.DATE_DESC) == [second, first]

    def test_summary_largest_first(self):
        """Test totals are summed per category and sorted descending."""
        totals = summarize_by_category([
            make_expense(amount="10", category="Food"),
            make_expense(amount="15", category="Food"),
            make_expense(amount="40", category="Travel"),
        ])
        assert [(t.category, t.total) for t in totals] == [
            ("Travel", Decimal("40")),
            ("Food", Decimal("25")),
        ]


class TestInMemoryExpenseStorage:
    """Tests for the in-memory backend."""

    def test_save_get_delete(self):
        """Test the basic lifecycle."""
        storage = InMemoryExpenseStorage()
        expense = make_expense()

        async def scenario():
            assert await storage.save_expense(expense) is True
            assert await storage.get_expense(expense.id) == expense
            assert await storage.delete_expense(expense.id) is True
            assert await storage.delete_expense(expense.id) is False
            return await storage.get_expense(expense.id)

        assert asyncio.run(scenario()) is None

    def test_duplicate_save(self):
        """Test saving the same ID twice fails."""
        storage = InMemoryExpenseStorage()
        expense = make_expense()

        async def scenario():
            await storage.save_expense(expense)
            await storage.save_expense(expense)

        with pytest.raises(DuplicateError):
            asyncio.run(scenario())

    def test_update_missing(self):
        """Test updating an unknown expense raises NotFoundError."""
        with pytest.raises(NotFoundError):
            asyncio.run(InMemoryExpenseStorage().update_expense(make_expense()))

    def test_list_with_paging(self):
        """Test limit and offset apply after sorting."""
        storage = InMemoryExpenseStorage()

        async def scenario():
            for day in (10, 11, 12, 13):
                await storage.save_expense(make_expense(day=day))
            return await storage.list_expenses(sort=ExpenseSort.DATE_ASC, limit=2, offset=1)

        assert [e.date.day for e in asyncio.run(scenario())] == [11, 12]

    def test_reads_are_copies(self):
        """Test callers cannot mutate stored expenses."""
        storage = InMemoryExpenseStorage()
        expense = make_expense()

        async def scenario():
            await storage.save_expense(expense)
            fetched = await storage.get_expense(expense.id)
            fetched.category = "Travel"
            return await storage.get_expense(expense.id)

        assert asyncio.run(scenario()).category == "Food"


class TestInMemoryAuditStorage:
    """Tests for the in-memory audit log."""

    def test_correlation_lookup(self):
        """Test events are grouped by correlation ID."""
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()

        async def scenario():
            await storage.append_event(AuditEventBuilder.transcript_received("a", "auto", correlation_id))
            await storage.append_event(AuditEventBuilder.transcript_received("b", "auto", uuid4()))
            return await storage.get_events_by_correlation_id(correlation_id)

        events = asyncio.run(scenario())
        assert [e.details["transcript"] for e in events] == ["a"]


class TestGoogleSheetsExpenseStorage:
    """Tests for the Sheets backend against a worksheet double."""

    def test_save_and_read_back(self):
        """Test a saved expense survives the row round trip."""
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)
        expense = make_expense(amount="12.50")

        async def scenario():
            await storage.save_expense(expense)
            return await storage.get_expense(expense.id)

        fetched = asyncio.run(scenario())
        assert fetched.id == expense.id
        assert fetched.amount == Decimal("12.50")
        assert fetched.date == expense.date
        assert client.expenses.rows[1][1] == "asha"

    def test_update_rewrites_row(self):
        """Test update replaces the matching row in place."""
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)
        expense = make_expense()

        async def scenario():
            await storage.save_expense(expense)
            await storage.update_expense(expense.model_copy(update={"category": "Travel"}))
            return await storage.list_expenses()

        listed = asyncio.run(scenario())
        assert [e.category for e in listed] == ["Travel"]
        assert len(client.expenses.rows) == 2

    def test_update_missing_raises(self):
        """Test updating an unknown ID raises NotFoundError."""
        storage = GoogleSheetsExpenseStorage(FakeSheetsClient())
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_expense(make_expense()))

    def test_delete_and_totals(self):
        """Test delete removes the row and totals reflect it."""
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)
        keep = make_expense(amount="30", category="Travel")
        drop = make_expense(amount="70", category="Food")

        async def scenario():
            await storage.save_expense(keep)
            await storage.save_expense(drop)
            assert await storage.delete_expense(drop.id) is True
            return await storage.totals_by_category(username="asha")

        totals = asyncio.run(scenario())
        assert [(t.category, t.total) for t in totals] == [("Travel", Decimal("30"))]

    def test_malformed_rows_are_skipped(self):
        """Test a hand-edited broken row does not break listing."""
        client = FakeSheetsClient()
        client.expenses.rows.append(["not-a-uuid", "asha", "abc"])
        storage = GoogleSheetsExpenseStorage(client)

        assert asyncio.run(storage.list_expenses()) == []

    def test_read_failure_is_storage_error(self):
        """Test API failures surface as StorageError."""
        client = FakeSheetsClient()
        client.expenses.fail = True
        with pytest.raises(StorageError):
            asyncio.run(GoogleSheetsExpenseStorage(client).list_expenses())


class TestGoogleSheetsAuditStorage:
    """Tests for the Sheets audit log."""

    def test_append_and_read_recent(self):
        """Test events round-trip through rows."""
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.user_rejected("asha", "Try again", uuid4())

        async def scenario():
            await storage.append_event(event)
            return await storage.get_recent_events(limit=5)

        events = asyncio.run(scenario())
        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].details == {"reason": "Try again"}
        assert events[0].username == "asha"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
