"""AI Agents package."""

from expense_tracker.agents.expense_agent import ExpenseExtractionAgent

__all__ = [
    "ExpenseExtractionAgent",
]
