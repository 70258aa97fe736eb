"""HTTP API package."""

from expense_tracker.api.app import create_app, run

__all__ = ["create_app", "run"]
