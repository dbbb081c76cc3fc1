"""API routers for the church finance service."""

from app.routers import bank, dues, ledger, memo_matches, notifications, transactions  # noqa: F401
