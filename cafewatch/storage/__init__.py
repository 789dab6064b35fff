"""Storage layer for monitor state persistence."""

from cafewatch.storage.database import Database, rows_affected

__all__ = ["Database", "rows_affected"]
