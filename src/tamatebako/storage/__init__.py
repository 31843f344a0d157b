"""SQLite persistence for version history."""

from .database import DATABASE_FILENAME, ORDER_KEYS, HistoryStore

__all__ = ["DATABASE_FILENAME", "ORDER_KEYS", "HistoryStore"]
