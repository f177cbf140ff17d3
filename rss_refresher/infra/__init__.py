"""Infra layer utilities (storage, locks)."""

from .locks import KeyedLock
from .storage import SQLiteManager

__all__ = ["KeyedLock", "SQLiteManager"]
