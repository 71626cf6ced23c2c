"""
Journal module - the Transaction Log.

Components:
- TransactionLog: append-only JSON Lines history enabling audit and rollback
"""

from .log import TransactionLog, DEFAULT_JOURNAL_PATH

__all__ = [
    "TransactionLog",
    "DEFAULT_JOURNAL_PATH",
]
