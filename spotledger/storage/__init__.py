"""
Storage layer: append-only transaction log and journal entry lookup.

TransactionStore / JournalStore interfaces; in-memory and SQLite implementations.
"""

from spotledger.storage.base import JournalStore, TransactionStore
from spotledger.storage.memory import InMemoryJournalStore, InMemoryTransactionStore
from spotledger.storage.sqlite import SqliteJournalStore, SqliteTransactionStore

__all__ = [
    "TransactionStore",
    "JournalStore",
    "InMemoryTransactionStore",
    "InMemoryJournalStore",
    "SqliteTransactionStore",
    "SqliteJournalStore",
]
