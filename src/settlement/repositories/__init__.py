"""Repository layer over the ledger records.

This package centralizes all access to persisted exchange state, keeping
storage details out of the settlement logic.

Repositories:
    - LedgerStore: Typed read/replace/update of the accounts, rates and log records
    - RateTable: Directed rates with reciprocal maintenance
    - AccountDirectory: Internal account lookups and balance mutations

Usage:
    >>> from settlement.repositories import AccountDirectory, LedgerStore, RateTable
    >>> from settlement.storage import MemoryKeyValueStore
    >>>
    >>> ledger = LedgerStore(MemoryKeyValueStore())
    >>> await ledger.initialize()
    >>> rates = RateTable(ledger)
    >>> await rates.get_rate("ARS", "USD")
    Decimal('0.00068')
"""

from settlement.repositories.account_directory import AccountDirectory
from settlement.repositories.ledger_store import LedgerStore
from settlement.repositories.rate_table import RateTable

__all__ = [
    "AccountDirectory",
    "LedgerStore",
    "RateTable",
]
