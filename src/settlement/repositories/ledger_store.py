"""Ledger store: the three persisted records behind the exchange service.

The ledger keeps exactly three documents in the key-value store:

- ``accounts``: list of internal accounts
- ``rates``: nested mapping base currency -> counter currency -> rate
- ``log``: ordered, append-only list of exchange results

Records are read and replaced as a whole. Read-modify-write updates go through
``compare_and_set`` and are retried when another writer got there first, so
concurrent updates to the same record are never silently lost.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import TypeAdapter

from settlement.core.constants import LedgerKeys, SeedData
from settlement.core.exceptions import StorageConflictError
from settlement.schemas.account import Account
from settlement.schemas.exchange import ExchangeResult, exchange_log_adapter
from settlement.schemas.rate import RateTableSnapshot, rate_table_adapter
from settlement.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
D = TypeVar("D")

_accounts_adapter: TypeAdapter[list[Account]] = TypeAdapter(list[Account])


def _dump_accounts(accounts: list[Account]) -> list[dict[str, Any]]:
    return _accounts_adapter.dump_python(accounts, mode="json")


def _dump_rates(rates: RateTableSnapshot) -> dict[str, Any]:
    return rate_table_adapter.dump_python(rates, mode="json")


def _dump_log(log: list[ExchangeResult]) -> list[dict[str, Any]]:
    return exchange_log_adapter.dump_python(log, mode="json", by_alias=True)


class LedgerStore:
    """Typed access to the accounts, rates and log records.

    Args:
        store: Key-value backend holding the records
        max_retries: Attempts allowed for one read-modify-write update before
            giving up with ``StorageConflictError``

    Example:
        >>> ledger = LedgerStore(MemoryKeyValueStore())
        >>> await ledger.initialize()
        ['accounts', 'rates', 'log']
        >>> [a.currency for a in await ledger.get_accounts()]
        ['ARS', 'USD', 'EUR', 'BRL']
    """

    def __init__(self, store: KeyValueStore, *, max_retries: int = 10) -> None:
        self._store = store
        self._max_retries = max_retries

    async def initialize(self, *, seed: bool = True) -> list[str]:
        """Create any missing record, each exactly once.

        Existing records are left untouched, so calling this on every start
        (or from several processes at once) is safe.

        Args:
            seed: Write the default accounts and rates; when False missing
                records start empty

        Returns:
            Keys of the records created by this call
        """
        defaults: dict[str, Any] = {
            LedgerKeys.ACCOUNTS: SeedData.ACCOUNTS if seed else [],
            LedgerKeys.RATES: SeedData.RATES if seed else {},
            LedgerKeys.LOG: [],
        }

        created = []
        for key, value in defaults.items():
            if await self._store.set_if_absent(key, value):
                created.append(key)

        if created:
            logger.info(f"Initialized ledger records: {', '.join(created)}")
        else:
            logger.info("Ledger records already present, nothing to initialize")
        return created

    # Accounts

    async def get_accounts(self) -> list[Account]:
        current = await self._store.get(LedgerKeys.ACCOUNTS)
        return _accounts_adapter.validate_python(current.value if current else [])

    async def replace_accounts(self, accounts: list[Account]) -> None:
        await self._store.set(LedgerKeys.ACCOUNTS, _dump_accounts(accounts))

    async def update_accounts(self, mutate: Callable[[list[Account]], T]) -> T:
        """Apply ``mutate`` to the current accounts and persist the result.

        ``mutate`` edits the list in place and may run more than once if the
        record changes underneath it. Its return value is passed through.
        """
        return await self._update(
            LedgerKeys.ACCOUNTS,
            [],
            _accounts_adapter.validate_python,
            _dump_accounts,
            mutate,
        )

    # Rates

    async def get_rates(self) -> RateTableSnapshot:
        current = await self._store.get(LedgerKeys.RATES)
        return rate_table_adapter.validate_python(current.value if current else {})

    async def replace_rates(self, rates: RateTableSnapshot) -> None:
        await self._store.set(LedgerKeys.RATES, _dump_rates(rates))

    async def update_rates(self, mutate: Callable[[RateTableSnapshot], T]) -> T:
        """Apply ``mutate`` to the current rate table and persist the result."""
        return await self._update(
            LedgerKeys.RATES,
            {},
            rate_table_adapter.validate_python,
            _dump_rates,
            mutate,
        )

    # Log

    async def get_log(self) -> list[ExchangeResult]:
        """Return every logged exchange result, oldest first."""
        current = await self._store.get(LedgerKeys.LOG)
        return exchange_log_adapter.validate_python(current.value if current else [])

    async def append_log(self, entry: ExchangeResult) -> None:
        await self._update(
            LedgerKeys.LOG,
            [],
            exchange_log_adapter.validate_python,
            _dump_log,
            lambda log: log.append(entry),
        )

    async def import_state(
        self,
        accounts: list[Account],
        rates: RateTableSnapshot,
        log: list[ExchangeResult],
    ) -> None:
        """Replace all three records, e.g. when migrating from another store."""
        await self.replace_accounts(accounts)
        await self.replace_rates(rates)
        await self._store.set(LedgerKeys.LOG, _dump_log(log))
        logger.info(
            f"Imported ledger state: {len(accounts)} accounts, "
            f"{sum(len(c) for c in rates.values())} rates, {len(log)} log entries"
        )

    async def _update(
        self,
        key: str,
        default: Any,
        load: Callable[[Any], D],
        dump: Callable[[D], Any],
        mutate: Callable[[D], T],
    ) -> T:
        for attempt in range(1, self._max_retries + 1):
            current = await self._store.get(key)
            document = load(current.value if current else default)
            outcome = mutate(document)
            payload = dump(document)

            if current is None:
                written = await self._store.set_if_absent(key, payload)
            else:
                written = await self._store.compare_and_set(key, payload, current.version)

            if written:
                return outcome
            logger.debug(f"Record '{key}' changed during update (attempt {attempt}), retrying")

        logger.error(f"Giving up on record '{key}' after {self._max_retries} conflicting writes")
        raise StorageConflictError(
            f"Ledger record '{key}' kept changing; update abandoned after "
            f"{self._max_retries} attempts"
        )
