"""Internal account lookups and balance mutations."""

import logging
from decimal import Decimal

from settlement.core.exceptions import AccountNotFoundError
from settlement.repositories.ledger_store import LedgerStore
from settlement.schemas.account import Account

logger = logging.getLogger(__name__)


def find_account_by_currency(accounts: list[Account], currency: str) -> Account | None:
    """Return the first account holding ``currency``, or None."""
    for account in accounts:
        if account.currency == currency:
            return account
    return None


def find_account_by_id(accounts: list[Account], account_id: int) -> Account | None:
    """Return the account with ``account_id``, or None."""
    for account in accounts:
        if account.id == account_id:
            return account
    return None


def _require_account(accounts: list[Account], account_id: int) -> Account:
    account = find_account_by_id(accounts, account_id)
    if account is None:
        raise AccountNotFoundError(f"Account {account_id} not found")
    return account


class AccountDirectory:
    """View over the ledger's account record.

    The directory holds at most one account per currency. Balances change
    only through ``set_balance`` and ``adjust_balance``, both of which
    persist the full account collection with a conditional write.
    """

    def __init__(self, ledger: LedgerStore) -> None:
        self._ledger = ledger

    async def list_accounts(self) -> list[Account]:
        return await self._ledger.get_accounts()

    async def find_by_currency(self, currency: str) -> Account | None:
        return find_account_by_currency(await self._ledger.get_accounts(), currency)

    async def find_by_id(self, account_id: int) -> Account | None:
        return find_account_by_id(await self._ledger.get_accounts(), account_id)

    async def set_balance(self, account_id: int, balance: Decimal) -> Account:
        """Overwrite the balance of ``account_id``.

        Raises:
            AccountNotFoundError: If no account has that id
        """

        def apply(accounts: list[Account]) -> Account:
            account = _require_account(accounts, account_id)
            account.balance = balance
            return account.model_copy()

        updated = await self._ledger.update_accounts(apply)
        logger.info(f"Set balance of account {account_id} ({updated.currency}) to {balance}")
        return updated

    async def adjust_balance(self, account_id: int, delta: Decimal) -> Account:
        """Add ``delta`` (possibly negative) to the stored balance of ``account_id``.

        The increment is applied to the balance as stored at write time, not
        to a copy read earlier, so concurrent adjustments all take effect.

        Raises:
            AccountNotFoundError: If no account has that id
        """

        def apply(accounts: list[Account]) -> Account:
            account = _require_account(accounts, account_id)
            account.balance = account.balance + delta
            return account.model_copy()

        updated = await self._ledger.update_accounts(apply)
        logger.debug(f"Adjusted account {account_id} by {delta}, balance now {updated.balance}")
        return updated
