"""Settlement engine: executes one client exchange end to end.

An exchange moves the client's base amount into our base-currency account and
pays the counter amount out of our counter-currency account:

1. Resolve the rate for the ordered pair and compute the counter amount.
2. Resolve our internal accounts for both currencies.
3. Refuse if the counter account cannot cover the payout.
4. Withdrawal: client base account -> our base account.
5. Payout: our counter account -> client counter account. If it fails, the
   withdrawal is reversed (compensation).
6. Commit both balance changes to the ledger.
7. Append the result to the transaction log, whatever the outcome.

Missing rates or internal accounts are configuration faults and are raised.
Insufficient funds and failed transfers are normal outcomes, returned as a
result with ``ok=False`` and an observation.

Exchanges that touch the same internal accounts are serialized within the
process from the funds check through the commit, and balance commits are
conditional writes, so concurrent exchanges cannot lose each other's updates.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import UTC, datetime
from decimal import Decimal

from settlement.core.constants import Observations
from settlement.core.exceptions import AccountNotFoundError
from settlement.repositories.account_directory import AccountDirectory, find_account_by_currency
from settlement.repositories.ledger_store import LedgerStore
from settlement.repositories.rate_table import RateTable
from settlement.schemas.account import Account
from settlement.schemas.exchange import ExchangeOutcome, ExchangeRequest, ExchangeResult
from settlement.services.transfer_gateway import TransferGateway

logger = logging.getLogger(__name__)


class CurrencyLocks:
    """Per-currency asyncio locks, always acquired in sorted order."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, *currencies: str) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for currency in sorted(set(currencies)):
                await stack.enter_async_context(self._locks[currency])
            yield


class SettlementEngine:
    """Runs the exchange state machine against the ledger and transfer gateway.

    Args:
        rates: Rate table used to price the exchange
        accounts: Directory of internal accounts
        ledger: Ledger store receiving the log entry
        gateway: Capability that actually moves funds
        compensation_attempts: Tries allowed for reversing a withdrawal
        compensation_backoff: Delay in seconds before the second reversal
            attempt, doubled for each further attempt
        clock: Source of result timestamps
        id_factory: Source of result identifiers
    """

    def __init__(
        self,
        rates: RateTable,
        accounts: AccountDirectory,
        ledger: LedgerStore,
        gateway: TransferGateway,
        *,
        compensation_attempts: int = 3,
        compensation_backoff: float = 0.5,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._rates = rates
        self._accounts = accounts
        self._ledger = ledger
        self._gateway = gateway
        self._compensation_attempts = max(1, compensation_attempts)
        self._compensation_backoff = compensation_backoff
        self._clock = clock or (lambda: datetime.now(UTC))
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._locks = CurrencyLocks()

    async def exchange(self, request: ExchangeRequest) -> ExchangeResult:
        """Execute ``request`` and return its logged result.

        Raises:
            RateNotFoundError: If no rate exists for the requested pair
            AccountNotFoundError: If we hold no account in either currency
            StorageError: If the ledger cannot be read or written
        """
        base, counter = request.base_currency, request.counter_currency

        exchange_rate = await self._rates.get_rate(base, counter)
        counter_amount = request.base_amount * exchange_rate

        result = ExchangeResult(
            id=self._id_factory(),
            timestamp=self._clock(),
            request=request.model_copy(),
            exchange_rate=exchange_rate,
        )
        logger.info(
            f"Exchange {result.id}: {request.base_amount} {base} -> "
            f"{counter_amount} {counter} at {exchange_rate}"
        )

        async with self._locks.hold(base, counter):
            internal_accounts = await self._accounts.list_accounts()
            base_account = self._resolve_account(internal_accounts, base)
            counter_account = self._resolve_account(internal_accounts, counter)
            await self._settle(request, result, base_account, counter_account, counter_amount)

        await self._ledger.append_log(result)
        return result

    async def _settle(
        self,
        request: ExchangeRequest,
        result: ExchangeResult,
        base_account: Account,
        counter_account: Account,
        counter_amount: Decimal,
    ) -> None:
        if counter_account.balance < counter_amount:
            logger.warning(
                f"Exchange {result.id}: {counter_account.currency} account holds "
                f"{counter_account.balance}, needs {counter_amount}"
            )
            self._fail(result, ExchangeOutcome.INSUFFICIENT_FUNDS, Observations.INSUFFICIENT_FUNDS)
            return

        withdrawn = await self._transfer(
            request.base_account_id,
            str(base_account.id),
            request.base_amount,
            reference=f"{result.id}:withdrawal",
        )
        if not withdrawn:
            self._fail(result, ExchangeOutcome.WITHDRAWAL_FAILED, Observations.WITHDRAWAL_FAILED)
            return

        paid_out = await self._transfer(
            str(counter_account.id),
            request.counter_account_id,
            counter_amount,
            reference=f"{result.id}:payout",
        )
        if not paid_out:
            result.compensated = await self._compensate(result.id, request, base_account)
            self._fail(result, ExchangeOutcome.PAYOUT_FAILED, Observations.PAYOUT_FAILED)
            return

        try:
            await self._accounts.adjust_balance(base_account.id, request.base_amount)
            await self._accounts.adjust_balance(counter_account.id, -counter_amount)
        except Exception:
            logger.critical(
                f"Exchange {result.id}: funds moved but ledger commit failed; "
                "internal balances need manual reconciliation",
                exc_info=True,
            )
            raise

        result.ok = True
        result.counter_amount = counter_amount
        result.outcome = ExchangeOutcome.COMMITTED
        logger.info(f"Exchange {result.id} committed")

    async def _compensate(
        self,
        exchange_id: str,
        request: ExchangeRequest,
        base_account: Account,
    ) -> bool:
        """Return the withdrawn base amount to the client, retrying with backoff."""
        for attempt in range(1, self._compensation_attempts + 1):
            reversed_ok = await self._transfer(
                str(base_account.id),
                request.base_account_id,
                request.base_amount,
                reference=f"{exchange_id}:reversal",
            )
            if reversed_ok:
                logger.info(f"Exchange {exchange_id}: withdrawal reversed (attempt {attempt})")
                return True

            if attempt < self._compensation_attempts:
                delay = self._compensation_backoff * 2 ** (attempt - 1)
                logger.warning(
                    f"Exchange {exchange_id}: reversal attempt {attempt} failed, "
                    f"retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

        logger.error(
            f"Exchange {exchange_id}: could not return {request.base_amount} "
            f"{request.base_currency} to client account {request.base_account_id} "
            f"after {self._compensation_attempts} attempts; funds are held in "
            f"internal account {base_account.id}"
        )
        return False

    async def _transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        *,
        reference: str,
    ) -> bool:
        try:
            return await self._gateway.transfer(
                from_account_id, to_account_id, amount, reference=reference
            )
        except Exception:
            logger.error(
                f"Transfer gateway raised on {reference}; treating as failed transfer",
                exc_info=True,
            )
            return False

    @staticmethod
    def _resolve_account(accounts: list[Account], currency: str) -> Account:
        account = find_account_by_currency(accounts, currency)
        if account is None:
            raise AccountNotFoundError(f"No internal account holds {currency}")
        return account

    @staticmethod
    def _fail(result: ExchangeResult, outcome: ExchangeOutcome, observation: str) -> None:
        result.ok = False
        result.counter_amount = Decimal("0")
        result.outcome = outcome
        result.observation = observation
        logger.info(f"Exchange {result.id} not completed: {observation}")
