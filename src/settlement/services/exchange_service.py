"""Exchange service: the operations offered to the HTTP layer.

Wires the ledger store, rate table, account directory and settlement engine
together and exposes:

- ``get_accounts`` / ``set_account_balance``
- ``get_rates`` / ``set_rate``
- ``get_log``
- ``exchange``

Every call reads current state from storage; nothing is cached between
requests.
"""

import logging
from decimal import Decimal

from settlement.core.config import Settings
from settlement.core.exceptions import AccountNotFoundError
from settlement.repositories.account_directory import AccountDirectory
from settlement.repositories.ledger_store import LedgerStore
from settlement.repositories.rate_table import RateTable
from settlement.schemas.account import Account
from settlement.schemas.exchange import ExchangeRequest, ExchangeResult
from settlement.schemas.rate import RateTableSnapshot, RateUpdate
from settlement.services.settlement_service import SettlementEngine
from settlement.services.transfer_gateway import TransferGateway

logger = logging.getLogger(__name__)


class ExchangeService:
    """Facade over the exchange ledger and settlement engine.

    Example:
        >>> service = ExchangeService.create(ledger, gateway, settings)
        >>> result = await service.exchange(
        ...     ExchangeRequest(
        ...         base_currency="ARS",
        ...         counter_currency="USD",
        ...         base_account_id="client-ars",
        ...         counter_account_id="client-usd",
        ...         base_amount=Decimal("1000000"),
        ...     )
        ... )
        >>> result.counter_amount
        Decimal('680.00000')
    """

    def __init__(
        self,
        ledger: LedgerStore,
        rates: RateTable,
        accounts: AccountDirectory,
        engine: SettlementEngine,
    ) -> None:
        self.ledger = ledger
        self.rates = rates
        self.accounts = accounts
        self.engine = engine

    @classmethod
    def create(
        cls,
        ledger: LedgerStore,
        gateway: TransferGateway,
        settings: Settings,
    ) -> "ExchangeService":
        """Build the service and its collaborators from ``settings``."""
        rates = RateTable(ledger, precision=settings.RATE_PRECISION)
        accounts = AccountDirectory(ledger)
        engine = SettlementEngine(
            rates,
            accounts,
            ledger,
            gateway,
            compensation_attempts=settings.COMPENSATION_MAX_ATTEMPTS,
            compensation_backoff=settings.COMPENSATION_BACKOFF_SECONDS,
        )
        return cls(ledger, rates, accounts, engine)

    async def get_accounts(self) -> list[Account]:
        return await self.accounts.list_accounts()

    async def set_account_balance(self, account_id: int, balance: Decimal) -> bool:
        """Overwrite an account balance.

        Returns:
            False if no account has ``account_id``, True otherwise
        """
        try:
            await self.accounts.set_balance(account_id, balance)
        except AccountNotFoundError:
            logger.warning(f"Balance update ignored: account {account_id} not found")
            return False
        return True

    async def get_rates(self) -> RateTableSnapshot:
        return await self.rates.snapshot()

    async def set_rate(self, rate_update: RateUpdate) -> None:
        await self.rates.set_rate(
            rate_update.base_currency,
            rate_update.counter_currency,
            rate_update.rate,
        )

    async def get_log(self) -> list[ExchangeResult]:
        return await self.ledger.get_log()

    async def exchange(self, request: ExchangeRequest) -> ExchangeResult:
        return await self.engine.exchange(request)
