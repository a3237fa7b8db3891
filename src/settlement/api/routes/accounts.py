"""Account API routes for reading and overriding internal account balances."""

import logging

from fastapi import APIRouter, Request
from fastapi import status as http_status

from settlement.core.config import settings
from settlement.core.deps import ExchangeServiceDep
from settlement.core.exceptions import AccountNotFoundError
from settlement.core.rate_limit import limiter
from settlement.schemas.account import Account, BalanceUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=list[Account])
async def list_accounts(service: ExchangeServiceDep) -> list[Account]:
    """List the internal accounts, one per supported currency.

    Example:
        GET /api/v1/accounts
    """
    return await service.get_accounts()


@router.put(
    "/{account_id}/balance",
    response_model=list[Account],
    responses={http_status.HTTP_404_NOT_FOUND: {"description": "Unknown account"}},
)
@limiter.limit(settings.ADMIN_RATE_LIMIT)
async def set_account_balance(
    request: Request,
    account_id: int,
    balance_update: BalanceUpdate,
    service: ExchangeServiceDep,
) -> list[Account]:
    """Overwrite the balance of an internal account.

    Returns:
        All accounts after the update

    Raises:
        AccountNotFoundError: 404 if no account has ``account_id``

    Example:
        PUT /api/v1/accounts/2/balance
        {"balance": "75000"}
    """
    logger.info(f"Setting balance of account {account_id} to {balance_update.balance}")

    if not await service.set_account_balance(account_id, balance_update.balance):
        raise AccountNotFoundError(f"Account {account_id} not found")

    return await service.get_accounts()
