"""Transfer gateway: the external capability that moves funds between accounts.

The settlement engine depends only on the ``TransferGateway`` protocol, so the
backend that actually moves money can be swapped without touching it.

Implementations:
- ``HttpTransferGateway``: calls a transfer service over HTTP with httpx
- ``SimulatedTransferGateway``: always succeeds after a random delay. It is a
  development placeholder and says nothing about real failure rates.

A transfer is all-or-nothing from the caller's point of view: ``True`` means
the full amount moved, ``False`` means nothing did.
"""

import asyncio
import logging
import random
import uuid
from decimal import Decimal
from typing import Protocol

import httpx

from settlement.core.config import Settings

logger = logging.getLogger(__name__)


class TransferGateway(Protocol):
    """Moves a fixed amount from one account to another."""

    async def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        *,
        reference: str | None = None,
    ) -> bool:
        """Attempt the transfer and report whether it happened."""
        ...

    async def aclose(self) -> None:
        """Release resources held by the gateway."""
        ...


class HttpTransferGateway:
    """Transfer gateway backed by an HTTP transfer service.

    Sends ``POST {base_url}/transfers`` with a JSON body
    ``{"fromAccountId", "toAccountId", "amount", "reference"}`` and an
    ``Idempotency-Key`` header so the upstream can deduplicate retries.

    Any 2xx response is a successful transfer. Client errors (e.g. upstream
    insufficient funds), server errors, timeouts and connection failures are
    all reported as ``False`` and logged; nothing is raised to the caller.

    Args:
        client: httpx client whose ``base_url`` points at the transfer service
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpTransferGateway":
        client = httpx.AsyncClient(
            base_url=settings.TRANSFER_SERVICE_URL,
            timeout=settings.TRANSFER_TIMEOUT_SECONDS,
        )
        return cls(client)

    async def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        *,
        reference: str | None = None,
    ) -> bool:
        payload = {
            "fromAccountId": str(from_account_id),
            "toAccountId": str(to_account_id),
            "amount": str(amount),
            "reference": reference,
        }
        headers = {"Idempotency-Key": reference or uuid.uuid4().hex}

        try:
            response = await self._client.post("/transfers", json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"Transfer {from_account_id}->{to_account_id} timed out: {e}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Transfer {from_account_id}->{to_account_id} failed: {e}")
            return False

        if response.is_success:
            logger.info(f"Transferred {amount} from {from_account_id} to {to_account_id}")
            return True

        if response.is_client_error:
            logger.warning(
                f"Transfer {from_account_id}->{to_account_id} rejected "
                f"({response.status_code}): {response.text}"
            )
        else:
            logger.error(
                f"Transfer service error for {from_account_id}->{to_account_id} "
                f"({response.status_code}): {response.text}"
            )
        return False

    async def aclose(self) -> None:
        await self._client.aclose()


class SimulatedTransferGateway:
    """Transfer gateway that succeeds after a random delay (development only)."""

    def __init__(self, min_delay_ms: int = 200, max_delay_ms: int = 400) -> None:
        self._min_delay = min_delay_ms / 1000
        self._max_delay = max_delay_ms / 1000

    async def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        *,
        reference: str | None = None,
    ) -> bool:
        await asyncio.sleep(random.uniform(self._min_delay, self._max_delay))
        logger.debug(f"Simulated transfer of {amount} from {from_account_id} to {to_account_id}")
        return True

    async def aclose(self) -> None:
        return None


def build_transfer_gateway(settings: Settings) -> TransferGateway:
    """Construct the gateway selected by ``settings.TRANSFER_BACKEND``."""
    if settings.TRANSFER_BACKEND == "http":
        logger.info(f"Using HTTP transfer service at {settings.TRANSFER_SERVICE_URL}")
        return HttpTransferGateway.from_settings(settings)

    logger.warning("Using simulated transfer gateway; no funds are actually moved")
    return SimulatedTransferGateway(
        settings.SIMULATED_TRANSFER_MIN_DELAY_MS,
        settings.SIMULATED_TRANSFER_MAX_DELAY_MS,
    )
