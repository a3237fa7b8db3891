"""Tests for the settlement engine state machine."""

import asyncio
import itertools
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from settlement.core.constants import Observations
from settlement.core.exceptions import AccountNotFoundError, RateNotFoundError
from settlement.repositories.account_directory import AccountDirectory
from settlement.repositories.ledger_store import LedgerStore
from settlement.repositories.rate_table import RateTable
from settlement.schemas.exchange import ExchangeOutcome, ExchangeRequest
from settlement.services.settlement_service import CurrencyLocks, SettlementEngine
from conftest import ScriptedTransferGateway, TransferCall

pytestmark = pytest.mark.unit

FIXED_TIME = datetime(2026, 10, 19, 9, 30, tzinfo=UTC)


class RaisingTransferGateway:
    async def transfer(self, from_account_id, to_account_id, amount, *, reference=None) -> bool:
        raise RuntimeError("connection reset by peer")

    async def aclose(self) -> None:
        return None


def build_engine(ledger: LedgerStore, gateway, **kwargs) -> SettlementEngine:
    ids = itertools.count(1)
    return SettlementEngine(
        RateTable(ledger),
        AccountDirectory(ledger),
        ledger,
        gateway,
        compensation_backoff=0,
        clock=lambda: FIXED_TIME,
        id_factory=lambda: f"ex-{next(ids)}",
        **kwargs,
    )


def ars_to_usd(amount: str = "1000000") -> ExchangeRequest:
    return ExchangeRequest(
        base_currency="ARS",
        counter_currency="USD",
        base_account_id="client-ars",
        counter_account_id="client-usd",
        base_amount=Decimal(amount),
    )


async def balances(ledger: LedgerStore) -> dict[str, Decimal]:
    return {a.currency: a.balance for a in await ledger.get_accounts()}


async def test_successful_exchange_commits_and_logs(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    engine = build_engine(ledger, gateway)

    result = await engine.exchange(ars_to_usd())

    assert result.ok is True
    assert result.outcome == ExchangeOutcome.COMMITTED
    assert result.id == "ex-1"
    assert result.timestamp == FIXED_TIME
    assert result.exchange_rate == Decimal("0.00068")
    assert result.counter_amount == Decimal("680")
    assert result.observation is None
    assert result.compensated is None

    assert gateway.calls == [
        TransferCall("client-ars", "1", Decimal("1000000"), "ex-1:withdrawal"),
        TransferCall("2", "client-usd", Decimal("680.00000"), "ex-1:payout"),
    ]

    current = await balances(ledger)
    assert current["ARS"] == Decimal("121000000")
    assert current["USD"] == Decimal("59320")

    log = await ledger.get_log()
    assert [entry.id for entry in log] == ["ex-1"]
    assert log[0].model_dump() == result.model_dump()


async def test_result_keeps_copy_of_request(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    request = ars_to_usd()

    result = await build_engine(ledger, gateway).exchange(request)

    assert result.request == request
    assert result.request is not request


async def test_insufficient_funds_makes_no_transfers(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    """100M ARS needs 68000 USD but the USD account only holds 60000."""
    result = await build_engine(ledger, gateway).exchange(ars_to_usd("100000000"))

    assert result.ok is False
    assert result.outcome == ExchangeOutcome.INSUFFICIENT_FUNDS
    assert result.observation == Observations.INSUFFICIENT_FUNDS
    assert result.counter_amount == Decimal("0")
    assert gateway.calls == []
    assert (await balances(ledger))["USD"] == Decimal("60000")
    assert len(await ledger.get_log()) == 1


async def test_exact_balance_is_sufficient(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    await AccountDirectory(ledger).set_balance(2, Decimal("680"))

    result = await build_engine(ledger, gateway).exchange(ars_to_usd())

    assert result.ok is True
    assert (await balances(ledger))["USD"] == Decimal("0")


async def test_withdrawal_failure_stops_without_compensation(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    gateway.script(False)

    result = await build_engine(ledger, gateway).exchange(ars_to_usd())

    assert result.ok is False
    assert result.outcome == ExchangeOutcome.WITHDRAWAL_FAILED
    assert result.observation == Observations.WITHDRAWAL_FAILED
    assert result.counter_amount == Decimal("0")
    assert result.compensated is None
    assert len(gateway.calls) == 1
    assert await balances(ledger) == {
        "ARS": Decimal("120000000"),
        "USD": Decimal("60000"),
        "EUR": Decimal("40000"),
        "BRL": Decimal("60000"),
    }


async def test_payout_failure_reverses_withdrawal(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    gateway.script(True, False, True)

    result = await build_engine(ledger, gateway).exchange(ars_to_usd())

    assert result.ok is False
    assert result.outcome == ExchangeOutcome.PAYOUT_FAILED
    assert result.observation == Observations.PAYOUT_FAILED
    assert result.counter_amount == Decimal("0")
    assert result.compensated is True
    assert gateway.calls[2] == TransferCall(
        "1", "client-ars", Decimal("1000000"), "ex-1:reversal"
    )
    # Nothing was committed
    assert (await balances(ledger))["ARS"] == Decimal("120000000")
    assert (await balances(ledger))["USD"] == Decimal("60000")


async def test_reversal_is_retried_until_it_succeeds(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    gateway.script(True, False, False, True)

    result = await build_engine(ledger, gateway).exchange(ars_to_usd())

    assert result.compensated is True
    assert len(gateway.calls) == 4


async def test_exhausted_reversal_is_recorded(
    ledger: LedgerStore, caplog: pytest.LogCaptureFixture
) -> None:
    gateway = ScriptedTransferGateway([True, False], default=False)

    result = await build_engine(ledger, gateway, compensation_attempts=3).exchange(ars_to_usd())

    assert result.outcome == ExchangeOutcome.PAYOUT_FAILED
    assert result.compensated is False
    assert len(gateway.calls) == 5
    assert "after 3 attempts" in caplog.text
    assert (await ledger.get_log())[0].compensated is False


async def test_raising_gateway_counts_as_failed_transfer(ledger: LedgerStore) -> None:
    result = await build_engine(ledger, RaisingTransferGateway()).exchange(ars_to_usd())

    assert result.ok is False
    assert result.outcome == ExchangeOutcome.WITHDRAWAL_FAILED
    assert len(await ledger.get_log()) == 1


async def test_missing_rate_raises_without_logging(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    request = ars_to_usd().model_copy(update={"counter_currency": "JPY"})

    with pytest.raises(RateNotFoundError):
        await build_engine(ledger, gateway).exchange(request)

    assert gateway.calls == []
    assert await ledger.get_log() == []


async def test_missing_internal_account_raises_without_logging(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    await RateTable(ledger).set_rate("USD", "CLP", Decimal("950"))
    request = ExchangeRequest(
        base_currency="USD",
        counter_currency="CLP",
        base_account_id="client-usd",
        counter_account_id="client-clp",
        base_amount=Decimal("10"),
    )

    with pytest.raises(AccountNotFoundError):
        await build_engine(ledger, gateway).exchange(request)

    assert gateway.calls == []
    assert await ledger.get_log() == []


async def test_every_attempt_is_logged_in_order(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    engine = build_engine(ledger, gateway)
    gateway.script(True, True, False)

    await engine.exchange(ars_to_usd())
    await engine.exchange(ars_to_usd())
    await engine.exchange(ars_to_usd("100000000"))

    log = await ledger.get_log()
    assert [entry.id for entry in log] == ["ex-1", "ex-2", "ex-3"]
    assert [entry.outcome for entry in log] == [
        ExchangeOutcome.COMMITTED,
        ExchangeOutcome.WITHDRAWAL_FAILED,
        ExchangeOutcome.INSUFFICIENT_FUNDS,
    ]


async def test_concurrent_exchanges_keep_exact_balances(
    ledger: LedgerStore, gateway: ScriptedTransferGateway
) -> None:
    engine = build_engine(ledger, gateway)

    results = await asyncio.gather(*(engine.exchange(ars_to_usd()) for _ in range(5)))

    assert all(result.ok for result in results)
    current = await balances(ledger)
    assert current["ARS"] == Decimal("125000000")
    assert current["USD"] == Decimal("56600")
    assert len(await ledger.get_log()) == 5


async def test_concurrent_exchanges_cannot_overdraw(ledger: LedgerStore) -> None:
    """Two payouts that each fit but not together: only one may commit."""
    await AccountDirectory(ledger).set_balance(2, Decimal("1000"))
    engine = build_engine(ledger, ScriptedTransferGateway())

    results = await asyncio.gather(engine.exchange(ars_to_usd()), engine.exchange(ars_to_usd()))

    assert sorted(result.outcome for result in results) == sorted(
        [ExchangeOutcome.COMMITTED, ExchangeOutcome.INSUFFICIENT_FUNDS]
    )
    assert (await balances(ledger))["USD"] == Decimal("320")


async def test_currency_locks_serialize_shared_currencies() -> None:
    locks = CurrencyLocks()
    order = []

    async def hold(name: str, *currencies: str) -> None:
        async with locks.hold(*currencies):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    await asyncio.gather(hold("a", "USD", "ARS"), hold("b", "ARS", "USD"))

    assert order == ["a-in", "a-out", "b-in", "b-out"]
