"""Tests for the HTTP and simulated transfer gateways."""

import json
from decimal import Decimal

import httpx
import pytest

from settlement.core.config import Settings
from settlement.services.transfer_gateway import (
    HttpTransferGateway,
    SimulatedTransferGateway,
    build_transfer_gateway,
)

pytestmark = pytest.mark.unit


def make_gateway(handler) -> HttpTransferGateway:
    client = httpx.AsyncClient(
        base_url="http://transfers.test",
        transport=httpx.MockTransport(handler),
    )
    return HttpTransferGateway(client)


async def test_successful_transfer_posts_payload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"status": "done"})

    gateway = make_gateway(handler)
    ok = await gateway.transfer("client-ars", "1", Decimal("1000000"), reference="ex-1:withdrawal")
    await gateway.aclose()

    assert ok is True
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/transfers"
    assert request.headers["Idempotency-Key"] == "ex-1:withdrawal"
    assert json.loads(request.content) == {
        "fromAccountId": "client-ars",
        "toAccountId": "1",
        "amount": "1000000",
        "reference": "ex-1:withdrawal",
    }


async def test_missing_reference_still_sends_idempotency_key() -> None:
    keys = []

    def handler(request: httpx.Request) -> httpx.Response:
        keys.append(request.headers["Idempotency-Key"])
        return httpx.Response(200)

    gateway = make_gateway(handler)
    assert await gateway.transfer("a", "b", Decimal("1")) is True
    assert keys[0]


@pytest.mark.parametrize("status_code", [400, 402, 409, 500, 503])
async def test_error_status_is_a_failed_transfer(status_code: int) -> None:
    gateway = make_gateway(lambda request: httpx.Response(status_code, text="nope"))

    assert await gateway.transfer("2", "client-usd", Decimal("680")) is False


async def test_timeout_is_a_failed_transfer(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    gateway = make_gateway(handler)

    assert await gateway.transfer("2", "client-usd", Decimal("680")) is False
    assert "timed out" in caplog.text


async def test_connection_error_is_a_failed_transfer() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = make_gateway(handler)

    assert await gateway.transfer("2", "client-usd", Decimal("680")) is False


async def test_simulated_gateway_always_succeeds() -> None:
    gateway = SimulatedTransferGateway(min_delay_ms=0, max_delay_ms=1)

    assert await gateway.transfer("a", "b", Decimal("10"), reference="x") is True
    await gateway.aclose()


async def test_build_transfer_gateway_selects_backend() -> None:
    simulated = build_transfer_gateway(Settings(_env_file=None, TRANSFER_BACKEND="simulated"))
    http = build_transfer_gateway(
        Settings(
            _env_file=None,
            TRANSFER_BACKEND="http",
            TRANSFER_SERVICE_URL="http://transfers.test",
        )
    )

    assert isinstance(simulated, SimulatedTransferGateway)
    assert isinstance(http, HttpTransferGateway)
    await http.aclose()
