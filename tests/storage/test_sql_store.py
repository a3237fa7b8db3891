"""Tests for the SQL key-value store on SQLite."""

import pytest

from settlement.repositories.ledger_store import LedgerStore
from settlement.storage import SqlKeyValueStore

pytestmark = pytest.mark.integration


async def test_set_and_get_round_trip(sql_store: SqlKeyValueStore) -> None:
    await sql_store.set("rates", {"ARS": {"USD": "0.00068"}})

    current = await sql_store.get("rates")
    assert current is not None
    assert current.value == {"ARS": {"USD": "0.00068"}}
    assert current.version == 1

    await sql_store.set("rates", {})
    assert (await sql_store.get("rates")).version == 2


async def test_get_missing_key_returns_none(sql_store: SqlKeyValueStore) -> None:
    assert await sql_store.get("missing") is None


async def test_compare_and_set_checks_version(sql_store: SqlKeyValueStore) -> None:
    await sql_store.set("log", [])
    current = await sql_store.get("log")

    assert await sql_store.compare_and_set("log", ["first"], current.version) is True
    assert await sql_store.compare_and_set("log", ["second"], current.version) is False

    latest = await sql_store.get("log")
    assert latest.value == ["first"]
    assert latest.version == current.version + 1


async def test_set_if_absent(sql_store: SqlKeyValueStore) -> None:
    assert await sql_store.set_if_absent("accounts", []) is True
    assert await sql_store.set_if_absent("accounts", [{"id": 9}]) is False
    assert (await sql_store.get("accounts")).value == []


async def test_ping(sql_store: SqlKeyValueStore) -> None:
    assert await sql_store.ping() is True


async def test_ledger_initializes_on_sql_backend(sql_store: SqlKeyValueStore) -> None:
    ledger = LedgerStore(sql_store)

    assert await ledger.initialize() == ["accounts", "rates", "log"]
    assert await ledger.initialize() == []

    accounts = await ledger.get_accounts()
    assert [a.currency for a in accounts] == ["ARS", "USD", "EUR", "BRL"]
