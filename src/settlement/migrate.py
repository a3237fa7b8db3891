"""Import ledger state from JSON files into the configured store.

Reads ``accounts.json``, ``rates.json`` and ``log.json`` from a state
directory and replaces the three ledger records with their contents. Missing
files are treated as empty.

Usage:
    python -m settlement.migrate --state-dir ./state
"""

import argparse
import asyncio
import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from settlement.core.config import Settings, settings
from settlement.repositories.ledger_store import LedgerStore
from settlement.schemas.account import Account
from settlement.schemas.exchange import exchange_log_adapter
from settlement.schemas.rate import rate_table_adapter
from settlement.storage import SqlKeyValueStore, build_store

logger = logging.getLogger(__name__)


def load_state_file(path: Path, default: Any) -> Any:
    """Load one JSON state file, returning ``default`` when it does not exist."""
    if not path.exists():
        logger.info(f"{path} not found, using empty data")
        return default
    with path.open(encoding="utf-8") as f:
        return json.load(f)


async def migrate(state_dir: Path, ledger: LedgerStore) -> None:
    """Validate the JSON state in ``state_dir`` and write it to ``ledger``."""
    accounts = TypeAdapter(list[Account]).validate_python(
        load_state_file(state_dir / "accounts.json", [])
    )
    rates = rate_table_adapter.validate_python(load_state_file(state_dir / "rates.json", {}))
    log = exchange_log_adapter.validate_python(load_state_file(state_dir / "log.json", []))

    await ledger.import_state(accounts, rates, log)


async def run(state_dir: Path, app_settings: Settings) -> None:
    store = build_store(app_settings)
    try:
        if isinstance(store, SqlKeyValueStore):
            await store.create_tables()
        await migrate(state_dir, LedgerStore(store, max_retries=app_settings.STORAGE_CAS_MAX_RETRIES))
    finally:
        await store.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--state-dir",
        type=Path,
        default=Path("state"),
        help="Directory holding accounts.json, rates.json and log.json",
    )
    args = parser.parse_args(argv)

    logging.config.dictConfig(settings.LOGGING_CONFIG)
    logger.info(f"Migrating ledger state from {args.state_dir} to {settings.STORAGE_BACKEND} storage")

    try:
        asyncio.run(run(args.state_dir, settings))
    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        return 1

    logger.info("Migration completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
