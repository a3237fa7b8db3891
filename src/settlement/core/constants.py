"""Application-wide constants.

Groups the ledger record keys, the bootstrap data written on first start and
the human-readable observations attached to failed exchanges.
"""


class LedgerKeys:
    """Keys of the three top-level records held by the ledger store."""

    ACCOUNTS = "accounts"
    RATES = "rates"
    LOG = "log"


class SeedData:
    """Bootstrap data created once when the ledger records are absent."""

    # One internal account per supported currency
    ACCOUNTS = [
        {"id": 1, "currency": "ARS", "balance": "120000000"},
        {"id": 2, "currency": "USD", "balance": "60000"},
        {"id": 3, "currency": "EUR", "balance": "40000"},
        {"id": 4, "currency": "BRL", "balance": "60000"},
    ]

    # base -> counter -> rate ("1 base = rate counter")
    RATES = {
        "ARS": {"BRL": "0.00360", "EUR": "0.00057", "USD": "0.00068"},
        "BRL": {"ARS": "277.3"},
        "EUR": {"ARS": "1741"},
        "USD": {"ARS": "1469"},
    }


class Observations:
    """Failure reasons recorded on unsuccessful exchange results."""

    INSUFFICIENT_FUNDS = "Not enough funds on counter currency account"
    WITHDRAWAL_FAILED = "Could not withdraw from clients' account"
    PAYOUT_FAILED = "Could not transfer to clients' account"
